"""
Date helpers shared by the services.
"""

import datetime as dt


def utcnow() -> dt.datetime:
    """Timezone-aware current time in UTC."""
    return dt.datetime.now(dt.timezone.utc)
