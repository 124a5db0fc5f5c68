"""
API tests through FastAPI's TestClient, with the store on SQLite and a
scripted LLM behind the extractor.
"""

import csv
import datetime as dt
import io
import json

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from jose import jwt

from conftest import OTHER_USER_ID, USER_ID, FakeLLMClient
from placement_tracker.api.dependencies import get_extractor, get_placement_store
from placement_tracker.core.auth import SessionContext, get_session_context
from placement_tracker.core.config import get_settings
from placement_tracker.core.errors import StoreFailure
from placement_tracker.db.placement_store import PostgresPlacementStore
from placement_tracker.main import app
from placement_tracker.services.extraction_service import ExtractionService


def make_token(user_id: str = USER_ID, audience: str = "authenticated", **claims) -> str:
    settings = get_settings()
    payload = {
        "sub": user_id,
        "aud": audience,
        "email": "student@example.com",
        "exp": dt.datetime.now(dt.timezone.utc) + dt.timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth(user_id: str = USER_ID) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def llm():
    return FakeLLMClient()


@pytest.fixture
def client(session_factory, llm):
    def store_override(context: SessionContext = Depends(get_session_context)):
        return PostgresPlacementStore(context, session_factory)

    app.dependency_overrides[get_placement_store] = store_override
    app.dependency_overrides[get_extractor] = lambda: ExtractionService(llm)
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, headers=None, **fields):
    fields.setdefault("company_name", "Acme")
    response = client.post("/api/placements", json=fields, headers=headers or auth())
    assert response.status_code == 201, response.text
    return response.json()["placement"]


class TestAuth:
    def test_missing_token(self, client):
        assert client.get("/api/placements").status_code == 401

    def test_bad_signature(self, client):
        token = jwt.encode({"sub": USER_ID, "aud": "authenticated"}, "wrong-secret", algorithm="HS256")
        response = client.get("/api/placements", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_wrong_audience(self, client):
        headers = {"Authorization": f"Bearer {make_token(audience='anon')}"}
        assert client.get("/api/placements").status_code == 401
        assert client.get("/api/placements", headers=headers).status_code == 401

    def test_users_see_only_their_placements(self, client):
        create(client, company_name="Mine")
        create(client, headers=auth(OTHER_USER_ID), company_name="Theirs")
        names = [p["placement"]["company_name"] for p in client.get("/api/placements", headers=auth()).json()["placements"]]
        assert names == ["Mine"]


class TestPlacementCrud:
    def test_create_and_get(self, client):
        placement = create(client, role="SDE", ctc=12, tests=[{"description": "Aptitude", "date": "2025-07-05"}])
        assert placement["status"] == "Applied"
        assert placement["eligibility"] == "unknown"
        response = client.get(f"/api/placements/{placement['id']}", headers=auth())
        body = response.json()
        assert body["placement"]["tests"][0]["description"] == "Aptitude"
        assert body["progress_stage"] == "Test Stage"
        assert body["progress_percentage"] == 50
        assert body["has_conflict"] is False

    def test_create_validation(self, client):
        response = client.post("/api/placements", json={"company_name": "   "}, headers=auth())
        assert response.status_code == 422
        response = client.post("/api/placements", json={"company_name": "Acme", "ctc": -1}, headers=auth())
        assert response.status_code == 422

    def test_update(self, client):
        placement = create(client, role="SDE")
        response = client.put(
            f"/api/placements/{placement['id']}",
            json={"company_name": "Acme", "role": "Analyst", "status": "In Progress"},
            headers=auth(),
        )
        assert response.status_code == 200
        assert response.json()["placement"]["role"] == "Analyst"

    def test_unknown_id(self, client):
        assert client.get("/api/placements/nope", headers=auth()).status_code == 404
        assert client.delete("/api/placements/nope", headers=auth()).status_code == 404

    def test_delete(self, client):
        placement = create(client)
        assert client.delete(f"/api/placements/{placement['id']}", headers=auth()).status_code == 200
        assert client.get("/api/placements", headers=auth()).json()["total"] == 0


class TestEligibilityRoutes:
    def test_not_eligible_locks_status(self, client):
        placement = create(client, status="In Progress")
        pid = placement["id"]
        response = client.patch(f"/api/placements/{pid}/eligibility", json={"eligibility": "not_eligible"}, headers=auth())
        assert response.json()["placement"]["status"] == "Not Eligible"

        response = client.patch(f"/api/placements/{pid}/status", json={"status": "Selected"}, headers=auth())
        assert response.status_code == 409

        response = client.patch(f"/api/placements/{pid}/eligibility", json={"eligibility": "eligible"}, headers=auth())
        assert response.json()["placement"]["status"] == "Applied"

    def test_bulk_status(self, client):
        ok = create(client, company_name="Ok")
        blocked = create(client, company_name="Blocked", eligibility="not_eligible")
        response = client.post(
            "/api/placements/bulk/status",
            json={"ids": [ok["id"], blocked["id"]], "status": "Withdrawn"},
            headers=auth(),
        )
        assert response.json() == {"updated": [ok["id"]], "skipped": [blocked["id"]], "failed": []}

    def test_bulk_delete(self, client):
        a = create(client, company_name="A")
        b = create(client, company_name="B")
        create(client, company_name="C")
        response = client.post("/api/placements/bulk/delete", json={"ids": [a["id"], b["id"]]}, headers=auth())
        assert response.json()["message"] == "Deleted 2 placements"
        assert client.get("/api/placements", headers=auth()).json()["total"] == 1


class TestViews:
    @pytest.fixture
    def seeded(self, client):
        soon = (dt.datetime.now(dt.timezone.utc).date() + dt.timedelta(days=2)).isoformat()
        create(client, company_name="Acme", ctc=12, location="Pune", eligibility="eligible",
               tests=[{"description": "Aptitude", "date": soon}])
        create(client, company_name="Beta", ctc=20, location="Remote", status="Selected")
        create(client, company_name="Gamma", location="Pune", eligibility="not_eligible")
        return client

    def test_search_filter_sort(self, seeded):
        response = seeded.get(
            "/api/placements",
            params={"location": "Pune", "sort_by": "company_name", "order": "asc"},
            headers=auth(),
        )
        body = response.json()
        assert [p["placement"]["company_name"] for p in body["placements"]] == ["Acme", "Gamma"]
        assert (body["total"], body["visible"]) == (3, 2)

        response = seeded.get("/api/placements", params={"search": "beta"}, headers=auth())
        assert response.json()["visible"] == 1

        response = seeded.get("/api/placements", params={"status": ["Selected", "Not Eligible"]}, headers=auth())
        assert response.json()["visible"] == 2

    def test_kanban(self, seeded):
        columns = seeded.get("/api/placements/kanban", headers=auth()).json()["columns"]
        assert [c["status"] for c in columns] == [
            "Applied", "In Progress", "Selected", "Rejected", "Withdrawn", "Not Eligible",
        ]
        assert [p["company_name"] for p in columns[0]["placements"]] == ["Acme"]

    def test_upcoming(self, seeded):
        body = seeded.get("/api/placements/upcoming", headers=auth()).json()
        assert body["total"] == 1
        [event] = body["events"]
        assert (event["company_name"], event["kind"], event["days_remaining"]) == ("Acme", "Test", 2)

    def test_stats(self, seeded):
        body = seeded.get("/api/placements/stats", headers=auth()).json()
        assert body["total"] == 3
        assert body["eligible_count"] == 1
        assert body["average_ctc"] == 16.0
        assert body["upcoming_count"] == 1

    def test_export_complete(self, seeded):
        response = seeded.get("/api/placements/export", headers=auth())
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "placements_complete_" in response.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "Company Name"
        assert len(rows) == 4

    def test_export_filtered(self, seeded):
        response = seeded.get("/api/placements/export", params={"filtered": True, "location": "Remote"}, headers=auth())
        assert "placements_filtered_" in response.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(response.text)))
        assert [r[0] for r in rows[1:]] == ["Beta"]


class TestExtractionRoutes:
    def test_extract_new_placement(self, client, llm):
        llm.response = json.dumps({"company_name": "Acme", "ctc": "12 LPA", "test_1": "Aptitude"})
        response = client.post("/api/extract", json={"email_text": "Acme drive..."}, headers=auth())
        assert response.status_code == 200
        body = response.json()
        assert body["candidate"]["company_name"] == "Acme"
        assert body["candidate"]["tests"][0]["description"] == "Aptitude"
        assert client.get("/api/placements", headers=auth()).json()["total"] == 0

    def test_extract_follow_up_uses_company_hint(self, client, llm):
        placement = create(client, company_name="Acme")
        llm.response = '{"result_1": "Passed"}'
        response = client.post(
            "/api/extract", json={"email_text": "You passed", "placement_id": placement["id"]}, headers=auth()
        )
        assert response.status_code == 200
        assert "existing placement at Acme" in llm.calls[0][0]

    def test_extract_failure_is_502(self, client, llm):
        llm.response = "I could not find anything"
        response = client.post("/api/extract", json={"email_text": "hello"}, headers=auth())
        assert response.status_code == 502

    def test_save_candidate_and_follow_up(self, client):
        response = client.post(
            "/api/placements/from-candidate",
            json={"company_name": "Acme", "ctc": "12", "test_1": "Aptitude", "location": "N/A"},
            headers=auth(),
        )
        assert response.status_code == 201
        placement = response.json()["placement"]
        assert placement["ctc"] == 12.0
        assert placement["location"] == ""

        response = client.post(
            f"/api/placements/{placement['id']}/follow-up",
            json={"result_1": "Passed", "role": "Not specified", "status": "In Progress"},
            headers=auth(),
        )
        updated = response.json()["placement"]
        assert updated["tests"][0]["result"] == "Passed"
        assert updated["status"] == "In Progress"

    def test_candidate_without_company_rejected(self, client):
        response = client.post("/api/placements/from-candidate", json={"role": "SDE"}, headers=auth())
        assert response.status_code == 422

    def test_follow_up_unknown_placement(self, client):
        response = client.post("/api/placements/nope/follow-up", json={"role": "SDE"}, headers=auth())
        assert response.status_code == 404


def test_store_failure_is_503(client):
    class BrokenStore:
        def list(self):
            raise StoreFailure("list", "connection refused")

    app.dependency_overrides[get_placement_store] = lambda: BrokenStore()
    response = client.get("/api/placements", headers=auth())
    assert response.status_code == 503
    assert response.json()["detail"] == "list failed: connection refused"
