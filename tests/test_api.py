# file: tests/test_api.py
import pytest
from fastapi.testclient import TestClient

from app.config import get_settings
from app.main import app
from clients.registry import get_registry
from clients.search import SearchError
from clients.store import StoreError

AUTH = {"Authorization": "Bearer s3cret"}


@pytest.fixture
def client(registry, settings):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _save(client, **fields):
    body = {"external_job_id": "job-1", "company_name": "Acme", "role_title": "React Developer"}
    body.update(fields)
    return client.post("/api/save-job", json=body)


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "s3cret"}])
def test_scheduled_routes_reject_bad_secret(client, registry, headers):
    for method, path in [("get", "/api/cron/fetch-jobs"), ("post", "/api/cron/fetch-jobs"),
                         ("get", "/api/cron/send-emails")]:
        resp = getattr(client, method)(path, headers=headers)
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "Unauthorized"}
    registry.get_search_client().search.assert_not_awaited()
    registry.get_mailer().send.assert_not_awaited()


def test_empty_configured_secret_rejects_everything(client, settings):
    settings.cron_secret = ""
    assert client.get("/api/cron/fetch-jobs", headers={"Authorization": "Bearer "}).status_code == 401


def test_fetch_jobs(client, registry, make_posting):
    registry.get_search_client().search.return_value = [make_posting("job-1"), make_posting("job-2", "Globex")]

    resp = client.get("/api/cron/fetch-jobs", headers=AUTH)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Jobs refreshed successfully"
    assert body["stats"]["total"] == 2
    assert body["stats"]["saved"] == 2


def test_save_job_then_duplicate(client):
    first = _save(client)
    assert first.status_code == 201
    assert first.json()["sequence_number"] == 1
    assert first.json()["duplicate"] is False

    by_id = _save(client, company_name="Other")
    by_pair = _save(client, external_job_id="job-2")
    assert by_id.status_code == 409
    assert by_pair.status_code == 409
    assert by_pair.json()["duplicate"] is True

    assert _save(client, external_job_id="job-3", company_name="Globex").json()["sequence_number"] == 2


def test_save_job_rejects_invalid_email(client):
    assert _save(client, contact_email="not-an-email").status_code == 422
    assert _save(client, contact_email="hr@acme.ae").status_code == 201


def test_get_save_job_exists_and_list(client):
    _save(client)
    _save(client, external_job_id="job-2", company_name="Globex")

    assert client.get("/api/save-job", params={"job_id": "job-1"}).json()["exists"] is True
    pair = client.get("/api/save-job", params={"company_name": "Globex", "job_title": "React Developer"}).json()
    assert pair["exists"] is True
    assert pair["job"]["sequence_number"] == 2
    assert client.get("/api/save-job", params={"job_id": "nope"}).json() == {"exists": False, "job": None}

    listing = client.get("/api/save-job").json()
    assert listing["count"] == 2
    assert [r["sequence_number"] for r in listing["data"]] == [2, 1]


def test_manual_and_scheduled_send(client, registry):
    _save(client, contact_email="hr@acme.ae")
    _save(client, external_job_id="job-2", company_name="Globex")

    manual = client.post("/api/cron/send-emails").json()
    assert manual["sent"] == 1
    assert manual["results"] == [{"company": "Acme", "email": "hr@acme.ae", "status": "sent", "error": None}]

    # Default policy skips companies already emailed
    assert client.get("/api/cron/send-emails", headers=AUTH).json()["sent"] == 0
    assert client.post("/api/send-emails").json()["sent"] == 0
    resend = client.post("/api/cron/send-emails", json={"include_sent": True}).json()
    assert resend["sent"] == 1
    assert registry.get_mailer().send.await_count == 2


def test_email_stats_reset_and_counts(client):
    _save(client, contact_email="hr@acme.ae")
    _save(client, external_job_id="job-2", company_name="Globex", contact_email="hr@globex.ae")
    client.post("/api/send-emails")

    assert client.get("/api/send-emails").json()["stats"] == {
        "total_with_email": 2, "sent_emails": 2, "pending_emails": 0,
    }
    reset = client.post("/api/reset-emails")
    assert reset.json()["reset_count"] == 2
    assert reset.headers["cache-control"].startswith("no-store")
    assert client.post("/api/reset-emails").json()["message"] == "No sent emails to reset"

    counts = client.get("/api/reset-emails").json()
    assert (counts["sent_count"], counts["not_sent_count"], counts["total_count"]) == (0, 2, 2)


def test_cron_status(client):
    body = client.get("/api/cron/status").json()
    assert body["success"] is True
    assert body["cron_active"] is True
    assert body["last_execution"] is None
    assert body["stats"]["schedules"] == ["8:00 AM UTC", "12:00 PM UTC", "2:00 PM UTC", "6:00 PM UTC"]


def test_search_proxy(client, registry, make_posting):
    registry.get_search_client().search.return_value = [make_posting("job-1")]
    resp = client.post("/api/jobs", json={"query": "React Developer in UAE", "num_pages": 2})
    assert resp.json()["count"] == 1
    registry.get_search_client().search.assert_awaited_with("React Developer in UAE", num_pages=2)

    registry.get_search_client().search.side_effect = SearchError("HTTP 500")
    failed = client.post("/api/jobs", json={"query": "x"})
    assert failed.status_code == 500
    assert failed.json()["success"] is False


def test_store_failure_returns_500(client, store):
    async def broken(*args, **kwargs):
        raise StoreError("disk unavailable")

    store.companies.update_many = broken
    resp = client.post("/api/reset-emails")
    assert resp.status_code == 500
    assert resp.json()["error"] == "disk unavailable"
    assert resp.json()["reset_count"] == 0


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
