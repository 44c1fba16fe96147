from fastapi.testclient import TestClient

from jobflow.api.app import create_app
from jobflow.core.mailer import RecordingTransport
from jobflow.db.models import PlatformCredentials
from jobflow.db.session import SessionLocal

HEADERS = {"X-User-Id": "user-1"}
OTHER = {"X-User-Id": "user-2"}


def _client(transport: RecordingTransport | None = None) -> TestClient:
    return TestClient(create_app(transport=transport or RecordingTransport()))


def test_health_and_missing_identity() -> None:
    client = _client()
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api/applications").status_code == 401


def test_user_profile_upsert() -> None:
    client = _client()
    resp = client.put("/api/auth/user", json={"email": "jane@example.com", "first_name": "Jane"}, headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["id"] == "user-1"

    fetched = client.get("/api/auth/user", headers=HEADERS).json()
    assert fetched["first_name"] == "Jane"


def test_application_crud_and_tenancy() -> None:
    client = _client()
    create_resp = client.post(
        "/api/applications",
        json={"title": "Dev", "company": "Acme", "platform": "Upwork"},
        headers=HEADERS,
    )
    assert create_resp.status_code == 200
    application_id = create_resp.json()["id"]

    update_resp = client.put(f"/api/applications/{application_id}", json={"status": "offer"}, headers=HEADERS)
    assert update_resp.json()["status"] == "offer"

    assert client.get(f"/api/applications/{application_id}", headers=OTHER).status_code == 404
    assert client.put(f"/api/applications/{application_id}", json={"status": "declined"}, headers=OTHER).status_code == 404
    assert client.get("/api/applications", headers=OTHER).json() == []

    assert client.delete(f"/api/applications/{application_id}", headers=HEADERS).status_code == 200
    assert client.get(f"/api/applications/{application_id}", headers=HEADERS).status_code == 404


def test_invalid_payloads_rejected() -> None:
    client = _client()
    resp = client.post(
        "/api/applications",
        json={"title": "Dev", "company": "Acme", "platform": "Upwork", "status": "ghosted"},
        headers=HEADERS,
    )
    assert resp.status_code == 422
    assert client.post("/api/contacts", json={"name": "Bob", "email": "nope"}, headers=HEADERS).status_code == 422


def test_dashboard_and_daily_stats() -> None:
    client = _client()
    client.post("/api/applications", json={"title": "A", "company": "B", "platform": "C"}, headers=HEADERS)
    client.post(
        "/api/applications",
        json={"title": "A", "company": "B", "platform": "C", "status": "interview"},
        headers=HEADERS,
    )

    stats = client.get("/api/dashboard/stats", headers=HEADERS).json()
    assert stats["total_applications"] == 2
    assert stats["total_responses"] == 1
    assert stats["response_rate"] == 50

    resp = client.post(
        "/api/stats/daily",
        json={"date": "2026-03-02", "applications_count": 4, "earnings": "20.50"},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["earnings"] == 20.5
    assert client.get("/api/stats/daily/2026-03-02", headers=HEADERS).json()["applications_count"] == 4
    assert client.get("/api/stats/daily/2026-03-03", headers=HEADERS).json() is None


def test_credentials_are_encrypted_and_never_returned() -> None:
    client = _client()
    resp = client.post(
        "/api/credentials",
        json={"platform": "Upwork", "credentials": {"username": "jane", "password": "hunter2"}},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    assert "encrypted_credentials" not in resp.json()
    assert "hunter2" not in resp.text

    with SessionLocal() as db:
        stored = db.get(PlatformCredentials, resp.json()["id"])
        assert "hunter2" not in stored.encrypted_credentials

    listed = client.get("/api/credentials", headers=HEADERS).json()
    assert [item["platform"] for item in listed] == ["Upwork"]


def test_export_formats() -> None:
    client = _client()
    client.post("/api/applications", json={"title": "Dev", "company": "Acme", "platform": "Upwork"}, headers=HEADERS)

    csv_resp = client.get("/api/export/applications?format=csv", headers=HEADERS)
    assert csv_resp.headers["content-type"].startswith("text/csv")
    assert "job_applications.csv" in csv_resp.headers["content-disposition"]
    assert csv_resp.text.startswith("Title,Company,Platform,Status,Applied Date,Pay Rate,URL\n")

    json_resp = client.get("/api/export/applications?format=json", headers=HEADERS)
    assert json_resp.json()[0]["company"] == "Acme"
    assert client.get("/api/export/applications?format=xml", headers=HEADERS).status_code == 422


def test_campaign_send_flow() -> None:
    transport = RecordingTransport()
    client = _client(transport)
    contact = client.post(
        "/api/contacts",
        json={"name": "Bob", "email": "bob@acme.com", "company": "Acme"},
        headers=HEADERS,
    ).json()
    campaign = client.post(
        "/api/email-campaigns",
        json={"name": "Intro", "subject": "Hello", "template": "Hi [Name] at [Company]", "contact_ids": [contact["id"]]},
        headers=HEADERS,
    ).json()

    assert client.post(f"/api/email-campaigns/{campaign['id']}/send", headers=OTHER).status_code == 404

    resp = client.post(f"/api/email-campaigns/{campaign['id']}/send", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Email campaign sent successfully", "sent": 1, "failed": 0, "total": 1}
    assert transport.sent[0].text == "Hi Bob at Acme"
    assert client.get(f"/api/email-campaigns/{campaign['id']}", headers=HEADERS).json()["status"] == "sent"


def test_campaign_without_contacts_is_bad_request() -> None:
    client = _client()
    campaign = client.post(
        "/api/email-campaigns",
        json={"name": "Intro", "subject": "Hello", "template": "Hi", "contact_ids": []},
        headers=HEADERS,
    ).json()
    resp = client.post(f"/api/email-campaigns/{campaign['id']}/send", headers=HEADERS)
    assert resp.status_code == 400


def test_resume_template_default_switch() -> None:
    client = _client()
    first = client.post("/api/resume-templates", json={"name": "A", "content": "a", "is_default": True}, headers=HEADERS).json()
    second = client.post("/api/resume-templates", json={"name": "B", "content": "b"}, headers=HEADERS).json()

    resp = client.post(f"/api/resume-templates/{second['id']}/default", headers=HEADERS)
    assert resp.json()["is_default"] is True

    templates = {item["id"]: item for item in client.get("/api/resume-templates", headers=HEADERS).json()}
    assert templates[first["id"]]["is_default"] is False


def test_auto_apply_endpoints() -> None:
    client = _client()
    assert client.post("/api/auto-apply/toggle", json={"enabled": True}, headers=HEADERS).status_code == 400

    client.post("/api/settings", json={"interview_free_only": True}, headers=HEADERS)
    assert client.post("/api/auto-apply/toggle", json={"enabled": True}, headers=HEADERS).status_code == 200

    jobs = client.get("/api/auto-apply/search", headers=HEADERS).json()
    assert [job["title"] for job in jobs] == ["React Developer"]

    resp = client.post(
        "/api/auto-apply/apply",
        json={"job_id": 1, "title": "React Developer", "company": "TechCorp", "pay_rate": 75},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["application"]["platform"] == "Upwork"
    assert client.get("/api/stats/today", headers=HEADERS).json()["applications_count"] == 1


def test_email_ingest_with_another_users_message_id_is_rejected() -> None:
    client = _client()
    first = client.post(
        "/api/emails",
        json={"message_id": "<m@x>", "subject": "Offer", "content": "salary details"},
        headers=HEADERS,
    )
    assert first.status_code == 200

    resp = client.post("/api/emails", json={"message_id": "<m@x>"}, headers=OTHER)
    assert resp.status_code == 400
    assert "salary details" not in resp.text

    again = client.post("/api/emails", json={"message_id": "<m@x>"}, headers=HEADERS)
    assert again.json()["id"] == first.json()["id"]


def test_email_cannot_be_linked_to_another_users_application() -> None:
    client = _client()
    foreign = client.post(
        "/api/applications",
        json={"title": "Dev", "company": "Acme", "platform": "Upwork"},
        headers=OTHER,
    ).json()
    email = client.post("/api/emails", json={"subject": "Hi"}, headers=HEADERS).json()

    resp = client.put(f"/api/emails/{email['id']}", json={"job_application_id": foreign["id"]}, headers=HEADERS)
    assert resp.status_code == 404

    own = client.post(
        "/api/applications",
        json={"title": "Dev", "company": "Acme", "platform": "Upwork"},
        headers=HEADERS,
    ).json()
    resp = client.put(f"/api/emails/{email['id']}", json={"job_application_id": own["id"]}, headers=HEADERS)
    assert resp.json()["job_application_id"] == own["id"]
