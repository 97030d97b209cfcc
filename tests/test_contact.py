# tests/test_contact.py
import asyncio
import json
import uuid

from sqlalchemy import select

from backend.models import AuditLogEntry, Contact


def contact_payload(**overrides):
    payload = {
        "firstName": "Jane",
        "lastName": "Doe",
        "email": "jane.doe@acme.io",
        "company": "Acme Security",
        "jobTitle": "CISO",
        "message": "We would like a quote for an external pentest.",
        "serviceTier": "tier1",
    }
    payload.update(overrides)
    return payload


def fetch_all(app, model):
    async def _run():
        async with app.state.database.session() as session:
            result = await session.execute(select(model))
            return list(result.scalars())

    return asyncio.run(_run())


def test_submit_contact_returns_201_with_uuid(client, app):
    response = client.post(
        "/api/contact",
        json=contact_payload(),
        headers={"User-Agent": "pytest-agent", "Referer": "https://securepent.com/pricing"},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["success"] is True
    assert uuid.UUID(body["id"])

    contacts = fetch_all(app, Contact)
    assert len(contacts) == 1
    contact = contacts[0]
    assert contact.uuid == body["id"]
    assert contact.status == "new"
    assert contact.priority == "normal"
    assert contact.user_agent == "pytest-agent"
    assert contact.referrer == "https://securepent.com/pricing"


def test_leads_alias_accepts_submission(client):
    response = client.post("/api/leads", json=contact_payload())
    assert response.status_code == 201


def test_tier2_submission_is_high_priority(client, app):
    client.post("/api/contact", json=contact_payload(serviceTier="tier2"))
    assert fetch_all(app, Contact)[0].priority == "high"


def test_message_length_boundary(client):
    too_short = client.post("/api/contact", json=contact_payload(message="123456789"))
    assert too_short.status_code == 400
    assert too_short.json()["code"] == "validation_error"
    assert "Message must be at least 10 characters" in too_short.json()["details"]

    just_enough = client.post("/api/contact", json=contact_payload(message="1234567890"))
    assert just_enough.status_code == 201


def test_invalid_email_rejected(client, app):
    response = client.post("/api/contact", json=contact_payload(email="jane-at-acme"))
    assert response.status_code == 400
    assert fetch_all(app, Contact) == []


def test_missing_and_unknown_fields_rejected(client):
    missing = contact_payload()
    del missing["email"]
    assert client.post("/api/contact", json=missing).status_code == 400

    extra = contact_payload(isAdmin=True)
    response = client.post("/api/contact", json=extra)
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


def test_invalid_service_tier_rejected(client):
    assert client.post("/api/contact", json=contact_payload(serviceTier="tier9")).status_code == 400


def test_duplicate_submissions_create_separate_rows(client, app):
    first = client.post("/api/contact", json=contact_payload()).json()["id"]
    second = client.post("/api/contact", json=contact_payload()).json()["id"]
    assert first != second
    assert len(fetch_all(app, Contact)) == 2


def test_html_is_stripped_and_suspicious_input_audited(client, app):
    response = client.post(
        "/api/contact",
        json=contact_payload(message="Hello <script>alert(1)</script> team, 1 OR 1=1 please"),
    )
    assert response.status_code == 201

    contact = fetch_all(app, Contact)[0]
    assert "<script>" not in contact.message

    entries = fetch_all(app, AuditLogEntry)
    suspicious = [entry for entry in entries if entry.action == "suspicious_contact_submission"]
    assert len(suspicious) == 1
    assert suspicious[0].severity == "critical"
    assert suspicious[0].entity_id == contact.uuid


def test_status_lookup(client):
    submission_id = client.post("/api/contact", json=contact_payload()).json()["id"]

    response = client.get(f"/api/contact/status/{submission_id}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == submission_id
    assert data["status"] == "new"
    assert data["submittedAt"]

    # looking up does not mark the contact as read
    again = client.get(f"/api/contact/status/{submission_id}")
    assert again.json()["data"]["status"] == "new"


def test_status_lookup_errors(client):
    assert client.get("/api/contact/status/not-a-uuid").status_code == 400

    response = client.get(f"/api/contact/status/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_oversized_body_rejected(client):
    response = client.post("/api/contact", json=contact_payload(message="x" * 20000))
    assert response.status_code == 413
    assert response.json()["code"] == "payload_too_large"


def chunked(data, size=1024):
    for start in range(0, len(data), size):
        yield data[start:start + size]


def test_oversized_chunked_body_rejected(client, app):
    body = json.dumps(contact_payload(message="x" * 50000)).encode()
    response = client.post(
        "/api/contact",
        content=chunked(body),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["code"] == "payload_too_large"
    assert fetch_all(app, Contact) == []


def test_small_chunked_body_accepted(client, app):
    body = json.dumps(contact_payload()).encode()
    response = client.post(
        "/api/contact",
        content=chunked(body, size=64),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 201, response.text
    assert len(fetch_all(app, Contact)) == 1
