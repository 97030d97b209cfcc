# tests/test_admin.py
import asyncio

import pytest

from conftest import ADMIN_PASSWORD


def submit_contact(client, first_name="Jane", company="Acme Security"):
    response = client.post(
        "/api/contact",
        json={
            "firstName": first_name,
            "lastName": "Doe",
            "email": f"{first_name.lower()}@acme.io",
            "company": company,
            "message": "Please contact us about a security assessment.",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


@pytest.fixture
def analyst_headers(app, client):
    async def _create():
        async with app.state.database.session() as session:
            await app.state.auth_service.ensure_admin(session, "analyst", "analyst-password", role="admin")

    asyncio.run(_create())
    response = client.post("/api/auth/login", json={"username": "analyst", "password": "analyst-password"})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def viewer_headers(app):
    token = app.state.tokens.create_access_token({"sub": "999", "username": "viewer", "role": "viewer"})
    return {"Authorization": f"Bearer {token}"}


def test_admin_routes_require_token(client):
    response = client.get("/api/admin/dashboard")
    assert response.status_code == 401


def test_admin_routes_reject_other_roles(client, viewer_headers):
    response = client.get("/api/admin/dashboard", headers=viewer_headers)
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


def test_dashboard_overview(client, auth_headers):
    submit_contact(client)
    session_id = client.post("/api/analytics/session", json={}).json()["sessionId"]
    client.post("/api/analytics/track", json={"sessionId": session_id, "eventType": "page_view", "pageUrl": "/"})

    response = client.get("/api/admin/dashboard", headers=auth_headers)
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["overview"]["totalContacts"] == 1
    assert data["overview"]["newContacts"] == 1
    assert data["overview"]["totalVisitors"] == 1
    assert data["overview"]["totalPageViews"] == 1
    assert data["topPages"] == [{"page_url": "/", "views": 1}]


def test_list_contacts_with_filters(client, auth_headers):
    submit_contact(client, first_name="Jane", company="Acme Security")
    submit_contact(client, first_name="Omar", company="Globex")

    response = client.get("/api/admin/contacts", headers=auth_headers)
    data = response.json()["data"]
    assert data["pagination"]["total"] == 2
    assert len(data["contacts"]) == 2

    searched = client.get("/api/admin/contacts", params={"search": "globex"}, headers=auth_headers)
    contacts = searched.json()["data"]["contacts"]
    assert [contact["first_name"] for contact in contacts] == ["Omar"]

    paged = client.get("/api/admin/contacts", params={"limit": 1, "page": 2}, headers=auth_headers)
    assert paged.json()["data"]["pagination"]["totalPages"] == 2
    assert len(paged.json()["data"]["contacts"]) == 1

    filtered = client.get("/api/admin/contacts", params={"status": "archived"}, headers=auth_headers)
    assert filtered.json()["data"]["contacts"] == []


def test_get_contact_marks_new_as_read(client, auth_headers):
    contact_id = submit_contact(client)

    response = client.get(f"/api/admin/contacts/{contact_id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "read"
    assert data["read_at"] is not None

    assert client.get("/api/admin/contacts/00000000-0000-4000-8000-000000000000", headers=auth_headers).status_code == 404


def test_oversized_numeric_contact_id_is_not_found(client, auth_headers):
    submit_contact(client)
    oversized = "99999999999999999999999"

    assert client.get(f"/api/admin/contacts/{oversized}", headers=auth_headers).status_code == 404
    response = client.put(
        f"/api/admin/contacts/{oversized}/status",
        json={"status": "read"},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"

    numeric = client.get("/api/admin/contacts/1", headers=auth_headers)
    assert numeric.status_code == 200


def test_page_number_is_bounded(client, auth_headers):
    response = client.get("/api/admin/contacts", params={"page": 10**20}, headers=auth_headers)
    assert response.status_code == 400


def test_update_contact_status(client, auth_headers):
    contact_id = submit_contact(client)

    invalid = client.put(
        f"/api/admin/contacts/{contact_id}/status",
        json={"status": "deleted"},
        headers=auth_headers,
    )
    assert invalid.status_code == 400

    response = client.put(
        f"/api/admin/contacts/{contact_id}/status",
        json={"status": "Contacted"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "contacted"

    detail = client.get(f"/api/admin/contacts/{contact_id}", headers=auth_headers).json()["data"]
    assert detail["status"] == "contacted"
    assert detail["contacted_at"] is not None

    log = client.get("/api/admin/audit-log", params={"action": "contact_status_changed"}, headers=auth_headers)
    entries = log.json()["data"]["entries"]
    assert len(entries) == 1
    assert (entries[0]["old_value"], entries[0]["new_value"]) == ("new", "contacted")


def test_analytics_listings(client, auth_headers):
    session_id = client.post("/api/analytics/session", json={}).json()["sessionId"]
    client.post(
        "/api/analytics/track",
        json={"sessionId": session_id, "eventType": "click", "pageUrl": "/", "elementId": "cta", "xPosition": 10, "yPosition": 20},
    )
    client.post(
        "/api/analytics/track",
        json={"sessionId": session_id, "eventType": "click", "pageUrl": "/", "elementId": "cta", "xPosition": 30, "yPosition": 40},
    )

    sessions = client.get("/api/admin/analytics/sessions", headers=auth_headers).json()["data"]
    assert sessions["pagination"]["total"] == 1

    events = client.get(
        "/api/admin/analytics/events",
        params={"sessionId": session_id, "eventType": "click"},
        headers=auth_headers,
    ).json()["data"]["events"]
    assert len(events) == 2

    clicks = client.get("/api/admin/analytics/clicks", headers=auth_headers).json()["data"]["clicks"]
    assert clicks[0]["element_id"] == "cta"
    assert clicks[0]["click_count"] == 2
    assert (clicks[0]["avg_x"], clicks[0]["avg_y"]) == (20, 30)


def test_chart_data(client, auth_headers):
    submit_contact(client)

    response = client.get("/api/admin/analytics/chart-data", params={"metric": "contacts"}, headers=auth_headers)
    assert response.status_code == 200
    chart = response.json()["data"]["chartData"]
    assert len(chart) == 1
    assert chart[0]["value"] == 1

    invalid = client.get("/api/admin/analytics/chart-data", params={"metric": "revenue"}, headers=auth_headers)
    assert invalid.status_code == 400


def test_audit_log_is_superadmin_only(client, auth_headers, analyst_headers):
    assert client.get("/api/admin/dashboard", headers=analyst_headers).status_code == 200
    assert client.get("/api/admin/audit-log", headers=analyst_headers).status_code == 403

    response = client.get("/api/admin/audit-log", headers=auth_headers)
    assert response.status_code == 200
    actions = [entry["action"] for entry in response.json()["data"]["entries"]]
    assert "login_success" in actions


def test_password_never_exposed(client, auth_headers):
    body = client.get("/api/auth/session", headers=auth_headers).text
    assert ADMIN_PASSWORD not in body
    assert "password_hash" not in body
