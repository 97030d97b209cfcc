# tests/test_analytics.py
import asyncio

from sqlalchemy import select

from backend.models import AnalyticsEvent, AnalyticsSession
from backend.services.analytics import (
    bounded_event_data,
    clamp_scroll_depth,
    parse_user_agent,
    round_position,
)

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
EDGE_WINDOWS = CHROME_WINDOWS + " Edg/120.0.0.0"
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


def load_session(app, session_id):
    async def _run():
        async with app.state.database.session() as session:
            result = await session.execute(
                select(AnalyticsSession).where(AnalyticsSession.session_id == session_id)
            )
            return result.scalars().first()

    return asyncio.run(_run())


def load_events(app, session_id):
    async def _run():
        async with app.state.database.session() as session:
            result = await session.execute(
                select(AnalyticsEvent).where(AnalyticsEvent.session_id == session_id).order_by(AnalyticsEvent.id)
            )
            return list(result.scalars())

    return asyncio.run(_run())


def start_session(client, **headers):
    response = client.post("/api/analytics/session", json={"landingPage": "/pricing"}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_parse_user_agent():
    info = parse_user_agent(CHROME_WINDOWS)
    assert (info.device_type, info.browser, info.os) == ("desktop", "Chrome", "Windows")

    info = parse_user_agent(EDGE_WINDOWS)
    assert info.browser == "Edge"
    assert info.os == "Windows"
    assert info.device_type == "desktop"

    info = parse_user_agent(SAFARI_IPHONE)
    assert info.device_type == "mobile"
    assert info.browser == "Safari"
    # "like Mac OS X" matches the macOS rule first
    assert info.os == "MacOS"

    info = parse_user_agent(FIREFOX_LINUX)
    assert (info.browser, info.os) == ("Firefox", "Linux")

    info = parse_user_agent("")
    assert (info.device_type, info.browser, info.os) == ("unknown", "unknown", "unknown")


def test_event_value_helpers():
    assert clamp_scroll_depth(140) == 100
    assert clamp_scroll_depth(-5) == 0
    assert clamp_scroll_depth(None) is None
    assert round_position(10.6) == 11
    assert bounded_event_data({"a": 1}) == {"a": 1}
    assert bounded_event_data({"blob": "x" * 2000}) is None


def test_start_session_records_visitor(client, app):
    body = start_session(client, **{"User-Agent": CHROME_WINDOWS, "Referer": "https://google.com/search"})
    assert body["success"] is True
    assert body["sessionId"]
    assert body["visitorId"]

    stored = load_session(app, body["sessionId"])
    assert stored.visitor_id == body["visitorId"]
    assert stored.browser == "Chrome"
    assert stored.os == "Windows"
    assert stored.landing_page == "/pricing"
    assert stored.referrer == "https://google.com/search"


def test_existing_session_id_is_echoed(client):
    response = client.post(
        "/api/analytics/session",
        json={"sessionId": "existing-session", "visitorId": "visitor-1234"},
    )
    assert response.json() == {"success": True, "sessionId": "existing-session", "visitorId": "visitor-1234"}


def test_track_page_view_increments_counter(client, app):
    session_id = start_session(client)["sessionId"]

    for _ in range(2):
        response = client.post(
            "/api/analytics/track",
            json={"sessionId": session_id, "eventType": "page_view", "pageUrl": "/pricing"},
        )
        assert response.status_code == 200

    assert load_session(app, session_id).page_views == 2


def test_track_click_stores_clamped_values(client, app):
    session_id = start_session(client)["sessionId"]
    response = client.post(
        "/api/analytics/track",
        json={
            "sessionId": session_id,
            "eventType": "CLICK",
            "elementId": "cta-button",
            "elementText": "<b>Book a call</b>",
            "xPosition": 120.4,
            "yPosition": 80.6,
            "scrollDepth": 250,
            "eventData": {"variant": "b"},
        },
    )
    assert response.status_code == 200

    event = load_events(app, session_id)[0]
    assert event.event_type == "click"
    assert event.element_text == "Book a call"
    assert (event.x_position, event.y_position) == (120, 81)
    assert event.scroll_depth == 100
    assert event.event_data == {"variant": "b"}


def test_track_validation(client):
    assert client.post("/api/analytics/track", json={"eventType": "click"}).status_code == 400

    session_id = start_session(client)["sessionId"]
    invalid = client.post("/api/analytics/track", json={"sessionId": session_id, "eventType": "hover"})
    assert invalid.status_code == 400
    assert "page_view" in invalid.json()["details"]["allowed"]

    unknown = client.post("/api/analytics/track", json={"sessionId": "missing", "eventType": "click"})
    assert unknown.status_code == 404


def test_out_of_range_numbers_are_rejected(client, app):
    session_id = start_session(client)["sessionId"]

    huge = client.post(
        "/api/analytics/track",
        json={"sessionId": session_id, "eventType": "click", "xPosition": 1e20},
    )
    assert huge.status_code == 400
    assert huge.json()["code"] == "validation_error"

    negative = client.post(
        "/api/analytics/track",
        json={"sessionId": session_id, "eventType": "click", "yPosition": -1},
    )
    assert negative.status_code == 400

    not_a_number = client.post(
        "/api/analytics/track",
        content=f'{{"sessionId": "{session_id}", "eventType": "scroll", "scrollDepth": NaN}}',
        headers={"Content-Type": "application/json"},
    )
    assert not_a_number.status_code == 400
    assert load_events(app, session_id) == []


def test_heartbeat_rejects_unbounded_time(client, app):
    session_id = start_session(client)["sessionId"]

    huge = client.post("/api/analytics/heartbeat", json={"sessionId": session_id, "timeOnPage": 1e20})
    assert huge.status_code == 400

    not_a_number = client.post(
        "/api/analytics/heartbeat",
        content=f'{{"sessionId": "{session_id}", "timeOnPage": NaN}}',
        headers={"Content-Type": "application/json"},
    )
    assert not_a_number.status_code == 400
    assert load_session(app, session_id).total_time_seconds == 0


def test_event_data_with_nan_is_dropped():
    assert bounded_event_data({"ratio": float("nan")}) is None


def test_heartbeat(client, app):
    session_id = start_session(client)["sessionId"]
    response = client.post("/api/analytics/heartbeat", json={"sessionId": session_id, "timeOnPage": 42.4})
    assert response.status_code == 200

    stored = load_session(app, session_id)
    assert stored.total_time_seconds == 42
    assert stored.ended_at is not None

    assert client.post("/api/analytics/heartbeat", json={"sessionId": "missing"}).status_code == 404
    assert client.post("/api/analytics/heartbeat", json={}).status_code == 400
