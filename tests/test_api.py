"""Tests for the HTTP endpoints."""

import json

from sqlalchemy.exc import OperationalError

from utm_magic import crud
from utm_magic.models import ClickTracking, RuleUsage, UTMTracking

TRACKING_URL = "/functions/v1/utm-tracking"
CONTENT_URL = "/functions/v1/utm-content"


def test_health_check(client):
    response = client.get("/system/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_post_pageview(client, db_session):
    response = client.post(
        TRACKING_URL,
        json={
            "client_id": "c-1",
            "utm_source": "newsletter",
            "page_url": "https://example.com/",
            "timestamp": "2024-05-01T10:00:00Z",
        },
        headers={"User-Agent": "pytest-agent", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["event_type"] == "pageview"
    assert body["timestamp"]

    record = db_session.query(UTMTracking).one()
    assert record.ip_address == "203.0.113.7"
    assert record.user_agent == "pytest-agent"
    assert record.first_visit is True
    assert record.properties["client_timestamp"] == "2024-05-01T10:00:00Z"


def test_unparseable_forwarded_for_is_not_stored(client, db_session):
    response = client.post(
        TRACKING_URL,
        json={"client_id": "c-1", "page_url": "https://example.com/"},
        headers={"X-Forwarded-For": "unknown-" + "x" * 80 + ", 10.0.0.1"},
    )

    assert response.status_code == 200
    assert db_session.query(UTMTracking).one().ip_address is None


def test_cloudflare_ip_used_when_forwarded_for_unparseable(client, db_session):
    response = client.post(
        TRACKING_URL,
        json={"client_id": "c-1", "page_url": "https://example.com/"},
        headers={"X-Forwarded-For": "garbage", "CF-Connecting-IP": "2001:db8::1"},
    )

    assert response.status_code == 200
    assert db_session.query(UTMTracking).one().ip_address == "2001:db8::1"


def test_beacon_body_sent_as_text(client, db_session):
    response = client.post(
        TRACKING_URL,
        content=json.dumps({"event_type": "click", "x": 5, "y": 6, "element_selector": "#cta"}),
        headers={"Content-Type": "text/plain;charset=UTF-8"},
    )

    assert response.status_code == 200
    assert response.json()["event_type"] == "click"
    assert db_session.query(ClickTracking).count() == 1


def test_query_string_tracking(client, db_session):
    response = client.get(TRACKING_URL, params={"client_id": "c-9", "utm_source": "google"})

    assert response.status_code == 200
    assert db_session.query(UTMTracking).one().utm_source == "google"


def test_malformed_json_rejected(client):
    response = client.post(TRACKING_URL, content="{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid JSON payload"


def test_non_object_payload_rejected(client):
    response = client.post(TRACKING_URL, json=["pageview"])

    assert response.status_code == 400


def test_schema_mismatch_reported_distinctly(client, monkeypatch):
    def missing_column(*args, **kwargs):
        raise OperationalError("INSERT INTO utm_tracking", {}, Exception("table utm_tracking has no column named is_direct"))

    monkeypatch.setattr(crud, "create_utm_tracking", missing_column)

    response = client.post(TRACKING_URL, json={"client_id": "c-1"})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "schema_mismatch"
    assert body["missing_columns"] == ["is_direct"]


def test_other_storage_errors_are_500(client, monkeypatch):
    def locked(*args, **kwargs):
        raise OperationalError("INSERT INTO utm_tracking", {}, Exception("database is locked"))

    monkeypatch.setattr(crud, "create_utm_tracking", locked)

    response = client.post(TRACKING_URL, json={"client_id": "c-1"})

    assert response.status_code == 500
    assert "error_code" not in response.json()


def test_content_rules_matched(client, db_session):
    crud.create_rule(
        db_session,
        selector="button#cta",
        condition_type="utm_source",
        condition_value="newsletter",
        replacement_content="<b>Subscribe</b>",
    )

    response = client.get(CONTENT_URL, params={"utm_source": "newsletter"}, headers={"Referer": "https://example.com/"})

    assert response.status_code == 200
    body = response.json()
    assert [rule["selector"] for rule in body["rules"]] == ["button#cta"]
    assert body["params"] == {"utm_source": "newsletter"}
    assert body["referrer"] == "https://example.com/"
    assert db_session.query(RuleUsage).count() == 1


def test_content_rules_without_params(client):
    response = client.get(CONTENT_URL)

    assert response.status_code == 200
    assert response.json()["rules"] == []


def test_content_rules_storage_failure(client, monkeypatch):
    def unavailable(db):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(crud, "get_active_rules", unavailable)

    response = client.get(CONTENT_URL, params={"utm_source": "newsletter"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch content rules"}


def test_tracking_preflight_accepts_any_origin(client):
    response = client.options(TRACKING_URL, headers={"Origin": "https://customer-site.example"})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://customer-site.example"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_restricted_paths_reject_unknown_origins(client):
    response = client.get("/system/health", headers={"Origin": "https://unknown.example"})

    assert response.status_code == 400


def test_restricted_paths_allow_configured_origins(client):
    response = client.get("/system/health", headers={"Origin": "http://localhost:3000"})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
