"""Tests for server settings, client configuration and logging."""

import json
import logging

import pytest
from pydantic import ValidationError

from utm_magic.client.config import TrackerConfig
from utm_magic.core.config import Settings
from utm_magic.core.logging_config import JSONFormatter


def test_postgres_url_rewritten():
    settings = Settings(DATABASE_URL="postgres://user:pw@db:5432/utm")

    assert settings.DATABASE_URL == "postgresql+psycopg2://user:pw@db:5432/utm"


def test_log_level_normalized():
    assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    with pytest.raises(ValidationError):
        Settings(LOG_LEVEL="chatty")


def test_project_config_enables_delivery():
    config = TrackerConfig.for_project("abcd1234", track_mouse_movement=True)

    assert config.ingest_url == "https://abcd1234.supabase.co/functions/v1/utm-tracking"
    assert config.rules_url == "https://abcd1234.supabase.co/functions/v1/utm-content"
    assert config.track_mouse_movement is True
    assert config.delivery_enabled is True


@pytest.mark.parametrize("ingest_url", [
    "",
    "   ",
    "https://your-project-id.supabase.co/functions/v1/utm-tracking",
    "https://YOUR_ACTUAL_PROJECT_ID.supabase.co/functions/v1/utm-tracking",
])
def test_missing_or_placeholder_endpoint_disables_delivery(ingest_url):
    assert TrackerConfig(ingest_url=ingest_url).delivery_enabled is False


def test_sample_rate_bounds():
    with pytest.raises(ValidationError):
        TrackerConfig(sample_rate=1.5)


def test_json_formatter_includes_extra_fields():
    logger = logging.getLogger("utm_magic.test")
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 10, "Stored %s event", ("pageview",), None,
        extra={"client_id": "c-1"},
    )

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Stored pageview event"
    assert data["severity"] == "INFO"
    assert data["client_id"] == "c-1"
