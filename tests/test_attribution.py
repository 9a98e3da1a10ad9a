"""Tests for first-touch and last-touch attribution."""

from utm_magic.client.attribution import AttributionStore, parse_attribution


def test_parse_attribution_ignores_empty_and_unknown_params():
    params = parse_attribution("https://example.com/landing?utm_source=newsletter&utm_medium=&ref=abc")

    assert params == {"utm_source": "newsletter"}


def test_parse_attribution_accepts_bare_query_string():
    assert parse_attribution("?utm_campaign=spring") == {"utm_campaign": "spring"}


def test_newsletter_first_visit_sets_both_snapshots(persistent):
    store = AttributionStore(persistent)

    store.record_incoming(parse_attribution("https://example.com/?utm_source=newsletter&utm_medium=email"))

    expected = {"utm_source": "newsletter", "utm_medium": "email"}
    assert store.first_touch() == expected
    assert store.last_touch() == expected


def test_first_touch_is_immutable(persistent):
    store = AttributionStore(persistent)
    store.record_incoming({"utm_source": "newsletter"})

    store.record_incoming({"utm_source": "google", "utm_campaign": "brand"})

    assert store.first_touch() == {"utm_source": "newsletter", "utm_campaign": "brand"}
    assert store.last_touch() == {"utm_source": "google", "utm_campaign": "brand"}


def test_absent_fields_never_clear_values(persistent):
    store = AttributionStore(persistent)
    store.record_incoming({"utm_source": "newsletter", "utm_medium": "email"})

    store.record_incoming({"utm_source": "", "utm_medium": None})

    assert store.last_touch() == {"utm_source": "newsletter", "utm_medium": "email"}


def test_current_prefers_url_values(persistent):
    store = AttributionStore(persistent)
    store.record_incoming({"utm_source": "newsletter", "utm_medium": "email"})

    current = store.current({"utm_source": "facebook"})

    assert current == {"utm_source": "facebook", "utm_medium": "email"}
    # The override applies to this request only
    assert store.last_touch()["utm_source"] == "newsletter"
