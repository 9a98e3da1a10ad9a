"""Tests for server-side rule matching and usage recording."""

from sqlalchemy.exc import OperationalError

from utm_magic import crud
from utm_magic.core.database import SessionLocal
from utm_magic.core.rule_matching_service import RuleMatchingService
from utm_magic.models import ContentRule, RuleUsage


def add_rule(db, value="google", condition_type="utm_source", active=True, selector="h1"):
    return crud.create_rule(
        db,
        selector=selector,
        condition_type=condition_type,
        condition_value=value,
        replacement_content="<strong>Hello</strong>",
        active=active,
    )


def usage_count(db, rule_id=None):
    query = db.query(RuleUsage)
    if rule_id is not None:
        query = query.filter(RuleUsage.rule_id == rule_id)
    return query.count()


def test_exact_match_returns_rule(db_session):
    rule = add_rule(db_session)

    matched = RuleMatchingService(db_session).match({"utm_source": "google"})

    assert [r.id for r in matched] == [rule.id]
    assert matched[0].replacement_content == "<strong>Hello</strong>"


def test_matching_is_case_sensitive(db_session):
    add_rule(db_session, value="Google")

    assert RuleMatchingService(db_session).match({"utm_source": "google"}) == []


def test_inactive_rules_never_match(db_session):
    add_rule(db_session, active=False)

    assert RuleMatchingService(db_session).match({"utm_source": "google"}) == []


def test_only_the_named_field_is_compared(db_session):
    add_rule(db_session, condition_type="utm_campaign", value="google")

    assert RuleMatchingService(db_session).match({"utm_source": "google"}) == []


def test_no_attribution_returns_nothing_and_records_no_usage(db_session, monkeypatch):
    add_rule(db_session)

    def fail_if_called(db):
        raise AssertionError("rules should not be loaded")

    monkeypatch.setattr(crud, "get_active_rules", fail_if_called)

    assert RuleMatchingService(db_session).match({"utm_source": "", "ref": "x"}) == []
    assert usage_count(db_session) == 0


def test_usage_recorded_per_request(db_session):
    rule = add_rule(db_session)
    service = RuleMatchingService(db_session)

    service.match({"utm_source": "google"}, page_url="https://example.com/a")
    service.match({"utm_source": "google"}, page_url="https://example.com/a")

    assert usage_count(db_session, rule.id) == 2
    stored = db_session.query(ContentRule).filter(ContentRule.id == rule.id).one()
    assert stored.usage_count == 2


def test_usage_failure_does_not_drop_rule(db_session, monkeypatch):
    rule = add_rule(db_session)

    def broken_usage(db, rule_id, condition_type, condition_value, page_url=None):
        raise OperationalError("INSERT INTO rule_usage", {}, Exception("database is locked"))

    monkeypatch.setattr(crud, "record_rule_usage", broken_usage)

    matched = RuleMatchingService(db_session).match({"utm_source": "google"})

    assert [r.id for r in matched] == [rule.id]


def test_rule_deleted_before_usage_write_still_matches(db_session, monkeypatch):
    rule_id = add_rule(db_session).id
    load_rules = crud.get_active_rules

    def load_then_delete(db):
        # The dashboard removes the rule between the read and the usage write
        rules = load_rules(db)
        other = SessionLocal()
        try:
            other.query(ContentRule).filter(ContentRule.id == rule_id).delete()
            other.commit()
        finally:
            other.close()
        return rules

    monkeypatch.setattr(crud, "get_active_rules", load_then_delete)

    matched = RuleMatchingService(db_session).match({"utm_source": "google"})

    assert [r.id for r in matched] == [rule_id]
    assert db_session.query(ContentRule).count() == 0
