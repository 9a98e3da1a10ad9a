"""Rule Store operations: active rule reads and usage-count writes."""

import uuid
from typing import List, Optional
from sqlalchemy.orm import Session

from ..models import ContentRule, RuleUsage


def get_active_rules(db: Session) -> List[ContentRule]:
    """Return every rule flagged active."""
    return db.query(ContentRule).filter(ContentRule.active.is_(True)).all()


def create_rule(
    db: Session,
    selector: str,
    condition_type: str,
    condition_value: str,
    replacement_content: str,
    name: Optional[str] = None,
    active: bool = True,
) -> ContentRule:
    """Create a content rule."""
    db_rule = ContentRule(
        name=name,
        selector=selector,
        condition_type=condition_type,
        condition_value=condition_value,
        replacement_content=replacement_content,
        active=active,
        usage_count=0,
    )
    db.add(db_rule)
    db.commit()
    db.refresh(db_rule)
    return db_rule


def record_rule_usage(
    db: Session,
    rule_id: uuid.UUID,
    condition_type: str,
    condition_value: str,
    page_url: Optional[str] = None,
) -> RuleUsage:
    """Append a usage record for a matched rule and bump its counter in SQL."""
    usage = RuleUsage(
        rule_id=rule_id,
        condition_type=condition_type,
        condition_value=condition_value,
        page_url=page_url,
    )
    db.add(usage)
    db.query(ContentRule).filter(ContentRule.id == rule_id).update(
        {ContentRule.usage_count: ContentRule.usage_count + 1},
        synchronize_session=False,
    )
    db.commit()
    return usage
