"""Rule Matching Service - picks the content rules that apply to a request."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, schemas

logger = logging.getLogger(__name__)


class RuleMatchingService:
    """Matches inbound attribution parameters against active content rules."""

    def __init__(self, db: Session):
        self.db = db

    def match(self, params: Dict[str, Any], page_url: Optional[str] = None) -> List[schemas.ContentRule]:
        """
        Return the active rules whose condition equals the matching request
        parameter exactly. Each returned rule gets one usage record.
        """
        attribution = schemas.extract_attribution(params)
        if not attribution:
            logger.debug("No attribution parameters on rule request; skipping rule lookup")
            return []

        # Storage errors here propagate; there is nothing to match against
        active_rules = crud.get_active_rules(self.db)

        matched = [
            rule for rule in active_rules
            if schemas.condition_matches(rule.condition_type, rule.condition_value, attribution)
        ]
        # Usage writes may roll back and expire the ORM rows; only snapshots are used after this
        result = [schemas.ContentRule.model_validate(rule) for rule in matched]
        total = len(active_rules)

        for rule in result:
            self._record_usage(rule, page_url)

        logger.info(f"Matched {len(result)} of {total} active rules for {attribution}")
        return result

    def _record_usage(self, rule: schemas.ContentRule, page_url: Optional[str]) -> None:
        """Write a usage record; failures never affect the match result."""
        try:
            crud.record_rule_usage(
                self.db,
                rule.id,
                rule.condition_type,
                rule.condition_value,
                page_url=page_url,
            )
        except Exception as e:
            logger.error(f"Failed to record usage for rule {rule.id}: {e}", exc_info=True)
            try:
                self.db.rollback()
            except SQLAlchemyError as rollback_error:
                logger.error(f"Rollback after usage failure also failed: {rollback_error}")
