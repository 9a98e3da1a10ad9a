"""Content rule query endpoint used by the client engine on page load."""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.rule_matching_service import RuleMatchingService
from .. import schemas

router = APIRouter(prefix="/functions/v1", tags=["Content Rules"])

logger = logging.getLogger(__name__)


@router.get("/utm-content", response_model=schemas.RulesResponse)
async def get_content_rules(request: Request, db: Session = Depends(get_db)):
    """
    Return the active content rules matching the query's attribution
    parameters. Omitted or empty parameters are never matched.
    """
    params = dict(request.query_params)
    referrer = request.headers.get("referer")
    logger.info(f"Received parameters: {params}")

    try:
        rules = RuleMatchingService(db).match(params, page_url=referrer)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching rules: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch content rules"}
        )

    return schemas.RulesResponse(rules=rules, params=params, referrer=referrer)
