"""Tracking ingestion endpoints for the embedded client engine."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import ipaddress
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.event_ingestion_service import EventIngestionService, SchemaMismatchError
from .. import schemas

router = APIRouter(prefix="/functions/v1", tags=["Tracking"])

logger = logging.getLogger(__name__)


def _valid_ip(value: Optional[str]) -> Optional[str]:
    try:
        return str(ipaddress.ip_address((value or "").strip()))
    except ValueError:
        return None


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the visitor's real IP address from the request.
    A header value that is not an IP address is ignored rather than stored.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        ip = _valid_ip(forwarded_for.split(",")[0])
        if ip:
            return ip

    cf_ip = _valid_ip(request.headers.get("CF-Connecting-IP"))
    if cf_ip:
        return cf_ip

    return _valid_ip(request.client.host) if request.client else None


def _error_response(status_code: int, received_at: datetime, message: str, **extra) -> JSONResponse:
    body = schemas.TrackingError(error=message, timestamp=received_at, **extra)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def _ingest(raw: Any, request: Request, db: Session, received_at: datetime) -> JSONResponse:
    if not isinstance(raw, dict):
        return _error_response(status.HTTP_400_BAD_REQUEST, received_at, "Tracking payload must be a JSON object")

    data: Dict[str, Any] = dict(raw)
    # The stored timestamp is the server's; keep what the client observed
    if data.get("timestamp"):
        data["client_timestamp"] = data["timestamp"]
    data.update(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent") or data.get("user_agent"),
        timestamp=received_at,
    )

    try:
        payload = schemas.TrackingPayload.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rejected tracking payload: {e}")
        return _error_response(status.HTTP_400_BAD_REQUEST, received_at, "Invalid tracking payload")

    logger.debug(f"Tracking payload: {payload.event_type} for client {payload.client_id}")

    try:
        ack = EventIngestionService(db).ingest(payload, received_at=received_at)
    except SchemaMismatchError as e:
        logger.error(str(e))
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            received_at,
            str(e),
            error_code="schema_mismatch",
            missing_columns=e.missing_columns,
        )
    except Exception as e:
        logger.error(f"Error storing tracking event: {e}", exc_info=True)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, received_at, str(e))

    return JSONResponse(content=ack.model_dump(mode="json"))


@router.post("/utm-tracking")
async def receive_tracking_event(request: Request, db: Session = Depends(get_db)) -> JSONResponse:
    """
    Receive one tracking event posted by the client engine.
    Beacon deliveries arrive as text/plain, so the body is parsed as JSON
    regardless of its content type.
    """
    received_at = datetime.now(timezone.utc)
    try:
        raw = await request.json()
    except ValueError:
        return _error_response(status.HTTP_400_BAD_REQUEST, received_at, "Invalid JSON payload")
    return _ingest(raw, request, db, received_at)


@router.get("/utm-tracking")
async def receive_tracking_query(request: Request, db: Session = Depends(get_db)) -> JSONResponse:
    """Receive one tracking event encoded in the query string."""
    received_at = datetime.now(timezone.utc)
    return _ingest(dict(request.query_params), request, db, received_at)
