"""
Workers Logpush ingestion endpoint.

Receives gzip-compressed trace event deliveries and forwards their logs to
the configured OTLP/HTTP destination.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from logpush_otel.config import settings
from logpush_otel.exceptions import InvalidContentEncodingError, LogpushError
from logpush_otel.pipeline.ingestion import ingest_logpush_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["logpush"])


def get_http_transport() -> Optional[httpx.BaseTransport]:
    """Outbound transport for deliveries; None uses httpx's default."""
    return None


def _require_authorization(authorization: Optional[str]) -> None:
    if settings.authorization and authorization != settings.authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header",
        )


@router.post("/", response_class=PlainTextResponse)
async def ingest_logpush(
    request: Request,
    content_encoding: Optional[str] = Header(default=None, alias="Content-Encoding"),
    authorization: Optional[str] = Header(default=None),
    transport: Optional[httpx.BaseTransport] = Depends(get_http_transport),
) -> PlainTextResponse:
    """Ingest a Logpush delivery and export its logs."""
    _require_authorization(authorization)

    if content_encoding != "gzip":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Content-Encoding header",
        )

    body = await request.body()

    try:
        await ingest_logpush_payload(
            body, content_encoding, settings=settings, transport=transport
        )
    except InvalidContentEncodingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except LogpushError as exc:
        logger.error("Failed to ingest Logpush delivery: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    return PlainTextResponse("ingested")
