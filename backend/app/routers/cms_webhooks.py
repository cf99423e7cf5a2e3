"""Inbound CMS webhook endpoint."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.services.connectors.base import get_connector_factory
from app.services.connectors.exceptions import (
    IntegrationNotFoundError,
    SignatureError,
    WebhookValidationError,
)
from app.services.sync_orchestrator import ConnectorFactory
from app.services.webhook_ingestor import WebhookIngestor, WebhookProcessingError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/",
    status_code=200,
    summary="Receive CMS webhook",
    responses={
        400: {"description": "Malformed body or missing fields"},
        401: {"description": "Invalid signature"},
        404: {"description": "Integration not found"},
        500: {"description": "Processing failed after the event was stored"},
    },
)
async def receive_cms_webhook(
    request: Request,
    ghost_signature: str | None = Header(None, alias="X-Ghost-Signature"),
    hub_signature: str | None = Header(None, alias="X-Hub-Signature-256"),
    db: Session = Depends(get_db),
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> Any:
    """Handle a push notification from an upstream CMS.

    Body: ``{"integration_id", "event_type", "payload"}``. The event is stored
    before it is processed and is never retried automatically.
    """
    body = await request.body()

    # Ghost and GitHub-style senders sign under fixed header names that the
    # configurable header cannot express, so they are read before it.
    signature = (
        ghost_signature
        or hub_signature
        or request.headers.get(settings.WEBHOOK_SIGNATURE_HEADER)
    )

    ingestor = WebhookIngestor(db, connector_factory)
    try:
        outcome = await ingestor.ingest(body, signature)
    except WebhookValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    except IntegrationNotFoundError:
        raise HTTPException(status_code=404, detail="Integration not found") from None
    except SignatureError as exc:
        logger.warning("Rejected CMS webhook: %s", exc)
        raise HTTPException(status_code=401, detail=str(exc)) from None
    except WebhookProcessingError as exc:
        return JSONResponse(
            status_code=500,
            content={
                "error": "Processing failed",
                "message": str(exc),
                "webhook_event_id": str(exc.event.id),
            },
        )

    return {
        "success": True,
        "webhook_event_id": str(outcome.event.id),
        "result": outcome.result,
    }
