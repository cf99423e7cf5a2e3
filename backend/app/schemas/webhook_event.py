"""Inbound CMS webhook schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WebhookEventPayload(BaseModel):
    """Body of ``POST /v1/cms_webhooks/``."""

    integration_id: UUID
    event_type: str = Field(..., min_length=1, max_length=100)
    payload: dict[str, Any]


class WebhookEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    integration_id: UUID
    event_type: str
    resource_id: str | None = None
    payload: dict[str, Any]
    signature_verified: bool
    processed: bool
    processed_at: datetime | None = None
    processing_result: dict[str, Any] | None = None
    processing_error: str | None = None
    received_at: datetime


class WebhookAcceptedResponse(BaseModel):
    success: bool = True
    webhook_event_id: UUID
    result: dict[str, Any]
