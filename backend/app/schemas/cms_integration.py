import hashlib
import re
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from app.models.cms_integration import CmsType, SyncMode

CANONICAL_TARGET_FIELDS = ("title", "content", "file_type", "file_size", "metadata", "tags")

_EXTENSION_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class FieldMapping(BaseModel):
    """One ordered (source path, target field, transform) triple."""

    model_config = ConfigDict(populate_by_name=True)

    source_field: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("source_field", "sourceField"),
    )
    target_field: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("target_field", "targetField"),
    )
    transform: str | None = None

    @field_validator("target_field")
    @classmethod
    def validate_target_field(cls, v: str) -> str:
        if v in CANONICAL_TARGET_FIELDS or _EXTENSION_FIELD_RE.match(v):
            return v
        raise ValueError(
            f"target_field must be one of {CANONICAL_TARGET_FIELDS} or a custom identifier"
        )

    @field_validator("transform", mode="before")
    @classmethod
    def empty_transform_is_none(cls, v: Any) -> Any:
        return v or None


class SyncSchedule(BaseModel):
    enabled: bool = False
    type: Literal["manual", "interval", "cron", "webhook"] = "manual"
    interval: int | None = Field(default=None, ge=1, description="Minutes between runs")
    cron_expression: str | None = Field(
        default=None,
        validation_alias=AliasChoices("cron_expression", "cronExpression"),
    )
    timezone: str = "UTC"

    @model_validator(mode="after")
    def check_trigger(self) -> "SyncSchedule":
        if self.enabled and self.type == "interval" and not self.interval:
            raise ValueError("interval schedules require 'interval' minutes")
        if self.enabled and self.type == "cron" and not self.cron_expression:
            raise ValueError("cron schedules require 'cron_expression'")
        return self


class CmsIntegrationCreate(BaseModel):
    cms_type: CmsType
    name: str = Field(..., min_length=1, max_length=255)
    config: dict[str, Any] = Field(default_factory=dict)
    target_collection: str = Field(..., min_length=1, max_length=255)
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    sync_schedule: SyncSchedule | None = None
    sync_mode: SyncMode = SyncMode.MANUAL
    is_active: bool = True


class CmsIntegrationUpdate(BaseModel):
    """Partial update. ``cms_type`` is deliberately absent: it cannot change."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    config: dict[str, Any] | None = None
    target_collection: str | None = Field(default=None, min_length=1, max_length=255)
    field_mappings: list[FieldMapping] | None = None
    sync_schedule: SyncSchedule | None = None
    sync_mode: SyncMode | None = None
    is_active: bool | None = None


class CmsIntegrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    cms_type: str
    name: str
    config: dict[str, Any]
    target_collection: str
    field_mappings: list[FieldMapping]
    sync_schedule: SyncSchedule | None = None
    sync_mode: str
    is_active: bool
    webhook_url: str | None = None
    webhook_events: list[str] | None = None
    last_sync_status: str | None = None
    last_sync_at: datetime | None = None
    last_sync_count: int | None = None
    last_sync_error: str | None = None
    next_sync_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    webhook_secret: str | None = Field(default=None, exclude=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_webhook_secret(self) -> bool:
        return bool(self.webhook_secret)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def webhook_secret_fingerprint(self) -> str | None:
        if not self.webhook_secret:
            return None
        return hashlib.sha256(self.webhook_secret.encode()).hexdigest()[:12]


class ConnectionTestRequest(BaseModel):
    cms_type: CmsType
    config: dict[str, Any] = Field(default_factory=dict)


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str | None = None


class SyncRequest(BaseModel):
    mode: Literal["full", "incremental"] = "full"


class WebhookSetupRequest(BaseModel):
    webhook_url: str = Field(..., min_length=1, max_length=2048)


class WebhookSetupResponse(BaseModel):
    """Returned exactly once, when the webhook is registered."""

    url: str
    secret: str
    events: list[str]
