"""``order_by`` handling for the list endpoints."""

from __future__ import annotations

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from app.core.database import Base

# Columns each list endpoint may be sorted by, keyed by table name.
# JSON columns and secrets are never sortable.
SORTABLE_FIELDS: dict[str, frozenset[str]] = {
    "tenants": frozenset({"name", "created_at", "updated_at"}),
    "cms_integrations": frozenset(
        {
            "name",
            "cms_type",
            "sync_mode",
            "is_active",
            "last_sync_status",
            "last_sync_at",
            "next_sync_at",
            "created_at",
            "updated_at",
        }
    ),
    "cms_sync_logs": frozenset(
        {
            "sync_type",
            "status",
            "started_at",
            "completed_at",
            "documents_fetched",
            "documents_synced",
            "documents_failed",
            "created_at",
        }
    ),
    "cms_webhook_events": frozenset(
        {"event_type", "resource_id", "processed", "processed_at", "received_at"}
    ),
    "cms_synced_documents": frozenset(
        {"collection", "native_id", "last_synced_at", "created_at", "updated_at"}
    ),
}


def parse_order_by(
    model: type[Base],
    order_by: str | None,
    default_field: str = "created_at",
    default_direction: str = "desc",
) -> tuple[str, str]:
    """Resolve ``field:direction`` against the model's sortable columns.

    Unknown fields fall back to the default field; unknown directions to the
    default direction. A bare field sorts ascending.
    """
    if not order_by:
        return default_field, default_direction

    candidate_field, _, candidate_direction = order_by.partition(":")
    if candidate_field not in SORTABLE_FIELDS.get(model.__tablename__, frozenset()):
        return default_field, default_direction
    direction = candidate_direction or "asc"
    if direction not in ("asc", "desc"):
        direction = default_direction
    return candidate_field, direction


def apply_order_by(
    query: Query,  # type: ignore[type-arg]
    model: type[Base],
    order_by: str | None,
    default_field: str = "created_at",
    default_direction: str = "desc",
) -> Query:  # type: ignore[type-arg]
    """Order *query* by a sortable column, with ``id`` as a stable tiebreaker.

    Rows written within one clock tick (outcomes of one run, events of one
    burst) share timestamps; the tiebreaker keeps pages from overlapping.
    """
    field, direction = parse_order_by(model, order_by, default_field, default_direction)
    order_func = asc if direction == "asc" else desc
    return query.order_by(order_func(getattr(model, field)), order_func(model.id))
