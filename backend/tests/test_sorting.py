"""Tests for list ordering."""

import pytest

from app.core.sorting import apply_order_by, parse_order_by
from app.models.cms_integration import CmsIntegration
from app.models.sync_log import SyncLog
from app.models.synced_document import SyncedDocument
from app.models.tenant import Tenant
from app.models.webhook_event import WebhookEvent


class TestParseOrderBy:
    @pytest.mark.parametrize(
        ("model", "order_by", "expected"),
        [
            (CmsIntegration, "name:asc", ("name", "asc")),
            (CmsIntegration, "last_sync_at:desc", ("last_sync_at", "desc")),
            (SyncLog, "documents_failed:desc", ("documents_failed", "desc")),
            (WebhookEvent, "processed_at:asc", ("processed_at", "asc")),
            (SyncedDocument, "native_id", ("native_id", "asc")),
            (Tenant, "name:sideways", ("name", "desc")),
        ],
    )
    def test_sortable_fields(self, model, order_by, expected):
        assert parse_order_by(model, order_by) == expected

    @pytest.mark.parametrize(
        ("model", "order_by"),
        [
            (CmsIntegration, "config:asc"),
            (CmsIntegration, "webhook_secret"),
            (CmsIntegration, "metadata"),
            (WebhookEvent, "payload:desc"),
            (SyncedDocument, "fields"),
            (SyncLog, "integration:asc"),
            (Tenant, ""),
        ],
    )
    def test_other_fields_fall_back_to_default(self, model, order_by):
        assert parse_order_by(model, order_by) == ("created_at", "desc")

    def test_custom_default(self):
        assert parse_order_by(WebhookEvent, "nope", default_field="received_at") == (
            "received_at",
            "desc",
        )


class TestApplyOrderBy:
    def test_sorts_with_id_tiebreaker(self, db_session, make_integration):
        make_integration(name="Beta")
        make_integration(name="Alpha")
        make_integration(name="Alpha")

        query = apply_order_by(db_session.query(CmsIntegration), CmsIntegration, "name:asc")
        rows = query.all()

        assert [row.name for row in rows] == ["Alpha", "Alpha", "Beta"]
        assert str(rows[0].id) < str(rows[1].id)

    def test_json_column_is_ignored(self, db_session, make_integration):
        make_integration(name="Only")

        query = apply_order_by(db_session.query(CmsIntegration), CmsIntegration, "config:asc")

        assert [row.name for row in query.all()] == ["Only"]
