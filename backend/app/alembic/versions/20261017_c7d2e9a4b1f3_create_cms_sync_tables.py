"""create cms sync tables

Revision ID: c7d2e9a4b1f3
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "c7d2e9a4b1f3"
down_revision = None
branch_labels = None
depends_on = None

DEFAULT_TENANT_ID = "00000000-0000-0000-0000-000000000001"


def _timestamps() -> list[sa.Column]:  # type: ignore[type-arg]
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
    ]


def upgrade() -> None:
    tenants = op.create_table(
        "tenants",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.bulk_insert(tenants, [{"id": DEFAULT_TENANT_ID, "name": "Default"}])

    op.create_table(
        "cms_integrations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("cms_type", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("target_collection", sa.String(length=255), nullable=False),
        sa.Column("field_mappings", sa.JSON(), nullable=False),
        sa.Column("sync_schedule", sa.JSON(), nullable=True),
        sa.Column("sync_mode", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("webhook_secret", sa.String(length=255), nullable=True),
        sa.Column("webhook_url", sa.String(length=2048), nullable=True),
        sa.Column("webhook_events", sa.JSON(), nullable=True),
        sa.Column("webhook_registration_id", sa.String(length=255), nullable=True),
        sa.Column("last_sync_status", sa.String(length=20), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_count", sa.Integer(), nullable=True),
        sa.Column("last_sync_error", sa.Text(), nullable=True),
        sa.Column("next_sync_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cms_integrations_tenant_id", "cms_integrations", ["tenant_id"])
    op.create_index("ix_cms_integrations_next_sync_at", "cms_integrations", ["next_sync_at"])

    op.create_table(
        "cms_sync_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("integration_id", sa.String(length=36), nullable=False),
        sa.Column("sync_type", sa.String(length=20), nullable=False),
        sa.Column("document_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("documents_fetched", sa.Integer(), nullable=False),
        sa.Column("documents_synced", sa.Integer(), nullable=False),
        sa.Column("documents_failed", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_details", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["integration_id"], ["cms_integrations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cms_sync_logs_integration_id", "cms_sync_logs", ["integration_id"])
    op.create_index("ix_cms_sync_logs_status", "cms_sync_logs", ["status"])

    op.create_table(
        "cms_sync_document_outcomes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("sync_log_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("document_id", sa.String(length=255), nullable=False),
        sa.Column("operation", sa.String(length=10), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("unchanged", sa.Boolean(), nullable=False),
        sa.Column("error", sa.String(length=1000), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["sync_log_id"], ["cms_sync_logs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_cms_sync_document_outcomes_sync_log_id",
        "cms_sync_document_outcomes",
        ["sync_log_id"],
    )

    op.create_table(
        "cms_webhook_events",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("integration_id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("signature_verified", sa.Boolean(), nullable=False),
        sa.Column("processed", sa.Boolean(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_result", sa.JSON(), nullable=True),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["integration_id"], ["cms_integrations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cms_webhook_events_integration_id", "cms_webhook_events", ["integration_id"])
    op.create_index("ix_cms_webhook_events_processed", "cms_webhook_events", ["processed"])

    op.create_table(
        "cms_synced_documents",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("integration_id", sa.String(length=36), nullable=False),
        sa.Column("collection", sa.String(length=255), nullable=False),
        sa.Column("native_id", sa.String(length=255), nullable=False),
        sa.Column("fields", sa.JSON(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["integration_id"], ["cms_integrations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "integration_id",
            "native_id",
            name="uq_cms_synced_documents_integration_native_id",
        ),
    )
    op.create_index("ix_cms_synced_documents_collection", "cms_synced_documents", ["collection"])


def downgrade() -> None:
    op.drop_index("ix_cms_synced_documents_collection", table_name="cms_synced_documents")
    op.drop_table("cms_synced_documents")
    op.drop_index("ix_cms_webhook_events_processed", table_name="cms_webhook_events")
    op.drop_index("ix_cms_webhook_events_integration_id", table_name="cms_webhook_events")
    op.drop_table("cms_webhook_events")
    op.drop_index(
        "ix_cms_sync_document_outcomes_sync_log_id", table_name="cms_sync_document_outcomes"
    )
    op.drop_table("cms_sync_document_outcomes")
    op.drop_index("ix_cms_sync_logs_status", table_name="cms_sync_logs")
    op.drop_index("ix_cms_sync_logs_integration_id", table_name="cms_sync_logs")
    op.drop_table("cms_sync_logs")
    op.drop_index("ix_cms_integrations_next_sync_at", table_name="cms_integrations")
    op.drop_index("ix_cms_integrations_tenant_id", table_name="cms_integrations")
    op.drop_table("cms_integrations")
    op.drop_table("tenants")
