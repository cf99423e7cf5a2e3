"""CMS integration management: validation, connection tests and webhook setup."""

import logging
import secrets
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.cms_integration import CmsIntegration, CmsType
from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.schemas.cms_integration import (
    CmsIntegrationCreate,
    CmsIntegrationUpdate,
)
from app.schemas.connector import SourceField
from app.services.connectors.base import ConnectionTestResult, WebhookConfig, get_connector
from app.services.connectors.exceptions import ConnectorError, IntegrationNotFoundError
from app.services.sync_orchestrator import ConnectorFactory
from app.services.sync_schedule import compute_next_sync_at, validate_schedule

logger = logging.getLogger(__name__)


def generate_webhook_secret() -> str:
    """Generate a random webhook signing secret with 'whsec_' prefix."""
    return "whsec_" + secrets.token_hex(32)


class CmsIntegrationService:
    def __init__(self, db: Session, connector_factory: ConnectorFactory = get_connector):
        self.db = db
        self.connector_factory = connector_factory
        self.repo = CmsIntegrationRepository(db)

    def get(self, integration_id: UUID, tenant_id: UUID) -> CmsIntegration:
        integration = self.repo.get_by_id(integration_id, tenant_id)
        if not integration:
            raise IntegrationNotFoundError(f"CMS integration {integration_id} not found")
        return integration

    def create(self, data: CmsIntegrationCreate, tenant_id: UUID) -> CmsIntegration:
        """Validate config and schedule, then create the integration.

        Raises ConnectorConfigError or ValueError on invalid input.
        """
        self.connector_factory(data.cms_type.value).parse_config(data.config)
        validate_schedule(data.sync_schedule)
        return self.repo.create(
            data,
            tenant_id,
            next_sync_at=compute_next_sync_at(data.sync_schedule),
        )

    def update(
        self,
        integration_id: UUID,
        data: CmsIntegrationUpdate,
        tenant_id: UUID,
    ) -> CmsIntegration:
        integration = self.get(integration_id, tenant_id)
        extra: dict[str, Any] = {}
        if data.config is not None:
            self.connector_factory(str(integration.cms_type)).parse_config(data.config)
        if "sync_schedule" in data.model_fields_set:
            validate_schedule(data.sync_schedule)
            extra["next_sync_at"] = compute_next_sync_at(data.sync_schedule)
        updated = self.repo.update(integration_id, data, tenant_id, **extra)
        return updated  # type: ignore[return-value]

    async def test_connection(
        self,
        cms_type: CmsType | str,
        config: dict[str, Any],
    ) -> ConnectionTestResult:
        return await self.connector_factory(CmsType(cms_type).value).test_connection(config)

    async def test_integration(self, integration_id: UUID, tenant_id: UUID) -> ConnectionTestResult:
        integration = self.get(integration_id, tenant_id)
        return await self.test_connection(
            str(integration.cms_type), dict(integration.config or {})
        )

    async def get_available_fields(
        self,
        integration_id: UUID,
        tenant_id: UUID,
    ) -> list[SourceField]:
        integration = self.get(integration_id, tenant_id)
        connector = self.connector_factory(str(integration.cms_type))
        return await connector.get_available_fields(dict(integration.config or {}))

    async def setup_webhook(
        self,
        integration_id: UUID,
        tenant_id: UUID,
        webhook_url: str,
    ) -> WebhookConfig:
        """Register the upstream webhook and store the signing secret.

        The returned config carries the raw secret; it is not retrievable again.
        """
        integration = self.get(integration_id, tenant_id)
        connector = self.connector_factory(str(integration.cms_type))
        config = dict(integration.config or {})

        if integration.webhook_registration_id:
            await self._teardown_webhook(integration)

        webhook = await connector.setup_webhook(
            config, webhook_url, secret=generate_webhook_secret()
        )
        # Families that do not sign deliveries still get a secret for signing proxies.
        secret = webhook.secret or generate_webhook_secret()
        self.repo.set_webhook(
            integration,
            url=webhook.url,
            secret=secret,
            events=webhook.events,
            registration_id=webhook.registration_id,
        )
        logger.info(
            "Registered %s webhook for integration %s (registration %s)",
            integration.cms_type,
            integration.id,
            webhook.registration_id,
        )
        return WebhookConfig(
            url=webhook.url,
            secret=secret,
            events=webhook.events,
            registration_id=webhook.registration_id,
        )

    async def delete(self, integration_id: UUID, tenant_id: UUID) -> None:
        integration = self.get(integration_id, tenant_id)
        if integration.webhook_registration_id:
            await self._teardown_webhook(integration)
        self.repo.delete(integration_id, tenant_id)

    async def _teardown_webhook(self, integration: CmsIntegration) -> None:
        connector = self.connector_factory(str(integration.cms_type))
        try:
            await connector.teardown_webhook(
                dict(integration.config or {}), str(integration.webhook_registration_id)
            )
        except ConnectorError as exc:
            logger.warning(
                "Could not remove upstream webhook %s of integration %s: %s",
                integration.webhook_registration_id,
                integration.id,
                exc,
            )
