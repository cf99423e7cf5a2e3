"""Tests for CmsIntegrationService."""

from uuid import uuid4

import httpx
import pytest

from app.schemas.cms_integration import CmsIntegrationCreate, CmsIntegrationUpdate, SyncSchedule
from app.services.cms_integration_service import CmsIntegrationService, generate_webhook_secret
from app.services.connectors.exceptions import (
    ConnectorConfigError,
    FetchError,
    IntegrationNotFoundError,
    WebhookNotSupportedError,
)
from tests.conftest import DEFAULT_MAPPINGS, WORDPRESS_CONFIG


@pytest.fixture
def service(db_session, upstream):
    return CmsIntegrationService(db_session, upstream.factory())


def create_data(**overrides) -> CmsIntegrationCreate:
    values = {
        "cms_type": "wordpress",
        "name": "Blog",
        "config": WORDPRESS_CONFIG,
        "target_collection": "articles",
        "field_mappings": DEFAULT_MAPPINGS,
    }
    values.update(overrides)
    return CmsIntegrationCreate(**values)


def test_generate_webhook_secret():
    first = generate_webhook_secret()
    assert first.startswith("whsec_")
    assert len(first) == len("whsec_") + 64
    assert first != generate_webhook_secret()


class TestCreateAndUpdate:
    def test_create_validates_config(self, service, default_tenant_id):
        with pytest.raises(ConnectorConfigError, match="Invalid Ghost config"):
            service.create(create_data(cms_type="ghost", config={}), default_tenant_id)

    def test_create_rejects_bad_cron(self, service, default_tenant_id):
        schedule = SyncSchedule(enabled=True, type="cron", cron_expression="61 * * * *")
        with pytest.raises(ValueError):
            service.create(create_data(sync_schedule=schedule), default_tenant_id)

    def test_create_schedules_next_run(self, service, default_tenant_id):
        schedule = SyncSchedule(enabled=True, type="interval", interval=10)
        integration = service.create(create_data(sync_schedule=schedule), default_tenant_id)
        assert integration.next_sync_at is not None

    def test_update_keeps_next_run_when_schedule_untouched(self, service, default_tenant_id):
        schedule = SyncSchedule(enabled=True, type="interval", interval=10)
        integration = service.create(create_data(sync_schedule=schedule), default_tenant_id)
        next_sync_at = integration.next_sync_at

        updated = service.update(
            integration.id, CmsIntegrationUpdate(name="Renamed"), default_tenant_id
        )

        assert updated.name == "Renamed"
        assert updated.next_sync_at == next_sync_at

    def test_update_unknown(self, service, default_tenant_id):
        with pytest.raises(IntegrationNotFoundError):
            service.update(uuid4(), CmsIntegrationUpdate(name="x"), default_tenant_id)


class TestConnection:
    @pytest.mark.asyncio
    async def test_connection_failure_is_reported(self, service, upstream):
        upstream.add("GET", "/wp-json/wp/v2/posts", httpx.Response(401))

        result = await service.test_connection("wordpress", WORDPRESS_CONFIG)

        assert result.success is False
        assert "401" in result.message

    @pytest.mark.asyncio
    async def test_saved_integration(self, service, upstream, make_integration):
        integration = make_integration()
        upstream.add("GET", "/wp-json/wp/v2/posts", [])

        result = await service.test_integration(integration.id, integration.tenant_id)

        assert result.success is True


class TestWebhookSetup:
    @pytest.mark.asyncio
    async def test_setup_stores_secret(self, service, upstream, make_integration):
        integration = make_integration()
        upstream.add("POST", "/wp-json/wp-webhooks/v1/webhooks", {"id": 12})

        webhook = await service.setup_webhook(integration.id, integration.tenant_id, "https://h")

        assert webhook.registration_id == "12"
        assert integration.webhook_secret == webhook.secret
        assert integration.webhook_registration_id == "12"
        sent = upstream.requests[0]
        assert webhook.secret in sent.content.decode()

    @pytest.mark.asyncio
    async def test_setup_tears_down_previous_registration(
        self, service, upstream, make_integration
    ):
        integration = make_integration()
        upstream.add("POST", "/wp-json/wp-webhooks/v1/webhooks", {"id": 12})
        upstream.add("DELETE", "/wp-json/wp-webhooks/v1/webhooks/12", httpx.Response(204))
        await service.setup_webhook(integration.id, integration.tenant_id, "https://a")

        await service.setup_webhook(integration.id, integration.tenant_id, "https://b")

        assert [r.method for r in upstream.requests] == ["POST", "DELETE", "POST"]
        assert integration.webhook_url == "https://b"

    @pytest.mark.asyncio
    async def test_upstream_rejection(self, service, upstream, make_integration):
        integration = make_integration()
        upstream.add("POST", "/wp-json/wp-webhooks/v1/webhooks", httpx.Response(403))

        with pytest.raises(FetchError):
            await service.setup_webhook(integration.id, integration.tenant_id, "https://h")

        assert integration.webhook_secret is None

    @pytest.mark.asyncio
    async def test_custom_not_supported(self, service, make_integration):
        integration = make_integration(cms_type="custom", config={"url": "https://api"})

        with pytest.raises(WebhookNotSupportedError):
            await service.setup_webhook(integration.id, integration.tenant_id, "https://h")


class TestDelete:
    @pytest.mark.asyncio
    async def test_teardown_failure_does_not_block_delete(
        self, service, upstream, make_integration, db_session
    ):
        integration = make_integration()
        upstream.add("POST", "/wp-json/wp-webhooks/v1/webhooks", {"id": 4})
        await service.setup_webhook(integration.id, integration.tenant_id, "https://h")
        upstream.add("DELETE", "/wp-json/wp-webhooks/v1/webhooks/4", httpx.Response(500))

        await service.delete(integration.id, integration.tenant_id)

        assert upstream.requests[-1].method == "DELETE"
        with pytest.raises(IntegrationNotFoundError):
            service.get(integration.id, integration.tenant_id)

    @pytest.mark.asyncio
    async def test_delete_unknown(self, service, default_tenant_id):
        with pytest.raises(IntegrationNotFoundError):
            await service.delete(uuid4(), default_tenant_id)
