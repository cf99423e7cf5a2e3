"""Tests for the webhook ingestor service."""

import json
from uuid import uuid4

import httpx
import pytest

from app.core.config import settings
from app.models.shared import utc_now
from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.repositories.synced_document_repository import SyncedDocumentRepository
from app.repositories.webhook_event_repository import WebhookEventRepository
from app.services.connectors.base import compute_signature
from app.services.connectors.exceptions import (
    IntegrationNotFoundError,
    SignatureError,
    WebhookValidationError,
)
from app.services.webhook_ingestor import (
    WebhookIngestor,
    WebhookProcessingError,
    extract_document_id,
    normalize_event_type,
)
from tests.conftest import wordpress_post

SECRET = "whsec_test"


def body_for(integration_id, event_type="content.updated", payload=None) -> bytes:
    return json.dumps(
        {
            "integration_id": str(integration_id),
            "event_type": event_type,
            "payload": {"id": 5} if payload is None else payload,
        }
    ).encode()


@pytest.fixture
def ingestor(db_session, upstream):
    return WebhookIngestor(db_session, upstream.factory())


@pytest.fixture
def events(db_session):
    return WebhookEventRepository(db_session)


@pytest.fixture
def signed_integration(db_session, make_integration):
    integration = make_integration()
    return CmsIntegrationRepository(db_session).set_webhook(
        integration, url="https://hook", secret=SECRET, events=[], registration_id=None
    )


class TestHelpers:
    @pytest.mark.parametrize(
        "native,expected",
        [
            ("post_updated", "content.updated"),
            ("Entry.delete", "content.deleted"),
            ("entry.create", "content.created"),
            ("post.published", "content.published"),
            ("content.updated", "content.updated"),
            ("something.else", "something.else"),
        ],
    )
    def test_normalize_event_type(self, native, expected):
        assert normalize_event_type(native) == expected

    def test_extract_document_id(self):
        assert extract_document_id({"id": 7}) == "7"
        assert extract_document_id({"documentId": "abc"}) == "abc"
        assert extract_document_id({"id": "", "documentId": "abc"}) == "abc"
        assert extract_document_id({"title": "none"}) is None


class TestParse:
    def test_invalid_json(self, ingestor):
        with pytest.raises(WebhookValidationError, match="Invalid JSON"):
            ingestor.parse(b"{nope")

    def test_not_an_object(self, ingestor):
        with pytest.raises(WebhookValidationError, match="JSON object"):
            ingestor.parse(b"[1, 2]")

    def test_missing_fields(self, ingestor):
        with pytest.raises(WebhookValidationError, match="event_type, payload"):
            ingestor.parse(json.dumps({"integration_id": str(uuid4())}).encode())


class TestIngest:
    @pytest.mark.asyncio
    async def test_signed_update_syncs_document(
        self, ingestor, upstream, signed_integration, db_session
    ):
        upstream.add("GET", "/wp-json/wp/v2/posts/5", wordpress_post(5))
        body = body_for(signed_integration.id)

        outcome = await ingestor.ingest(body, compute_signature(body, SECRET))

        assert outcome.event.processed is True
        assert outcome.event.signature_verified is True
        assert outcome.event.resource_id == "5"
        assert outcome.event.processing_error is None
        assert outcome.result["operation"] == "UPDATE"
        assert outcome.result["document_id"] == "5"
        assert outcome.result["status"] == "success"
        assert outcome.event.processing_result == outcome.result
        assert SyncedDocumentRepository(db_session).get(signed_integration.id, "5") is not None

    @pytest.mark.asyncio
    async def test_inline_document_is_not_fetched(self, ingestor, upstream, make_integration):
        integration = make_integration()
        payload = {"id": 8, "document": wordpress_post(8)}

        outcome = await ingestor.ingest(body_for(integration.id, "content.created", payload))

        assert upstream.requests == []
        assert outcome.result["operation"] == "INSERT"

    @pytest.mark.asyncio
    async def test_bad_signature_writes_nothing(self, ingestor, signed_integration, events):
        body = body_for(signed_integration.id)

        with pytest.raises(SignatureError):
            await ingestor.ingest(body, compute_signature(body, "wrong-secret"))

        assert events.count_by_integration(signed_integration.id) == 0

    @pytest.mark.asyncio
    async def test_unsigned_request_accepted_unverified(
        self, ingestor, signed_integration, upstream
    ):
        upstream.add("GET", "/wp-json/wp/v2/posts/5", wordpress_post(5))

        outcome = await ingestor.ingest(body_for(signed_integration.id))

        assert outcome.event.signature_verified is False
        assert outcome.event.processed is True

    @pytest.mark.asyncio
    async def test_unsigned_request_rejected_when_required(
        self, ingestor, signed_integration, events, monkeypatch
    ):
        monkeypatch.setattr(settings, "REQUIRE_WEBHOOK_SIGNATURE", True)

        with pytest.raises(SignatureError, match="Missing signature"):
            await ingestor.ingest(body_for(signed_integration.id))

        assert events.count_by_integration(signed_integration.id) == 0

    @pytest.mark.asyncio
    async def test_required_signature_without_secret(
        self, ingestor, make_integration, monkeypatch
    ):
        monkeypatch.setattr(settings, "REQUIRE_WEBHOOK_SIGNATURE", True)
        integration = make_integration()

        with pytest.raises(SignatureError, match="No webhook secret"):
            await ingestor.ingest(body_for(integration.id), "abc")

    @pytest.mark.asyncio
    async def test_unknown_integration(self, ingestor):
        with pytest.raises(IntegrationNotFoundError):
            await ingestor.ingest(body_for(uuid4()))

    @pytest.mark.asyncio
    async def test_processing_failure_marks_event_processed(
        self, ingestor, upstream, make_integration, events
    ):
        integration = make_integration()
        upstream.add("GET", "/wp-json/wp/v2/posts/5", httpx.Response(502))

        with pytest.raises(WebhookProcessingError) as exc_info:
            await ingestor.ingest(body_for(integration.id))

        event = events.get_by_id(exc_info.value.event.id)
        assert event.processed is True
        assert event.processed_at is not None
        assert "502" in event.processing_error
        assert event.processing_result is None

    @pytest.mark.asyncio
    async def test_delete_event(self, ingestor, make_integration, db_session):
        integration = make_integration()
        documents = SyncedDocumentRepository(db_session)
        documents.create(integration.id, "articles", "5", {"title": "x"}, "h", utc_now())

        outcome = await ingestor.ingest(body_for(integration.id, "Entry.delete", {"id": 5}))

        assert outcome.result["operation"] == "DELETE"
        assert documents.get(integration.id, "5") is None


class TestDispatchWithoutMutation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("event_type", ["content.published", "post.unpublished"])
    async def test_publish_events_recorded(self, ingestor, make_integration, event_type):
        integration = make_integration()

        outcome = await ingestor.ingest(body_for(integration.id, event_type))

        assert outcome.result["success"] is True
        assert "recorded" in outcome.result["message"]
        assert outcome.event.processed is True

    @pytest.mark.asyncio
    async def test_unknown_event_type(self, ingestor, make_integration):
        integration = make_integration()

        outcome = await ingestor.ingest(body_for(integration.id, "comment.created"))

        assert outcome.result["warning"] == "unknown_event_type"

    @pytest.mark.asyncio
    async def test_missing_document_id(self, ingestor, make_integration):
        integration = make_integration()

        outcome = await ingestor.ingest(body_for(integration.id, payload={"title": "x"}))

        assert outcome.result["warning"] == "missing_document_id"
        assert outcome.event.resource_id is None

    @pytest.mark.asyncio
    async def test_inactive_integration(self, ingestor, make_integration, upstream):
        integration = make_integration(is_active=False)

        outcome = await ingestor.ingest(body_for(integration.id))

        assert outcome.result["warning"] == "inactive_integration"
        assert outcome.event.processed is True
        assert upstream.requests == []


class TestDocumentKeys:
    @pytest.fixture
    def strapi_integration(self, make_integration):
        return make_integration(
            cms_type="strapi",
            config={"url": "https://cms.example.com", "apiKey": "strapi-token"},
            field_mappings=[{"source_field": "title", "target_field": "title"}],
        )

    @pytest.mark.asyncio
    async def test_strapi_batch_then_webhooks_share_one_key(
        self, ingestor, upstream, strapi_integration, db_session
    ):
        entry = {"id": 7, "documentId": "abc123", "title": "Launch"}
        upstream.add("GET", "/api/articles", {"data": [entry]})
        upstream.add("GET", "/api/articles/abc123", {"data": {**entry, "title": "Relaunch"}})
        documents = SyncedDocumentRepository(db_session)
        integration_id = strapi_integration.id

        await ingestor.orchestrator.run_sync(integration_id, strapi_integration.tenant_id)
        assert [d.native_id for d in documents.get_by_integration(integration_id)] == ["abc123"]

        updated = await ingestor.ingest(
            body_for(integration_id, "entry.update", {"id": 7, "documentId": "abc123"})
        )
        assert updated.event.resource_id == "abc123"
        stored = documents.get_by_integration(integration_id)
        assert [(d.native_id, d.fields["title"]) for d in stored] == [("abc123", "Relaunch")]

        await ingestor.ingest(
            body_for(integration_id, "entry.delete", {"id": 7, "documentId": "abc123"})
        )
        assert documents.get_by_integration(integration_id) == []

    @pytest.mark.asyncio
    async def test_contentful_payload_resolved_by_sys_id(
        self, ingestor, make_integration
    ):
        integration = make_integration(
            cms_type="contentful",
            config={"spaceId": "space1", "apiKey": "cda-token"},
            field_mappings=[{"source_field": "fields.title", "target_field": "title"}],
        )

        outcome = await ingestor.ingest(
            body_for(integration.id, "Entry.publish", {"sys": {"id": "entry-1"}})
        )

        assert outcome.event.resource_id == "entry-1"
