"""Tests for the inbound CMS webhook endpoint."""

import json
from uuid import uuid4

import httpx
import pytest

from app.main import app
from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.repositories.synced_document_repository import SyncedDocumentRepository
from app.repositories.webhook_event_repository import WebhookEventRepository
from app.services.connectors.base import compute_signature, get_connector_factory
from tests.conftest import wordpress_post

URL = "/v1/cms_webhooks/"
SECRET = "whsec_api"


@pytest.fixture
def api(client, upstream):
    app.dependency_overrides[get_connector_factory] = upstream.factory
    yield client
    app.dependency_overrides.pop(get_connector_factory, None)


@pytest.fixture
def integration(db_session, make_integration):
    integration = make_integration()
    return CmsIntegrationRepository(db_session).set_webhook(
        integration, url="https://hook", secret=SECRET, events=[], registration_id=None
    )


def encode(integration_id, event_type="content.updated", payload=None) -> bytes:
    return json.dumps(
        {
            "integration_id": str(integration_id),
            "event_type": event_type,
            "payload": {"id": 5} if payload is None else payload,
        }
    ).encode()


class TestReceiveWebhook:
    @pytest.mark.parametrize(
        "header", ["X-Webhook-Signature", "X-Ghost-Signature", "X-Hub-Signature-256"]
    )
    def test_signed_delivery(self, api, upstream, integration, db_session, header):
        upstream.add("GET", "/wp-json/wp/v2/posts/5", wordpress_post(5, title="Pushed"))
        body = encode(integration.id)
        signature = compute_signature(body, SECRET)
        if header == "X-Hub-Signature-256":
            signature = f"sha256={signature}"

        response = api.post(URL, content=body, headers={header: signature})

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["success"] is True
        assert data["result"]["document_id"] == "5"
        assert data["result"]["operation"] == "UPDATE"
        event = WebhookEventRepository(db_session).get_by_id(data["webhook_event_id"])
        assert event.signature_verified is True
        document = SyncedDocumentRepository(db_session).get(integration.id, "5")
        assert document.fields["title"] == "Pushed"

    def test_malformed_body(self, api):
        response = api.post(URL, content=b"not json")
        assert response.status_code == 400

    def test_missing_fields(self, api):
        response = api.post(URL, json={"integration_id": str(uuid4())})
        assert response.status_code == 400
        assert "event_type" in response.json()["detail"]

    def test_unknown_integration(self, api):
        response = api.post(URL, content=encode(uuid4()))
        assert response.status_code == 404
        assert response.json()["detail"] == "Integration not found"

    def test_bad_signature_stores_nothing(self, api, integration, db_session):
        body = encode(integration.id)

        response = api.post(URL, content=body, headers={"X-Webhook-Signature": "deadbeef"})

        assert response.status_code == 401
        assert WebhookEventRepository(db_session).count_by_integration(integration.id) == 0

    def test_processing_failure(self, api, upstream, integration, db_session):
        upstream.add("GET", "/wp-json/wp/v2/posts/5", httpx.Response(503))

        response = api.post(URL, content=encode(integration.id))

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Processing failed"
        assert data["message"]
        event = WebhookEventRepository(db_session).get_by_id(data["webhook_event_id"])
        assert event.processed is True
        assert event.processing_error

    def test_delete_delivery(self, api, integration, db_session):
        documents = SyncedDocumentRepository(db_session)
        api.post(
            URL,
            content=encode(
                integration.id, "post_created", {"id": 9, "document": wordpress_post(9)}
            ),
        )
        assert documents.get(integration.id, "9") is not None

        response = api.post(URL, content=encode(integration.id, "post_deleted", {"id": 9}))

        assert response.status_code == 200
        assert response.json()["result"]["operation"] == "DELETE"
        db_session.expire_all()
        assert documents.get(integration.id, "9") is None

    def test_unknown_event_type_is_stored(self, api, integration, db_session):
        response = api.post(URL, content=encode(integration.id, "comment.created"))

        assert response.status_code == 200
        assert response.json()["result"]["warning"] == "unknown_event_type"
        assert WebhookEventRepository(db_session).count_by_integration(integration.id) == 1
