from app.services.connectors.base import (
    CmsConnector,
    ConnectionTestResult,
    ConnectorConfig,
    FetchOptions,
    WebhookConfig,
    compute_signature,
    get_connector,
    get_connector_factory,
)
from app.services.connectors.contentful import ContentfulConnector
from app.services.connectors.custom import CustomConnector
from app.services.connectors.ghost import GhostConnector
from app.services.connectors.strapi import StrapiConnector
from app.services.connectors.wordpress import WordPressConnector

__all__ = [
    "CmsConnector",
    "ConnectionTestResult",
    "ConnectorConfig",
    "ContentfulConnector",
    "CustomConnector",
    "FetchOptions",
    "GhostConnector",
    "StrapiConnector",
    "WebhookConfig",
    "WordPressConnector",
    "compute_signature",
    "get_connector",
    "get_connector_factory",
]
