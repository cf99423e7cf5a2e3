"""Typed exception hierarchy for the CMS sync engine.

Connector errors abort a whole run; mapping and index-write errors are
isolated per document; webhook errors are raised before anything is persisted.
"""


class SyncError(Exception):
    """Base exception for all sync-engine errors."""


class ConnectorError(SyncError):
    """Base exception for upstream CMS failures.

    Carries the CMS type so callers can identify which family failed.
    """

    retriable = False

    def __init__(self, message: str, cms_type: str = ""):
        self.cms_type = cms_type
        super().__init__(message)


class ConnectorConfigError(ConnectorError):
    """The integration's config bag does not satisfy the family's config model."""


class UpstreamConnectionError(ConnectorError):
    """Network failures: timeouts, DNS resolution, connection refused."""

    retriable = True


class FetchError(ConnectorError):
    """Non-2xx response from the upstream API."""

    def __init__(
        self,
        message: str,
        cms_type: str = "",
        status_code: int | None = None,
        body: str = "",
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, cms_type)

    @property
    def retriable(self) -> bool:  # type: ignore[override]
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class WebhookNotSupportedError(ConnectorError):
    """The connector has no webhook registration capability."""


class MappingError(SyncError):
    """A transform failed or a raw document has no usable native id."""


class IndexWriteError(SyncError):
    """The target index rejected an upsert or delete."""


class SignatureError(SyncError):
    """A webhook signature was present but did not verify."""


class WebhookValidationError(SyncError):
    """Malformed webhook body or missing required fields."""


class IntegrationNotFoundError(SyncError):
    """No integration with the given id exists for the tenant."""


class IntegrationInactiveError(SyncError):
    """The integration is switched off and cannot be synced."""
