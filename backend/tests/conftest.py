"""Shared test fixtures for all test modules."""

import contextlib
import json
import uuid
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import database as db_module
from app.core.database import Base, get_db
from app.models.tenant import Tenant
from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.schemas.cms_integration import CmsIntegrationCreate
from app.services.connectors.base import CmsConnector, get_connector

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

# Well-known default tenant ID used across all tests
DEFAULT_TENANT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")

WORDPRESS_CONFIG = {"url": "https://blog.example.com", "apiKey": "wp-token"}

DEFAULT_MAPPINGS = [
    {"source_field": "title.rendered", "target_field": "title", "transform": "trim"},
    {"source_field": "content.rendered", "target_field": "content", "transform": "strip_html"},
]


def _seed_default_tenant(session: Session) -> None:
    """Insert a default tenant used by all tests."""
    tenant = session.query(Tenant).filter(Tenant.id == DEFAULT_TENANT_ID).first()
    if tenant is None:
        tenant = Tenant(id=DEFAULT_TENANT_ID, name="Default Test Tenant")
        session.add(tenant)
        session.commit()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    session = _TestSessionLocal()
    try:
        _seed_default_tenant(session)
    finally:
        session.close()

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def default_tenant_id():
    """Return the default tenant ID for tests."""
    return DEFAULT_TENANT_ID


@pytest.fixture
def session_factory():
    """The test sessionmaker, for code that opens its own sessions."""
    return _TestSessionLocal


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def client():
    """Create test client."""
    from app.main import app

    return TestClient(app)


class FakeUpstream:
    """Routes httpx requests to canned JSON responses and records them.

    Handlers are matched on ``(method, path)``; a handler may be a response
    body, an ``httpx.Response`` or a callable taking the request.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, handler: Any) -> None:
        self.routes[(method.upper(), path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "not found"})
        if callable(handler):
            handler = handler(request)
        if isinstance(handler, httpx.Response):
            return handler
        return httpx.Response(200, json=handler)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def factory(self) -> Callable[[str], CmsConnector[Any]]:
        """Connector factory whose connectors talk to this fake upstream."""
        transport = self.transport

        def _factory(cms_type: str) -> CmsConnector[Any]:
            return get_connector(cms_type, transport=transport)

        return _factory


@pytest.fixture
def upstream():
    return FakeUpstream()


def wordpress_post(post_id: int, title: str = "Hello", body: str = "<p>Body</p>") -> dict[str, Any]:
    return {
        "id": post_id,
        "title": {"rendered": f"  {title}  "},
        "content": {"rendered": body},
        "modified": "2026-10-01T10:00:00",
    }


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture
def make_integration(db_session):
    """Factory creating integrations directly through the repository."""

    def _make(
        cms_type: str = "wordpress",
        config: dict[str, Any] | None = None,
        field_mappings: list[dict[str, Any]] | None = None,
        tenant_id: uuid.UUID = DEFAULT_TENANT_ID,
        **kwargs: Any,
    ):
        data = CmsIntegrationCreate(
            cms_type=cms_type,
            name=kwargs.pop("name", f"{cms_type} source"),
            config=WORDPRESS_CONFIG if config is None else config,
            target_collection=kwargs.pop("target_collection", "articles"),
            field_mappings=DEFAULT_MAPPINGS if field_mappings is None else field_mappings,
            **kwargs,
        )
        return CmsIntegrationRepository(db_session).create(data, tenant_id)

    return _make
