"""Tests for the SQL-backed document index."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.repositories.synced_document_repository import SyncedDocumentRepository
from app.services.connectors.exceptions import IndexWriteError
from app.services.document_index import SqlDocumentIndex, UpsertResult, content_hash


@pytest.fixture
def integration(make_integration):
    return make_integration()


class TestContentHash:
    def test_key_order_independent(self):
        assert content_hash({"a": 1, "b": [1, 2]}) == content_hash({"b": [1, 2], "a": 1})

    def test_value_sensitive(self):
        assert content_hash({"a": 1}) != content_hash({"a": 2})


class TestSqlDocumentIndex:
    def test_insert_then_unchanged_then_update(self, db_session, integration):
        index = SqlDocumentIndex(db_session)

        first = index.upsert("articles", integration.id, "1", {"title": "A"})
        second = index.upsert("articles", integration.id, "1", {"title": "A"})
        third = index.upsert("articles", integration.id, "1", {"title": "B"})

        assert (first, second, third) == (
            UpsertResult.CREATED,
            UpsertResult.UNCHANGED,
            UpsertResult.UPDATED,
        )
        repo = SyncedDocumentRepository(db_session)
        assert repo.count_by_integration(integration.id) == 1
        assert repo.get(integration.id, "1").fields == {"title": "B"}

    def test_replaces_whole_document(self, db_session, integration):
        index = SqlDocumentIndex(db_session)
        index.upsert("articles", integration.id, "1", {"title": "A", "tags": ["x"]})

        index.upsert("articles", integration.id, "1", {"title": "A"})

        assert SyncedDocumentRepository(db_session).get(integration.id, "1").fields == {
            "title": "A"
        }

    def test_collection_change_is_an_update(self, db_session, integration):
        index = SqlDocumentIndex(db_session)
        index.upsert("articles", integration.id, "1", {"title": "A"})

        assert index.upsert("posts", integration.id, "1", {"title": "A"}) == UpsertResult.UPDATED
        assert SyncedDocumentRepository(db_session).get(integration.id, "1").collection == "posts"

    def test_same_native_id_in_two_integrations(self, db_session, make_integration):
        first = make_integration(name="one")
        second = make_integration(name="two")
        index = SqlDocumentIndex(db_session)

        assert index.upsert("articles", first.id, "1", {"title": "A"}) == UpsertResult.CREATED
        assert index.upsert("articles", second.id, "1", {"title": "A"}) == UpsertResult.CREATED

    def test_delete(self, db_session, integration):
        index = SqlDocumentIndex(db_session)
        index.upsert("articles", integration.id, "1", {"title": "A"})

        assert index.delete("articles", integration.id, "1") is True
        assert index.delete("articles", integration.id, "1") is False
        assert SyncedDocumentRepository(db_session).get(integration.id, "1") is None

    def test_concurrent_insert_retried_as_update(self, db_session, integration):
        index = SqlDocumentIndex(db_session)
        index.upsert("articles", integration.id, "1", {"title": "A"})
        real_get = index.repo.get
        calls = []

        def stale_get(integration_id, native_id):
            calls.append(native_id)
            # First lookup misses, as if another run had not committed yet.
            return None if len(calls) == 1 else real_get(integration_id, native_id)

        with patch.object(index.repo, "get", side_effect=stale_get):
            result = index.upsert("articles", integration.id, "1", {"title": "B"})

        assert result == UpsertResult.UPDATED
        assert real_get(integration.id, "1").fields == {"title": "B"}

    def test_database_error_becomes_index_write_error(self, db_session, integration):
        index = SqlDocumentIndex(db_session)

        with (
            patch.object(
                index.repo, "create", side_effect=OperationalError("INSERT", {}, Exception("disk"))
            ),
            pytest.raises(IndexWriteError, match="Upsert of 1 failed"),
        ):
            index.upsert("articles", integration.id, "1", {"title": "A"})

    def test_repeated_integrity_error_becomes_index_write_error(self, db_session, integration):
        index = SqlDocumentIndex(db_session)
        error = IntegrityError("INSERT", {}, Exception("unique"))

        with (
            patch.object(index.repo, "create", side_effect=error),
            pytest.raises(IndexWriteError),
        ):
            index.upsert("articles", integration.id, "1", {"title": "A"})
