"""Tests for the sync log audit store."""

from datetime import UTC, datetime, timedelta

import pytest

from app.models.sync_log import SyncLog, SyncLogStatus
from app.repositories.sync_log_repository import SyncLogRepository


@pytest.fixture
def integration(make_integration):
    return make_integration()


@pytest.fixture
def repo(db_session):
    return SyncLogRepository(db_session)


class TestRunLifecycle:
    def test_create_run_is_pending(self, repo, integration):
        run = repo.create_run(integration.id, "full")
        assert run.status == SyncLogStatus.PENDING.value
        assert run.started_at is None
        assert run.documents_synced == 0

    def test_mark_running_sets_started_at(self, repo, integration):
        run = repo.create_run(integration.id, "full")
        running = repo.mark_running(run.id)
        assert running.status == "running"
        assert running.started_at is not None

    def test_complete_run(self, repo, integration):
        run = repo.create_run(integration.id, "incremental")
        repo.mark_running(run.id)

        done = repo.complete_run(
            run.id,
            "partial",
            documents_fetched=3,
            documents_synced=2,
            documents_failed=1,
            error_message="1 of 3 documents failed to sync",
            error_details={"retriable": False},
        )

        assert done.status == "partial"
        assert done.completed_at is not None
        assert done.completed_at >= done.started_at
        assert (done.documents_fetched, done.documents_synced, done.documents_failed) == (3, 2, 1)
        assert done.error_details == {"retriable": False}

    def test_complete_rejects_non_terminal_status(self, repo, integration):
        run = repo.create_run(integration.id, "full")
        with pytest.raises(ValueError, match="non-terminal"):
            repo.complete_run(run.id, "running")

    def test_terminal_run_is_never_revisited(self, repo, integration):
        run = repo.create_run(integration.id, "full")
        repo.mark_running(run.id)
        repo.complete_run(run.id, "success", documents_synced=5)

        again = repo.complete_run(run.id, "failed", error_message="late")
        restarted = repo.mark_running(run.id)

        assert again.status == "success"
        assert again.error_message is None
        assert restarted.status == "success"

    def test_complete_without_start_sets_started_at(self, repo, integration):
        run = repo.create_run(integration.id, "webhook", document_id="7")
        done = repo.complete_run(run.id, "failed")
        assert done.started_at is not None
        assert done.document_id == "7"

    def test_unknown_run(self, repo):
        from uuid import uuid4

        assert repo.mark_running(uuid4()) is None
        assert repo.complete_run(uuid4(), "success") is None


class TestOutcomes:
    def test_outcomes_keep_processing_order(self, repo, integration):
        run = repo.create_run(integration.id, "full")
        repo.append_outcome(run.id, "b", "INSERT", success=True)
        repo.append_outcome(run.id, "a", "UPDATE", success=False, error="boom")
        repo.append_outcome(run.id, "c", "UPDATE", success=True, unchanged=True)

        outcomes = repo.get_outcomes(run.id)

        assert [(o.position, o.document_id) for o in outcomes] == [(0, "b"), (1, "a"), (2, "c")]
        assert outcomes[1].error == "boom"
        assert outcomes[2].unchanged is True
        assert [o.document_id for o in repo.get_by_id(run.id).outcomes] == ["b", "a", "c"]

    def test_long_errors_truncated(self, repo, integration):
        run = repo.create_run(integration.id, "full")
        outcome = repo.append_outcome(run.id, "x", "INSERT", success=False, error="e" * 5000)
        assert len(outcome.error) == 1000


class TestQueries:
    def test_get_by_id_is_tenant_scoped(self, repo, integration):
        from uuid import uuid4

        run = repo.create_run(integration.id, "full")
        assert repo.get_by_id(run.id, integration.tenant_id) is not None
        assert repo.get_by_id(run.id, uuid4()) is None

    def test_list_and_count_with_status_filter(self, repo, integration):
        for status in ("success", "failed", "success"):
            run = repo.create_run(integration.id, "full")
            repo.complete_run(run.id, status)

        assert repo.count_by_integration(integration.id) == 3
        assert repo.count_by_integration(integration.id, "success") == 2
        assert len(repo.get_by_integration(integration.id, status="failed")) == 1
        assert len(repo.get_by_integration(integration.id, limit=2)) == 2

    def test_last_completed_ignores_failed_and_webhook_runs(self, repo, integration):
        good = repo.create_run(integration.id, "full")
        repo.mark_running(good.id)
        repo.complete_run(good.id, "partial")
        for sync_type, status in (("full", "failed"), ("webhook", "success")):
            run = repo.create_run(integration.id, sync_type)
            repo.mark_running(run.id)
            repo.complete_run(run.id, status)

        assert repo.get_last_completed(integration.id).id == good.id

    def test_last_completed_none(self, repo, integration):
        assert repo.get_last_completed(integration.id) is None


class TestFailStaleRuns:
    def test_only_old_unfinished_runs_are_failed(self, repo, db_session, integration):
        old_running = repo.create_run(integration.id, "full")
        repo.mark_running(old_running.id)
        old_pending = repo.create_run(integration.id, "full")
        fresh = repo.create_run(integration.id, "full")
        repo.mark_running(fresh.id)
        finished = repo.create_run(integration.id, "full")
        repo.mark_running(finished.id)
        repo.complete_run(finished.id, "success")

        long_ago = datetime.now(UTC) - timedelta(hours=5)
        db_session.query(SyncLog).filter(SyncLog.id == old_running.id).update(
            {"started_at": long_ago}
        )
        db_session.query(SyncLog).filter(SyncLog.id == old_pending.id).update(
            {"created_at": long_ago}
        )
        db_session.query(SyncLog).filter(SyncLog.id == finished.id).update(
            {"started_at": long_ago}
        )
        db_session.commit()

        count = repo.fail_stale_runs(datetime.now(UTC) - timedelta(hours=2))

        assert count == 2
        statuses = {
            run_id: repo.get_by_id(run_id).status
            for run_id in (old_running.id, old_pending.id, fresh.id, finished.id)
        }
        assert statuses == {
            old_running.id: "failed",
            old_pending.id: "failed",
            fresh.id: "running",
            finished.id: "success",
        }
        assert "liveness timeout" in repo.get_by_id(old_running.id).error_message
