"""
Batch analytics tests: task isolation and the all-owners run.

Run with: pytest tests/unit/test_batch_service.py -v
"""

from unittest.mock import MagicMock

from config.settings import AnalyticsSettings
from conftest import NOW
from models.insight import BatchAnalyticsResult
from services.batch_service import BatchService

SETTINGS = AnalyticsSettings(max_workers=1)


def _service(repository):
    service = BatchService(repository=repository, settings=SETTINGS)
    service.loyalty = MagicMock()
    service.loyalty.update_all_loyalty_scores.return_value = (3, [])
    service.segmentation = MagicMock()
    service.insights = MagicMock()
    return service


class TestRunBatchAnalytics:
    def test_all_tasks_complete(self, repository):
        service = _service(repository)

        result = service.run_batch_analytics("owner-1", now=NOW)

        assert result.success is True
        assert result.errors == []
        assert result.tasks_completed == [
            "Updated all customer loyalty scores",
            "Re-segmented all customers",
            "Generated automated insights",
        ]
        assert result.duration_ms >= 0
        service.insights.generate_and_save_insights.assert_called_once_with("owner-1", now=NOW)

    def test_failed_task_does_not_stop_later_tasks(self, repository):
        service = _service(repository)
        service.segmentation.segment_customers.side_effect = RuntimeError("boom")

        result = service.run_batch_analytics("owner-1", now=NOW)

        assert result.success is False
        assert result.errors == ["Failed to segment customers: boom"]
        assert "Generated automated insights" in result.tasks_completed
        service.insights.generate_and_save_insights.assert_called_once()

    def test_loyalty_write_failures_are_reported(self, repository):
        service = _service(repository)
        service.loyalty.update_all_loyalty_scores.return_value = (1, ["cust-2", "cust-3"])

        result = service.run_batch_analytics("owner-1", now=NOW)

        assert result.success is False
        assert result.errors == ["Failed to write loyalty scores for 2 customers"]
        assert result.tasks_completed == [
            "Re-segmented all customers",
            "Generated automated insights",
        ]


class TestRunBatchForAllOwners:
    def test_counts_and_isolates_owners(self, repository):
        repository.list_active_owner_ids.return_value = ["owner-1", "owner-2", "owner-3"]
        service = _service(repository)

        def run(owner_id, now=None):
            if owner_id == "owner-2":
                raise RuntimeError("connection reset")
            return BatchAnalyticsResult(owner_id=owner_id, success=owner_id == "owner-1")

        service.run_batch_analytics = MagicMock(side_effect=run)

        summary = service.run_batch_analytics_for_all(now=NOW)

        assert summary.total_businesses == 3
        assert summary.successful == 1
        assert summary.failed == 2
        assert [r.owner_id for r in summary.results] == ["owner-1", "owner-2", "owner-3"]
        assert summary.results[1].errors == ["Batch processing failed: connection reset"]

    def test_no_active_owners(self, repository):
        repository.list_active_owner_ids.return_value = []

        summary = _service(repository).run_batch_analytics_for_all(now=NOW)

        assert summary.total_businesses == 0
        assert summary.results == []
