"""
Scheduled batch analytics.

For one owner: refresh every loyalty score, re-segment the customer base
and generate and save the insight feed. Each task is isolated; a failed
task is recorded and the next one still runs. The all-owners run fans out
across active owners and records per-owner failures.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from config.settings import AnalyticsSettings, get_settings
from models.insight import BatchAnalyticsResult, BatchRunSummary
from repositories.postgres_repo import AnalyticsRepository, get_repository
from services.insights_service import InsightsService
from services.loyalty_service import LoyaltyService
from services.segmentation_service import SegmentationService
from utils.concurrency import fan_out
from utils.dates import resolve_now
from utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class BatchService:
    """Recomputes scores, segments and insights for owners."""

    repository: Optional[AnalyticsRepository] = None
    settings: AnalyticsSettings = field(default_factory=get_settings)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = get_repository()
        deps = {"repository": self.repository, "settings": self.settings}
        self.loyalty = LoyaltyService(**deps)
        self.segmentation = SegmentationService(**deps)
        self.insights = InsightsService(**deps)

    def run_batch_analytics(
        self, owner_id: str, now: Optional[datetime] = None
    ) -> BatchAnalyticsResult:
        now = resolve_now(now)
        start = time.perf_counter()
        completed: List[str] = []
        errors: List[str] = []

        def run(task: Callable[[], Optional[str]], done: str, failure: str) -> None:
            """A task returning a message finished partially and is not marked complete."""
            try:
                partial = task()
            except Exception as exc:
                logger.exception(failure, extra={"owner_id": owner_id})
                errors.append(f"{failure}: {exc}")
                return
            if partial:
                errors.append(partial)
            else:
                completed.append(done)

        def refresh_loyalty() -> Optional[str]:
            _, failed = self.loyalty.update_all_loyalty_scores(owner_id, now=now)
            if failed:
                logger.warning(
                    "Loyalty write-back incomplete",
                    extra={"owner_id": owner_id, "failed": len(failed)},
                )
                return f"Failed to write loyalty scores for {len(failed)} customers"
            return None

        def resegment() -> None:
            self.segmentation.segment_customers(owner_id, now=now)

        def refresh_insights() -> None:
            self.insights.generate_and_save_insights(owner_id, now=now)

        run(
            refresh_loyalty,
            "Updated all customer loyalty scores",
            "Failed to update loyalty scores",
        )
        run(resegment, "Re-segmented all customers", "Failed to segment customers")
        run(refresh_insights, "Generated automated insights", "Failed to generate insights")

        result = BatchAnalyticsResult(
            owner_id=owner_id,
            success=not errors,
            tasks_completed=completed,
            errors=errors,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
        logger.info(
            "Batch analytics finished",
            extra={
                "owner_id": owner_id,
                "success": result.success,
                "tasks_completed": len(completed),
                "errors": len(errors),
                "duration_ms": result.duration_ms,
            },
        )
        return result

    def run_batch_analytics_for_all(self, now: Optional[datetime] = None) -> BatchRunSummary:
        now = resolve_now(now)
        owner_ids = self.repository.list_active_owner_ids()
        results = fan_out(
            lambda o: self._run_isolated(o, now), owner_ids, self.settings.max_workers
        )
        successful = sum(1 for r in results if r.success)
        summary = BatchRunSummary(
            total_businesses=len(owner_ids),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )
        logger.info(
            "Batch analytics for all owners finished",
            extra={
                "total_businesses": summary.total_businesses,
                "successful": summary.successful,
                "failed": summary.failed,
            },
        )
        return summary

    def _run_isolated(self, owner_id: str, now: datetime) -> BatchAnalyticsResult:
        try:
            return self.run_batch_analytics(owner_id, now=now)
        except Exception as exc:
            logger.exception("Batch processing failed", extra={"owner_id": owner_id})
            return BatchAnalyticsResult(
                owner_id=owner_id,
                success=False,
                errors=[f"Batch processing failed: {exc}"],
            )
