"""
Behavioral segmentation tests.

Run with: pytest tests/unit/test_segmentation_service.py -v
"""

from config.settings import AnalyticsSettings
from conftest import NOW, make_customer, make_sale
from models.analytics import CustomerSegment
from models.customer import PaymentStatus
from services.segmentation_service import (
    SegmentationService,
    assign_segments,
    build_segment_buckets,
    compute_spend_thresholds,
)

SETTINGS = AnalyticsSettings(max_workers=1)


def _population():
    return [
        make_customer("vip", total_spent=1000, loyalty_score=90, first_visit_days=400, last_visit_days=5),
        make_customer("loyal", total_spent=900, loyalty_score=75, first_visit_days=400, last_visit_days=10),
        make_customer("never", total_spent=800, loyalty_score=50),
        make_customer("lapsed", total_spent=700, loyalty_score=50, first_visit_days=400, last_visit_days=100),
        make_customer("low-score", total_spent=600, loyalty_score=30, first_visit_days=400, last_visit_days=10),
        make_customer(
            "overdue",
            total_spent=500,
            loyalty_score=60,
            first_visit_days=400,
            last_visit_days=10,
            sales=[make_sale(10, payment_status=PaymentStatus.OVERDUE)],
        ),
        make_customer("new", total_spent=400, loyalty_score=60, first_visit_days=30, last_visit_days=10),
        make_customer("regular", total_spent=300, loyalty_score=60, first_visit_days=200, last_visit_days=10),
        make_customer("gone", total_spent=200, loyalty_score=60, first_visit_days=400, last_visit_days=200),
        make_customer("steady", total_spent=100, loyalty_score=60, first_visit_days=300, last_visit_days=20),
    ]


class TestThresholds:
    def test_top_percentiles(self):
        thresholds = compute_spend_thresholds(_population())
        assert thresholds.top_10 == 900
        assert thresholds.top_25 == 800

    def test_empty_population(self):
        thresholds = compute_spend_thresholds([])
        assert thresholds.top_10 == 0
        assert thresholds.top_25 == 0


class TestAssignment:
    def test_rule_cascade(self):
        segments = assign_segments(_population(), NOW)
        assert segments == {
            "vip": CustomerSegment.VIP,
            "loyal": CustomerSegment.LOYAL,
            "never": CustomerSegment.INACTIVE,
            "lapsed": CustomerSegment.AT_RISK,
            "low-score": CustomerSegment.AT_RISK,
            "overdue": CustomerSegment.AT_RISK,
            "new": CustomerSegment.NEW,
            "regular": CustomerSegment.REGULAR,
            "gone": CustomerSegment.INACTIVE,
            "steady": CustomerSegment.REGULAR,
        }

    def test_pending_payment_is_not_at_risk(self):
        """Only OVERDUE sales push a customer into AT_RISK."""
        customer = make_customer(
            loyalty_score=60,
            first_visit_days=200,
            last_visit_days=10,
            sales=[make_sale(10, payment_status=PaymentStatus.PENDING)],
        )
        assert assign_segments([customer], NOW)[customer.id] == CustomerSegment.REGULAR

    def test_single_customer_can_be_vip(self):
        customer = make_customer(total_spent=10, loyalty_score=85, last_visit_days=1)
        assert assign_segments([customer], NOW)[customer.id] == CustomerSegment.VIP


class TestBuckets:
    def test_buckets_partition_customers(self):
        population = _population()
        buckets = build_segment_buckets(population, NOW)

        assert [b.segment for b in buckets] == [
            CustomerSegment.VIP,
            CustomerSegment.LOYAL,
            CustomerSegment.REGULAR,
            CustomerSegment.NEW,
            CustomerSegment.AT_RISK,
            CustomerSegment.INACTIVE,
        ]
        assert sum(b.count for b in buckets) == len(population)
        member_ids = [m.id for b in buckets for m in b.customers]
        assert sorted(member_ids) == sorted(c.id for c in population)

        at_risk = next(b for b in buckets if b.segment == CustomerSegment.AT_RISK)
        assert at_risk.count == 3
        assert at_risk.total_value == 1800
        assert at_risk.average_value == 600

    def test_empty_segments_are_omitted(self):
        buckets = build_segment_buckets([make_customer(loyalty_score=50)], NOW)
        assert [b.segment for b in buckets] == [CustomerSegment.INACTIVE]

    def test_no_customers(self):
        assert build_segment_buckets([], NOW) == []


class TestSegmentationService:
    def test_customers_by_segment(self, repository):
        repository.list_customers_with_sales.return_value = _population()
        service = SegmentationService(repository=repository, settings=SETTINGS)

        at_risk = service.get_customers_by_segment("owner-1", CustomerSegment.AT_RISK, now=NOW)

        assert [c.id for c in at_risk] == ["lapsed", "low-score", "overdue"]

    def test_segment_customers_reads_owner_population(self, repository):
        repository.list_customers_with_sales.return_value = _population()
        service = SegmentationService(repository=repository, settings=SETTINGS)

        buckets = service.segment_customers("owner-1", now=NOW)

        repository.list_customers_with_sales.assert_called_once_with("owner-1")
        assert buckets[0].segment == CustomerSegment.VIP
