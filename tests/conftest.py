"""
Pytest configuration to ensure paths are set up correctly for tests.

This allows imports like `from handlers import health_check` to work
when running tests, simulating the Lambda environment where code
is deployed from the src/ directory.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import boto3
import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add repository root AND src/ to sys.path if missing.

    The src/ directory is added to simulate Lambda's import behavior,
    where the deployment package makes src/ the root of the package.
    """
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"

    root_str = str(repo_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    # Add src/ for Lambda-style imports (from handlers import ...)
    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

# Ensure boto3 has offline-friendly defaults so tests do not require AWS access.
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_SESSION_TOKEN", "test")
os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Create a default boto3 session so clients do not error during import.
boto3.setup_default_session(region_name="eu-west-2")

from models.customer import CustomerSnapshot, PaymentStatus, SaleItem, SaleRecord  # noqa: E402

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def make_sale(
    days: float,
    amount: float = 100_000.0,
    payment_status: PaymentStatus = PaymentStatus.PAID,
    payment_method: str = "CASH",
    items=None,
    sale_id=None,
) -> SaleRecord:
    return SaleRecord(
        id=sale_id,
        total_amount=amount,
        sale_date=days_ago(days),
        payment_status=payment_status,
        payment_method=payment_method,
        items=items or [],
    )


def make_item(name: str, quantity: int, total_price: float, product_id=None) -> SaleItem:
    return SaleItem(
        product_id=product_id, product_name=name, quantity=quantity, total_price=total_price
    )


def make_customer(
    customer_id: str = "cust-1",
    name: str = "Aminata Kamara",
    total_spent: float = 0.0,
    total_visits: int = 0,
    first_visit_days=None,
    last_visit_days=None,
    sales=None,
    loyalty_score: int = 0,
    owner_id: str = "owner-1",
) -> CustomerSnapshot:
    return CustomerSnapshot(
        id=customer_id,
        name=name,
        owner_id=owner_id,
        total_spent=total_spent,
        total_visits=total_visits,
        loyalty_score=loyalty_score,
        first_visit=days_ago(first_visit_days) if first_visit_days is not None else None,
        last_visit=days_ago(last_visit_days) if last_visit_days is not None else None,
        sales=sales or [],
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def repository():
    """Stand-in for the Postgres persistence collaborator."""
    from unittest.mock import MagicMock

    from repositories.postgres_repo import AnalyticsRepository

    return MagicMock(spec=AnalyticsRepository)
