"""Read views of customers and their sales, as fetched from the store."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.dates import ensure_utc


class PaymentStatus(str, Enum):
    """Payment state of a single sale."""

    PAID = "PAID"
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    OVERDUE = "OVERDUE"
    REFUNDED = "REFUNDED"


class SaleStatus(str, Enum):
    """Fulfilment state of a sale; only COMPLETED sales count as revenue."""

    COMPLETED = "COMPLETED"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


# Statuses that count as a payment problem for loyalty and churn scoring.
PAYMENT_ISSUE_STATUSES = frozenset({PaymentStatus.OVERDUE, PaymentStatus.PENDING})


class SaleItem(BaseModel):
    """Line item on a sale."""

    model_config = ConfigDict(extra="ignore")

    product_id: Optional[str] = None
    product_name: str
    quantity: int = 0
    total_price: float = 0.0

    @field_validator("quantity", "total_price", mode="before")
    @classmethod
    def default_missing_numbers(cls, value):
        return 0 if value is None else value


class SaleRecord(BaseModel):
    """A single sale attached to a customer (or owner, for revenue series)."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    customer_id: Optional[str] = None
    total_amount: float = 0.0
    sale_date: datetime
    payment_status: PaymentStatus = PaymentStatus.PAID
    status: SaleStatus = SaleStatus.COMPLETED
    payment_method: Optional[str] = None
    items: List[SaleItem] = Field(default_factory=list)

    @field_validator("total_amount", mode="before")
    @classmethod
    def default_missing_amount(cls, value):
        return 0 if value is None else value

    @field_validator("sale_date")
    @classmethod
    def normalize_sale_date(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def has_payment_issue(self) -> bool:
        return self.payment_status in PAYMENT_ISSUE_STATUSES


class CustomerSnapshot(BaseModel):
    """Customer with cumulative totals and sales ordered newest first."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    owner_id: Optional[str] = None
    total_spent: float = 0.0
    total_visits: int = 0
    loyalty_score: int = 0
    first_visit: Optional[datetime] = None
    last_visit: Optional[datetime] = None
    sales: List[SaleRecord] = Field(default_factory=list)

    @field_validator("total_spent", "total_visits", "loyalty_score", mode="before")
    @classmethod
    def default_missing_totals(cls, value):
        """Missing totals degrade to zero instead of failing the snapshot."""
        return 0 if value is None else value

    @field_validator("first_visit", "last_visit")
    @classmethod
    def normalize_visits(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def paid_sales(self) -> List[SaleRecord]:
        return [s for s in self.sales if s.is_paid]

    def summary(self) -> "CustomerSummary":
        return CustomerSummary(
            id=self.id,
            name=self.name,
            total_spent=self.total_spent,
            total_visits=self.total_visits,
            loyalty_score=self.loyalty_score,
            last_visit=self.last_visit,
        )


class CustomerSummary(BaseModel):
    """Customer identity and totals without the sales history."""

    id: str
    name: str
    total_spent: float
    total_visits: int
    loyalty_score: int
    last_visit: Optional[datetime] = None
