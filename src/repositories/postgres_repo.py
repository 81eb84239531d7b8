"""
PostgreSQL persistence collaborator using SQLAlchemy Core.

Reads customer/sale snapshots for the analytics engine and writes back the
two things the engine produces for storage: loyalty scores and insights.
"""

from __future__ import annotations

import json
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine

from models.customer import CustomerSnapshot, SaleItem, SaleRecord
from models.insight import Insight
from utils.db import get_db_engine
from utils.error_handling import ServiceUnavailableError
from utils.logging_config import get_logger

logger = get_logger(__name__)

_CUSTOMER_COLUMNS = """
    id, name, "ownerId" AS owner_id, "totalSpent" AS total_spent,
    "totalVisits" AS total_visits, "loyaltyScore" AS loyalty_score,
    "firstVisit" AS first_visit, "lastVisit" AS last_visit
"""

_SALE_COLUMNS = """
    id, "customerId" AS customer_id, "totalAmount" AS total_amount,
    "saleDate" AS sale_date, "paymentStatus" AS payment_status,
    status, "paymentMethod" AS payment_method
"""


class AnalyticsRepository:
    """Thin wrapper to keep SQL organized and parameterized."""

    def __init__(self, engine: Engine):
        self.engine = engine

    # Reads

    def get_customer_with_sales(self, customer_id: str) -> Optional[CustomerSnapshot]:
        """Fetch one customer with sales ordered by date descending."""
        query = text(f"SELECT {_CUSTOMER_COLUMNS} FROM customers WHERE id = :customer_id")
        with self.engine.connect() as conn:
            row = conn.execute(query, {"customer_id": customer_id}).fetchone()
            if not row:
                return None
            customer = dict(row._mapping)
            sales = self._fetch_customer_sales(conn, [customer["id"]])
        return self._to_snapshot(customer, sales.get(customer["id"], []))

    def list_customers_with_sales(self, owner_id: str) -> List[CustomerSnapshot]:
        """Fetch every customer of an owner, highest spend first, with sales."""
        query = text(
            f"""
            SELECT {_CUSTOMER_COLUMNS}
            FROM customers
            WHERE "ownerId" = :owner_id
            ORDER BY "totalSpent" DESC
        """
        )
        with self.engine.connect() as conn:
            customers = [dict(r._mapping) for r in conn.execute(query, {"owner_id": owner_id})]
            if not customers:
                return []
            sales = self._fetch_customer_sales(conn, [c["id"] for c in customers])
        return [self._to_snapshot(c, sales.get(c["id"], [])) for c in customers]

    def list_completed_sales(
        self, owner_id: str, start: datetime, end: datetime
    ) -> List[SaleRecord]:
        """Fetch COMPLETED sales of an owner with ``start <= saleDate < end``."""
        query = text(
            f"""
            SELECT {_SALE_COLUMNS}
            FROM sales
            WHERE "ownerId" = :owner_id
              AND status = 'COMPLETED'
              AND "saleDate" >= :start
              AND "saleDate" < :end
            ORDER BY "saleDate" ASC
        """
        )
        with self.engine.connect() as conn:
            rows = [
                dict(r._mapping)
                for r in conn.execute(query, {"owner_id": owner_id, "start": start, "end": end})
            ]
            items = self._fetch_items(conn, [r["id"] for r in rows])
        return [self._to_sale(r, items.get(r["id"], [])) for r in rows]

    def owner_exists(self, owner_id: str) -> bool:
        query = text("SELECT 1 FROM users WHERE id = :owner_id")
        with self.engine.connect() as conn:
            return conn.execute(query, {"owner_id": owner_id}).fetchone() is not None

    def list_active_owner_ids(self) -> List[str]:
        query = text('SELECT id FROM users WHERE "isActive" = true ORDER BY id')
        with self.engine.connect() as conn:
            return [row[0] for row in conn.execute(query)]

    # Writes

    def update_loyalty_score(self, customer_id: str, score: int) -> None:
        """Persist a recomputed loyalty score."""
        stmt = text(
            'UPDATE customers SET "loyaltyScore" = :score, "updatedAt" = NOW() '
            "WHERE id = :customer_id"
        )
        with self.engine.begin() as conn:
            conn.execute(stmt, {"score": score, "customer_id": customer_id})

    def save_insight(self, owner_id: str, insight: Insight) -> str:
        """Insert an insight into the analytics log and return its id."""
        insight_id = str(uuid.uuid4())
        stmt = text(
            """
            INSERT INTO analytics_logs
                (id, type, period, title, summary, data, "generatedAt", "ownerId")
            VALUES
                (:id, :type, :period, :title, :summary, CAST(:data AS JSONB),
                 :generated_at, :owner_id)
        """
        )
        payload = insight.model_dump(mode="json")
        with self.engine.begin() as conn:
            conn.execute(
                stmt,
                {
                    "id": insight_id,
                    "type": insight.type.value,
                    "period": insight.generated_at.strftime("%Y-%m"),
                    "title": insight.title,
                    "summary": insight.summary,
                    "data": json.dumps(payload["data"]),
                    "generated_at": insight.generated_at,
                    "owner_id": owner_id,
                },
            )
        return insight_id

    # Helpers

    def _fetch_customer_sales(
        self, conn, customer_ids: List[str]
    ) -> Dict[str, List[SaleRecord]]:
        query = text(
            f"""
            SELECT {_SALE_COLUMNS}
            FROM sales
            WHERE "customerId" IN :customer_ids
            ORDER BY "saleDate" DESC
        """
        ).bindparams(bindparam("customer_ids", expanding=True))
        rows = [dict(r._mapping) for r in conn.execute(query, {"customer_ids": customer_ids})]
        items = self._fetch_items(conn, [r["id"] for r in rows])

        grouped: Dict[str, List[SaleRecord]] = defaultdict(list)
        for row in rows:
            grouped[row["customer_id"]].append(self._to_sale(row, items.get(row["id"], [])))
        return grouped

    def _fetch_items(self, conn, sale_ids: List[str]) -> Dict[str, List[SaleItem]]:
        if not sale_ids:
            return {}
        query = text(
            """
            SELECT "saleId" AS sale_id, "productId" AS product_id,
                   "productName" AS product_name, quantity, "totalPrice" AS total_price
            FROM sale_items
            WHERE "saleId" IN :sale_ids
        """
        ).bindparams(bindparam("sale_ids", expanding=True))
        grouped: Dict[str, List[SaleItem]] = defaultdict(list)
        for row in conn.execute(query, {"sale_ids": sale_ids}):
            data = dict(row._mapping)
            grouped[data.pop("sale_id")].append(SaleItem(**_floats(data, "total_price")))
        return grouped

    @staticmethod
    def _to_sale(row: Dict[str, Any], items: List[SaleItem]) -> SaleRecord:
        return SaleRecord(**_floats(row, "total_amount"), items=items)

    @staticmethod
    def _to_snapshot(row: Dict[str, Any], sales: List[SaleRecord]) -> CustomerSnapshot:
        return CustomerSnapshot(**_floats(row, "total_spent"), sales=sales)


def _floats(row: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Convert DECIMAL columns to float for the read views."""
    converted = dict(row)
    for key in keys:
        if converted.get(key) is not None:
            converted[key] = float(converted[key])
    return converted


_repository: Optional[AnalyticsRepository] = None


def get_repository() -> AnalyticsRepository:
    """Lazily build the repository on the pooled engine."""
    global _repository
    if _repository is None:
        engine = get_db_engine()
        if engine is None:
            raise ServiceUnavailableError("Analytics store is not configured")
        _repository = AnalyticsRepository(engine)
    return _repository
