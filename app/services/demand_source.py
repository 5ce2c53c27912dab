from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Protocol

from sqlalchemy.orm import Session

from app.core.config import DEMAND_ITEM_TYPES
from app.core.forecasting.domain import DemandEvent, ProductSnapshot
from app.models.models import DemandItem, Product


class DemandSource(Protocol):
    """Read-only access to products and their demand history."""

    def list_products(self) -> list[ProductSnapshot]:
        ...

    def get_product(self, product_id: str) -> ProductSnapshot | None:
        ...

    def fetch_events(
        self,
        start: date,
        end: date,
        product_ids: Iterable[str] | None = None,
    ) -> list[DemandEvent]:
        ...


def effective_status(order_status: str | None, status: str | None) -> str:
    """Order status wins over item status; compared lower-case."""

    return str(order_status or status or "").lower()


def _snapshot(row: Product) -> ProductSnapshot:
    return ProductSnapshot(
        product_id=row.id,
        name=row.name,
        category=row.category,
        price=float(row.price or 0),
        inventory=int(row.inventory or 0),
        reserved_stock=int(row.reserved_stock or 0),
    )


class SqlDemandSource:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_products(self) -> list[ProductSnapshot]:
        rows = self.db.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()
        return [_snapshot(row) for row in rows]

    def get_product(self, product_id: str) -> ProductSnapshot | None:
        row = self.db.query(Product).filter(Product.id == product_id).first()
        return _snapshot(row) if row is not None else None

    def get_products(self, product_ids: Iterable[str]) -> dict[str, ProductSnapshot]:
        ids = list(product_ids)
        if not ids:
            return {}
        rows = self.db.query(Product).filter(Product.id.in_(ids)).all()
        return {row.id: _snapshot(row) for row in rows}

    def fetch_events(
        self,
        start: date,
        end: date,
        product_ids: Iterable[str] | None = None,
    ) -> list[DemandEvent]:
        """Orders and reservations created within [start, end] (UTC days)."""

        lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
        upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)

        query = self.db.query(DemandItem).filter(
            DemandItem.created_at >= lower,
            DemandItem.created_at < upper,
            DemandItem.item_type.in_(DEMAND_ITEM_TYPES),
        )
        if product_ids is not None:
            ids = list(product_ids)
            if not ids:
                return []
            query = query.filter(DemandItem.product_id.in_(ids))

        rows = query.order_by(DemandItem.created_at.asc(), DemandItem.id.asc()).all()

        return [
            DemandEvent(
                product_id=row.product_id,
                timestamp=row.created_at,
                quantity=row.quantity,
                status=effective_status(row.order_status, row.status),
                item_type=(row.item_type or "").lower(),
                revenue=float(row.total_paid) if row.total_paid is not None else None,
            )
            for row in rows
        ]
