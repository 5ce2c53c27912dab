from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Product(Base):
    __tablename__ = "product"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    price: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    inventory: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class DemandItem(Base):
    """Order or reservation line placed by a customer for one product."""

    __tablename__ = "demand_item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("product.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    order_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False, default="order")
    total_paid: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)

    product: Mapped[Product] = relationship("Product")
