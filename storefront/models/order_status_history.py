# storefront/models/order_status_history.py
from typing import Optional
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.db import Base, utcnow


class OrderStatusHistory(Base):
    """Append-only audit row, one per status transition."""

    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), index=True)

    old_status: Mapped[str] = mapped_column(String(24))
    new_status: Mapped[str] = mapped_column(String(24))
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    admin_note: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), default="admin")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    order = relationship("Order", back_populates="history")
