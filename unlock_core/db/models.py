from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    payment_id: Mapped[str] = mapped_column(String(128))
    site_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    device_no: Mapped[str] = mapped_column(String(64))
    cart_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    cart_index: Mapped[int] = mapped_column(Integer)
    amount_halalas: Mapped[int] = mapped_column(Integer)
    # pending_payment / unlocking / in_use / returned / unlock_failed / overdue / canceled
    status: Mapped[str] = mapped_column(String(32), default="pending_payment")
    vendor_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    vendor_msg: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    unlock_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    unlock_confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    returned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # create-or-fetch by payment relies on this constraint
    __table_args__ = (UniqueConstraint("payment_id", name="uq_orders_payment_id"),)


Index("ix_orders_status", Order.status)
Index("ix_orders_device_no", Order.device_no)


class PaymentRecord(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    status: Mapped[str] = mapped_column(String(16))  # pending / paid / failed / canceled
    mode: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    scheme: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    amount_halalas: Mapped[int] = mapped_column(Integer)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    metadata_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
