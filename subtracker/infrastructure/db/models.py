"""
SQLAlchemy ORM models (subscriptions + billing events)
"""
import uuid
from decimal import Decimal
from datetime import date as date_type, datetime
from sqlalchemy import (
    String, Integer, SmallInteger, Text, TIMESTAMP, Date, Boolean, Numeric,
    ForeignKey, Index, Uuid, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from subtracker.infrastructure.db.session import Base


EVENT_TYPE_PROJECTED = "PROJECTED"
EVENT_TYPE_CONFIRMED = "CONFIRMED"


class SubscriptionModel(Base):
    """Subscription definition: amount + billing cycle + status"""
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    plan_name: Mapped[str] = mapped_column(String(255), nullable=False, default="", server_default="")
    category: Mapped[str] = mapped_column(String(128), nullable=False, default="", server_default="")

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="ACTIVE", server_default="ACTIVE",
    )  # ACTIVE / PAUSED / CANCELLED
    first_billing_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    cancellation_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)

    billing_cycle: Mapped[str] = mapped_column(
        String(32), nullable=False, default="MONTHLY", server_default="MONTHLY",
    )  # MONTHLY / YEARLY / SELECTED_MONTHS / CALENDAR_MONTHS / ONE_TIME / CUSTOM_DAYS
    billing_interval: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1, server_default="1")
    custom_days_interval: Mapped[int | None] = mapped_column(Integer, nullable=True)  # CUSTOM_DAYS only
    selected_months: Mapped[str] = mapped_column(
        String(64), nullable=False, default="", server_default="",
    )  # "1,3,7,10"
    selected_year_months: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default="",
    )  # "2025-01,2025-03"
    historical_billed_year_months: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default="",
    )  # months backfilled as CONFIRMED, same format

    memo: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class BillingEventModel(Base):
    """One billing occurrence: PROJECTED (regenerated) or CONFIRMED (paid, durable)"""
    __tablename__ = "billing_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    subscription_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False,
    )
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    billed_at: Mapped[date_type] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    event_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default=EVENT_TYPE_PROJECTED, server_default=EVENT_TYPE_PROJECTED,
    )  # PROJECTED / CONFIRMED
    is_amount_overridden: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false",
    )
    memo: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_billing_events_sub_type", "subscription_id", "event_type"),
        Index("ix_billing_events_account_billed", "account_id", "billed_at"),
    )
