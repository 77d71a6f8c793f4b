"""
Spend summary over billing events of an account.

Totals are kept per currency; no conversion is attempted.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session

from subtracker.config import get_settings
from subtracker.domain.billing_cycle import STATUS_PAUSED
from subtracker.infrastructure.db.models import (
    SubscriptionModel, BillingEventModel, EVENT_TYPE_PROJECTED,
)

UNCATEGORIZED = "Без категории"
UPCOMING_LIMIT = 5


@dataclass
class CategoryTotal:
    category: str
    currency: str
    total: Decimal


@dataclass
class UpcomingBilling:
    event_id: object
    subscription_id: object
    subscription_name: str
    billed_at: date
    amount: Decimal
    currency: str
    event_type: str


@dataclass
class SummaryMetrics:
    month_projected: dict[str, Decimal] = field(default_factory=dict)
    month_confirmed: dict[str, Decimal] = field(default_factory=dict)
    year_projected: dict[str, Decimal] = field(default_factory=dict)
    month_projected_by_category: list[CategoryTotal] = field(default_factory=list)
    upcoming: list[UpcomingBilling] = field(default_factory=list)


def build_summary(
    db: Session,
    account_id: int,
    today: date,
    include_paused: bool | None = None,
) -> SummaryMetrics:
    """Current month / year totals and the next few billings for an account."""
    if include_paused is None:
        include_paused = get_settings().INCLUDE_PAUSED_IN_SUMMARY

    rows = db.query(BillingEventModel, SubscriptionModel).join(
        SubscriptionModel, SubscriptionModel.id == BillingEventModel.subscription_id,
    ).filter(
        BillingEventModel.account_id == account_id,
    ).order_by(BillingEventModel.billed_at).all()

    month_projected: dict[str, Decimal] = defaultdict(Decimal)
    month_confirmed: dict[str, Decimal] = defaultdict(Decimal)
    year_projected: dict[str, Decimal] = defaultdict(Decimal)
    by_category: dict[tuple[str, str], Decimal] = defaultdict(Decimal)
    upcoming: list[UpcomingBilling] = []

    for event, sub in rows:
        if sub.status == STATUS_PAUSED and not include_paused:
            continue

        billed = event.billed_at
        is_projected = event.event_type == EVENT_TYPE_PROJECTED

        if (billed.year, billed.month) == (today.year, today.month):
            if is_projected:
                month_projected[event.currency] += event.amount
                by_category[(sub.category or UNCATEGORIZED, event.currency)] += event.amount
            else:
                month_confirmed[event.currency] += event.amount

        if billed.year == today.year and is_projected:
            year_projected[event.currency] += event.amount

        if billed >= today and len(upcoming) < UPCOMING_LIMIT:
            upcoming.append(UpcomingBilling(
                event_id=event.id,
                subscription_id=sub.id,
                subscription_name=sub.name,
                billed_at=billed,
                amount=event.amount,
                currency=event.currency,
                event_type=event.event_type,
            ))

    categories = [
        CategoryTotal(category=cat, currency=cur, total=total)
        for (cat, cur), total in by_category.items()
    ]
    categories.sort(key=lambda c: (-c.total, c.category, c.currency))

    return SummaryMetrics(
        month_projected=dict(month_projected),
        month_confirmed=dict(month_confirmed),
        year_projected=dict(year_projected),
        month_projected_by_category=categories,
        upcoming=upcoming,
    )
