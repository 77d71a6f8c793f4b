"""
Historical billing backfill - past months the user marks as already paid.

Each backfilled month becomes a CONFIRMED billing event whose id is derived
from (subscription id, "YYYY-MM"), so re-saving the same selection updates
the same rows instead of duplicating them.
"""
import hashlib
import logging
import uuid
from datetime import date, datetime
from typing import Iterable
from sqlalchemy.orm import Session

from subtracker.domain.billing_calendar import clamped_date
from subtracker.domain.billing_cycle import (
    STATUS_CANCELLED,
    format_year_month_key, normalize_year_months,
)
from subtracker.infrastructure.db.models import (
    SubscriptionModel, BillingEventModel, EVENT_TYPE_CONFIRMED,
)
from subtracker.infrastructure.db.repository import BillingEventRepository

logger = logging.getLogger(__name__)


def historical_event_id(subscription_id: uuid.UUID, year_month_key: str) -> uuid.UUID:
    """Deterministic event id: first 16 bytes of sha256('historical:<uuid>:<YYYY-MM>')."""
    seed = f"historical:{str(subscription_id).lower()}:{year_month_key}"
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return uuid.UUID(bytes=digest[:16])


def _next_year_month(year: int, month: int) -> tuple[int, int]:
    if month >= 12:
        return year + 1, 1
    return year, month + 1


def status_blocked_year_months(
    status: str,
    cancellation_date: date | None,
    today: date,
) -> set[str]:
    """Year-months that cannot be backfilled because the subscription was not billing.

    CANCELLED: from the month after cancellation through the current month.
    ACTIVE / PAUSED: nothing (a pause only affects months from the next one on).
    """
    if status != STATUS_CANCELLED or cancellation_date is None:
        return set()

    year, month = _next_year_month(cancellation_date.year, cancellation_date.month)
    current = (today.year, today.month)
    out: set[str] = set()
    while (year, month) <= current:
        out.add(format_year_month_key(year, month))
        year, month = _next_year_month(year, month)
    return out


def is_past_or_current_month(year: int, month: int, today: date) -> bool:
    return (year, month) <= (today.year, today.month)


def normalize_historical_year_months(
    keys: Iterable[str],
    status: str,
    cancellation_date: date | None,
    today: date,
) -> list[str]:
    """Parse, drop future and status-blocked months, dedupe, sort."""
    blocked = status_blocked_year_months(status, cancellation_date, today)
    out = []
    for year, month in normalize_year_months(keys):
        key = format_year_month_key(year, month)
        if is_past_or_current_month(year, month, today) and key not in blocked:
            out.append(key)
    return out


def sync_historical_billing_events(
    db: Session,
    subscription: SubscriptionModel,
    previous_year_months: Iterable[str],
    current_year_months: Iterable[str],
    now: datetime,
) -> int:
    """Bring CONFIRMED backfill events in line with the selected months.

    Removed months lose their deterministic-id event; selected months get one
    (or have it refreshed). A month that already holds another CONFIRMED
    event is left alone. Returns count of inserted events.
    """
    repo = BillingEventRepository(db)
    current = set(current_year_months)
    events = repo.list_for_subscription(subscription.id)
    by_id = {e.id: e for e in events}

    for key in set(previous_year_months) - current:
        event = by_id.pop(historical_event_id(subscription.id, key), None)
        if event is not None:
            repo.delete(event)

    anchor_day = subscription.first_billing_date.day
    inserted = 0
    for year, month in normalize_year_months(current):
        key = format_year_month_key(year, month)
        billed_at = clamped_date(year, month, anchor_day)
        if billed_at is None:
            continue

        event_id = historical_event_id(subscription.id, key)
        existing = by_id.get(event_id)
        if existing is not None:
            existing.billed_at = billed_at
            existing.event_type = EVENT_TYPE_CONFIRMED
            if not existing.is_amount_overridden:
                existing.amount = subscription.amount
                existing.currency = subscription.currency
            existing.updated_at = now
            continue

        has_other_confirmed = any(
            e.event_type == EVENT_TYPE_CONFIRMED
            and (e.billed_at.year, e.billed_at.month) == (year, month)
            for e in by_id.values()
        )
        if has_other_confirmed:
            continue

        event = repo.add(BillingEventModel(
            id=event_id,
            subscription_id=subscription.id,
            account_id=subscription.account_id,
            billed_at=billed_at,
            amount=subscription.amount,
            currency=subscription.currency,
            event_type=EVENT_TYPE_CONFIRMED,
            is_amount_overridden=False,
            memo="",
            created_at=now,
            updated_at=now,
        ))
        by_id[event.id] = event
        inserted += 1

    db.flush()
    if inserted:
        logger.info("Backfilled %d historical billing(s) for subscription %s", inserted, subscription.id)
    return inserted
