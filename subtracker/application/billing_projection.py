"""
Billing projection service - keeps PROJECTED billing events in sync with a
subscription's cycle definition.

Every pass is a full replace: all PROJECTED events of the subscription are
deleted and recreated from the engine output over the window
[today - past_months, today + future_months]. CONFIRMED events are never
touched; their days are excluded from the projection.

The service does not commit - callers own the transaction.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable
from sqlalchemy.orm import Session

from subtracker.config import Settings, get_settings
from subtracker.domain.billing_calendar import BillingCalendar, add_months, default_calendar
from subtracker.domain.billing_cycle import definition_from_db
from subtracker.domain.billing_engine import generate_projected_dates
from subtracker.infrastructure.db.models import (
    SubscriptionModel, BillingEventModel,
    EVENT_TYPE_PROJECTED, EVENT_TYPE_CONFIRMED,
)
from subtracker.infrastructure.db.repository import BillingEventRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionWindowSettings:
    past_months: int = 6
    future_months: int = 12

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProjectionWindowSettings":
        return cls(
            past_months=settings.PROJECTION_PAST_MONTHS,
            future_months=settings.PROJECTION_FUTURE_MONTHS,
        )


class BillingProjectionService:
    def __init__(
        self,
        db: Session,
        settings: ProjectionWindowSettings | None = None,
        calendar: BillingCalendar | None = None,
    ):
        self.db = db
        self.repo = BillingEventRepository(db)
        self.settings = settings or ProjectionWindowSettings.from_settings(get_settings())
        self.calendar = calendar or default_calendar()

    def projection_window(self, now: datetime | None = None) -> tuple[date, date]:
        """Window: [today - past_months, today + future_months], both inclusive."""
        today = self.calendar.today(now)
        return (
            add_months(today, -self.settings.past_months),
            add_months(today, self.settings.future_months),
        )

    def confirmed_dates(self, subscription: SubscriptionModel) -> frozenset[date]:
        return frozenset(
            self.calendar.start_of_day(e.billed_at)
            for e in self.repo.list_for_subscription(subscription.id, EVENT_TYPE_CONFIRMED)
        )

    def regenerate(self, subscription: SubscriptionModel, now: datetime | None = None) -> int:
        """Replace PROJECTED events of one subscription. Returns count of new rows."""
        if now is None:
            now = datetime.now(timezone.utc)
        range_start, range_end = self.projection_window(now)

        confirmed = self.confirmed_dates(subscription)

        for event in self.repo.list_for_subscription(subscription.id, EVENT_TYPE_PROJECTED):
            self.repo.delete(event)

        dates = generate_projected_dates(
            definition_from_db(subscription),
            confirmed,
            range_start,
            range_end,
            calendar=self.calendar,
        )
        for billed_at in dates:
            self.repo.add(BillingEventModel(
                subscription_id=subscription.id,
                account_id=subscription.account_id,
                billed_at=billed_at,
                amount=subscription.amount,
                currency=subscription.currency,
                event_type=EVENT_TYPE_PROJECTED,
                is_amount_overridden=False,
                memo="",
                created_at=now,
                updated_at=now,
            ))

        subscription.updated_at = now
        self.db.flush()
        return len(dates)

    def regenerate_all(
        self,
        subscriptions: Iterable[SubscriptionModel],
        now: datetime | None = None,
    ) -> int:
        """Regenerate each subscription independently. Returns total count of new rows."""
        if now is None:
            now = datetime.now(timezone.utc)
        total = 0
        for subscription in subscriptions:
            total += self.regenerate(subscription, now=now)
        return total
