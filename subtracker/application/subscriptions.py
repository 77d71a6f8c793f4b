"""
Subscription use cases: CRUD подписок, статусы, подтверждение списаний.

Модуль работает напрямую с ORM. Every write that can change the schedule
(create, update, status change) re-syncs historical backfill events and
regenerates PROJECTED events before committing.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from sqlalchemy.orm import Session

from subtracker.config import get_settings
from subtracker.application.billing_projection import BillingProjectionService
from subtracker.application.historical_billing import (
    is_past_or_current_month,
    normalize_historical_year_months,
    sync_historical_billing_events,
)
from subtracker.domain.billing_calendar import BillingCalendar
from subtracker.domain.billing_cycle import (
    VALID_CYCLES, VALID_STATUSES,
    CYCLE_MONTHLY, CYCLE_YEARLY, CYCLE_SELECTED_MONTHS, CYCLE_CALENDAR_MONTHS, CYCLE_CUSTOM_DAYS,
    STATUS_ACTIVE, STATUS_CANCELLED,
    definition_from_db, normalize_months, normalize_year_months, parse_year_month_key,
    parse_selected_months, parse_year_month_list,
    serialize_selected_months, serialize_year_month_list,
)
from subtracker.domain.billing_engine import next_billing_date
from subtracker.infrastructure.db.models import (
    SubscriptionModel, BillingEventModel, EVENT_TYPE_PROJECTED, EVENT_TYPE_CONFIRMED,
)
from subtracker.infrastructure.db.repository import BillingEventRepository

logger = logging.getLogger(__name__)

MAX_AMOUNT = Decimal("1000000")

_EDITABLE_FIELDS = (
    "name", "plan_name", "category", "amount", "currency", "memo",
    "status", "first_billing_date", "cancellation_date",
    "billing_cycle", "billing_interval", "custom_days_interval",
    "selected_months", "selected_year_months", "historical_billed_year_months",
)


class SubscriptionValidationError(ValueError):
    pass


class SubscriptionNotFoundError(SubscriptionValidationError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError) as e:
        raise SubscriptionValidationError("Некорректная сумма") from e
    if amount < 0:
        raise SubscriptionValidationError("Сумма не может быть отрицательной")
    if amount > MAX_AMOUNT:
        raise SubscriptionValidationError("Сумма не может превышать 1 000 000")
    return amount


def _validate_fields(values: dict, today: date) -> dict:
    """Validate a full set of subscription fields; returns column values."""
    name = (values.get("name") or "").strip()
    if not name:
        raise SubscriptionValidationError("Название не может быть пустым")

    currency = (values.get("currency") or "").strip()[:3].upper()
    if not currency:
        raise SubscriptionValidationError("Укажите валюту")

    status = values.get("status") or STATUS_ACTIVE
    if status not in VALID_STATUSES:
        raise SubscriptionValidationError(f"Неизвестный статус: {status}")

    cycle = values.get("billing_cycle") or CYCLE_MONTHLY
    if cycle not in VALID_CYCLES:
        raise SubscriptionValidationError(f"Неизвестный цикл оплаты: {cycle}")

    first_billing_date = values.get("first_billing_date")
    if not isinstance(first_billing_date, date):
        raise SubscriptionValidationError("Укажите дату первого списания")

    cancellation_date = values.get("cancellation_date")
    if status == STATUS_CANCELLED:
        if cancellation_date is None:
            raise SubscriptionValidationError("Для отменённой подписки укажите дату отмены")
    else:
        cancellation_date = None

    billing_interval = 1
    if cycle in (CYCLE_MONTHLY, CYCLE_YEARLY):
        billing_interval = values.get("billing_interval")
        if billing_interval is None:
            billing_interval = 1
        if billing_interval < 1:
            raise SubscriptionValidationError("Интервал должен быть >= 1")

    custom_days_interval = None
    if cycle == CYCLE_CUSTOM_DAYS:
        custom_days_interval = values.get("custom_days_interval")
        if custom_days_interval is None or custom_days_interval < 1:
            raise SubscriptionValidationError("Интервал в днях должен быть >= 1")

    selected_months = ""
    if cycle == CYCLE_SELECTED_MONTHS:
        months = normalize_months(values.get("selected_months") or [])
        if not months:
            raise SubscriptionValidationError("Выберите хотя бы один месяц")
        selected_months = serialize_selected_months(months)

    selected_year_months = ""
    if cycle == CYCLE_CALENDAR_MONTHS:
        keys = values.get("selected_year_months") or []
        if not normalize_year_months(keys):
            raise SubscriptionValidationError("Выберите хотя бы один месяц календаря")
        selected_year_months = serialize_year_month_list(keys)

    raw_history = values.get("historical_billed_year_months") or []
    for key in raw_history:
        parsed = parse_year_month_key(key)
        if parsed is not None and not is_past_or_current_month(parsed[0], parsed[1], today):
            raise SubscriptionValidationError("История оплат не может содержать будущие месяцы")
    history = normalize_historical_year_months(raw_history, status, cancellation_date, today)

    return {
        "name": name,
        "plan_name": (values.get("plan_name") or "").strip(),
        "category": (values.get("category") or "").strip(),
        "amount": _to_amount(values.get("amount")),
        "currency": currency,
        "memo": values.get("memo") or "",
        "status": status,
        "first_billing_date": first_billing_date,
        "cancellation_date": cancellation_date,
        "billing_cycle": cycle,
        "billing_interval": billing_interval,
        "custom_days_interval": custom_days_interval,
        "selected_months": selected_months,
        "selected_year_months": selected_year_months,
        "historical_billed_year_months": ",".join(history),
    }


def _current_values(sub: SubscriptionModel) -> dict:
    """Row -> the same shape use cases accept as input."""
    return {
        "name": sub.name,
        "plan_name": sub.plan_name,
        "category": sub.category,
        "amount": sub.amount,
        "currency": sub.currency,
        "memo": sub.memo,
        "status": sub.status,
        "first_billing_date": sub.first_billing_date,
        "cancellation_date": sub.cancellation_date,
        "billing_cycle": sub.billing_cycle,
        "billing_interval": sub.billing_interval,
        "custom_days_interval": sub.custom_days_interval,
        "selected_months": list(parse_selected_months(sub.selected_months)),
        "selected_year_months": parse_year_month_list(sub.selected_year_months),
        "historical_billed_year_months": parse_year_month_list(sub.historical_billed_year_months),
    }


def get_subscription(db: Session, sub_id: uuid.UUID, account_id: int) -> SubscriptionModel:
    sub = db.query(SubscriptionModel).filter(
        SubscriptionModel.id == sub_id,
        SubscriptionModel.account_id == account_id,
    ).first()
    if not sub:
        raise SubscriptionNotFoundError("Подписка не найдена")
    return sub


def _get_event(db: Session, event_id: uuid.UUID, account_id: int) -> BillingEventModel:
    event = db.query(BillingEventModel).filter(
        BillingEventModel.id == event_id,
        BillingEventModel.account_id == account_id,
    ).first()
    if not event:
        raise SubscriptionNotFoundError("Списание не найдено")
    return event


class _ScheduleWriter:
    """Shared part of the use cases that change a subscription's schedule."""

    def __init__(self, db: Session, projection: BillingProjectionService | None = None):
        self.db = db
        self.projection = projection or BillingProjectionService(db)

    @property
    def calendar(self) -> BillingCalendar:
        return self.projection.calendar

    def _resync(self, sub: SubscriptionModel, previous_history: list[str], now: datetime) -> None:
        sync_historical_billing_events(
            self.db, sub,
            previous_year_months=previous_history,
            current_year_months=parse_year_month_list(sub.historical_billed_year_months),
            now=now,
        )
        count = self.projection.regenerate(sub, now=now)
        logger.info("Regenerated %d projected billing(s) for subscription %s", count, sub.id)


# ============================================================================
# Subscriptions CRUD
# ============================================================================


class CreateSubscriptionUseCase(_ScheduleWriter):
    def execute(
        self,
        account_id: int,
        name: str,
        amount,
        first_billing_date: date,
        currency: str | None = None,
        billing_cycle: str = CYCLE_MONTHLY,
        billing_interval: int = 1,
        custom_days_interval: int | None = None,
        selected_months: list[int] | None = None,
        selected_year_months: list[str] | None = None,
        historical_billed_year_months: list[str] | None = None,
        status: str = STATUS_ACTIVE,
        cancellation_date: date | None = None,
        plan_name: str = "",
        category: str = "",
        memo: str = "",
        now: datetime | None = None,
    ) -> uuid.UUID:
        now = now or _utcnow()
        fields = _validate_fields(
            {
                "name": name,
                "plan_name": plan_name,
                "category": category,
                "amount": amount,
                "currency": currency or get_settings().DEFAULT_CURRENCY,
                "memo": memo,
                "status": status,
                "first_billing_date": first_billing_date,
                "cancellation_date": cancellation_date,
                "billing_cycle": billing_cycle,
                "billing_interval": billing_interval,
                "custom_days_interval": custom_days_interval,
                "selected_months": selected_months,
                "selected_year_months": selected_year_months,
                "historical_billed_year_months": historical_billed_year_months,
            },
            self.calendar.today(now),
        )

        sub = SubscriptionModel(account_id=account_id, created_at=now, updated_at=now, **fields)
        self.db.add(sub)
        self.db.flush()

        self._resync(sub, previous_history=[], now=now)
        self.db.commit()
        logger.info("Subscription created: %s (%s)", sub.id, sub.name)
        return sub.id


class UpdateSubscriptionUseCase(_ScheduleWriter):
    def execute(self, sub_id: uuid.UUID, account_id: int, now: datetime | None = None, **changes) -> None:
        now = now or _utcnow()
        sub = get_subscription(self.db, sub_id, account_id)

        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise SubscriptionValidationError(f"Неизвестные поля: {', '.join(sorted(unknown))}")

        values = _current_values(sub)
        values.update(changes)
        fields = _validate_fields(values, self.calendar.today(now))

        previous_history = parse_year_month_list(sub.historical_billed_year_months)
        for key, value in fields.items():
            setattr(sub, key, value)
        sub.updated_at = now
        self.db.flush()

        self._resync(sub, previous_history=previous_history, now=now)
        self.db.commit()


class ChangeSubscriptionStatusUseCase(_ScheduleWriter):
    """ACTIVE / PAUSED / CANCELLED(date) + пересчёт прогноза."""

    def execute(
        self,
        sub_id: uuid.UUID,
        account_id: int,
        status: str,
        cancellation_date: date | None = None,
        now: datetime | None = None,
    ) -> None:
        UpdateSubscriptionUseCase(self.db, self.projection).execute(
            sub_id, account_id, now=now,
            status=status, cancellation_date=cancellation_date,
        )


class DeleteSubscriptionUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, sub_id: uuid.UUID, account_id: int) -> None:
        sub = get_subscription(self.db, sub_id, account_id)
        deleted = BillingEventRepository(self.db).delete_for_subscription(sub.id)
        self.db.delete(sub)
        self.db.commit()
        logger.info("Subscription deleted: %s (%d billing event(s))", sub_id, deleted)


# ============================================================================
# Billing events
# ============================================================================


class ConfirmBillingEventUseCase:
    """PROJECTED -> CONFIRMED (списание фактически прошло)."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, event_id: uuid.UUID, account_id: int, now: datetime | None = None) -> None:
        event = _get_event(self.db, event_id, account_id)
        if event.event_type == EVENT_TYPE_CONFIRMED:
            raise SubscriptionValidationError("Списание уже подтверждено")
        event.event_type = EVENT_TYPE_CONFIRMED
        event.updated_at = now or _utcnow()
        self.db.commit()


class EditBillingEventUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        event_id: uuid.UUID,
        account_id: int,
        amount=None,
        memo: str | None = None,
        now: datetime | None = None,
    ) -> None:
        event = _get_event(self.db, event_id, account_id)
        if amount is not None:
            event.amount = _to_amount(amount)
            sub = self.db.get(SubscriptionModel, event.subscription_id)
            if sub is not None:
                event.is_amount_overridden = event.amount != sub.amount
        if memo is not None:
            event.memo = memo
        event.updated_at = now or _utcnow()
        self.db.commit()


class RegenerateProjectionsUseCase:
    """Пересчитать PROJECTED события: одна подписка или все подписки аккаунта."""

    def __init__(self, db: Session, projection: BillingProjectionService | None = None):
        self.db = db
        self.projection = projection or BillingProjectionService(db)

    def execute(
        self,
        account_id: int | None = None,
        subscription_id: uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> int:
        if subscription_id is not None:
            if account_id is None:
                raise SubscriptionValidationError("account_id обязателен для одной подписки")
            subs = [get_subscription(self.db, subscription_id, account_id)]
        else:
            q = self.db.query(SubscriptionModel)
            if account_id is not None:
                q = q.filter(SubscriptionModel.account_id == account_id)
            subs = q.all()

        count = self.projection.regenerate_all(subs, now=now)
        self.db.commit()
        logger.info(
            "Regenerated %d projected billing(s) for %d subscription(s)", count, len(subs),
        )
        return count


def list_billing_events(
    db: Session,
    subscription: SubscriptionModel,
    event_type: str | None = None,
) -> list[BillingEventModel]:
    if event_type is not None and event_type not in (EVENT_TYPE_PROJECTED, EVENT_TYPE_CONFIRMED):
        raise SubscriptionValidationError(f"Неизвестный тип события: {event_type}")
    return BillingEventRepository(db).list_for_subscription(subscription.id, event_type)


def get_next_billing_date(
    db: Session,
    subscription: SubscriptionModel,
    reference: date | datetime | None = None,
    calendar: BillingCalendar | None = None,
) -> date | None:
    """Next billing date of a subscription, stepping over already confirmed days."""
    service = BillingProjectionService(db, calendar=calendar)
    if reference is None:
        reference = service.calendar.today()
    return next_billing_date(
        definition_from_db(subscription),
        reference,
        confirmed_dates=service.confirmed_dates(subscription),
        calendar=service.calendar,
    )
