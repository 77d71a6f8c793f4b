"""
Subscription & billing event API endpoints
"""
import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from subtracker.api.deps import get_db, get_account_id
from subtracker.application.subscriptions import (
    CreateSubscriptionUseCase, UpdateSubscriptionUseCase, ChangeSubscriptionStatusUseCase,
    DeleteSubscriptionUseCase, ConfirmBillingEventUseCase, EditBillingEventUseCase,
    RegenerateProjectionsUseCase,
    SubscriptionValidationError, SubscriptionNotFoundError,
    get_subscription, list_billing_events, get_next_billing_date,
)
from subtracker.application.summary import build_summary
from subtracker.domain.billing_calendar import default_calendar
from subtracker.domain.billing_cycle import (
    CYCLE_MONTHLY, STATUS_ACTIVE, parse_selected_months, parse_year_month_list,
)
from subtracker.infrastructure.db.models import SubscriptionModel, BillingEventModel
from subtracker.utils.validation import validate_and_normalize_amount, validate_year_month_key


router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


# === Request/Response models ===

class SubscriptionRequest(BaseModel):
    name: str
    amount: str
    first_billing_date: date
    currency: str | None = None  # по умолчанию DEFAULT_CURRENCY
    billing_cycle: str = CYCLE_MONTHLY
    billing_interval: int = 1
    custom_days_interval: int | None = None
    selected_months: list[int] = []
    selected_year_months: list[str] = []
    historical_billed_year_months: list[str] = []
    status: str = STATUS_ACTIVE
    cancellation_date: date | None = None
    plan_name: str = ""
    category: str = ""
    memo: str = ""

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        return validate_and_normalize_amount(v, max_decimal_places=2)

    @field_validator("selected_year_months", "historical_billed_year_months")
    @classmethod
    def validate_year_months(cls, v: list[str]) -> list[str]:
        return [validate_year_month_key(k) for k in v]


class UpdateSubscriptionRequest(BaseModel):
    name: str | None = None
    amount: str | None = None
    first_billing_date: date | None = None
    currency: str | None = None
    billing_cycle: str | None = None
    billing_interval: int | None = None
    custom_days_interval: int | None = None
    selected_months: list[int] | None = None
    selected_year_months: list[str] | None = None
    historical_billed_year_months: list[str] | None = None
    plan_name: str | None = None
    category: str | None = None
    memo: str | None = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return validate_and_normalize_amount(v, max_decimal_places=2)

    @field_validator("selected_year_months", "historical_billed_year_months")
    @classmethod
    def validate_year_months(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [validate_year_month_key(k) for k in v]


class StatusRequest(BaseModel):
    status: str  # ACTIVE, PAUSED, CANCELLED
    cancellation_date: date | None = None


class EditEventRequest(BaseModel):
    amount: str | None = None
    memo: str | None = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return validate_and_normalize_amount(v, max_decimal_places=2)


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    name: str
    plan_name: str
    category: str
    amount: str  # Decimal as string
    currency: str
    status: str
    first_billing_date: date
    cancellation_date: date | None
    billing_cycle: str
    billing_interval: int
    custom_days_interval: int | None
    selected_months: list[int]
    selected_year_months: list[str]
    historical_billed_year_months: list[str]
    memo: str


class BillingEventResponse(BaseModel):
    id: uuid.UUID
    subscription_id: uuid.UUID
    billed_at: date
    amount: str
    currency: str
    event_type: str
    is_amount_overridden: bool
    memo: str


# === Helper functions ===

def _subscription_response(sub: SubscriptionModel) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=sub.id,
        name=sub.name,
        plan_name=sub.plan_name,
        category=sub.category,
        amount=str(sub.amount),
        currency=sub.currency,
        status=sub.status,
        first_billing_date=sub.first_billing_date,
        cancellation_date=sub.cancellation_date,
        billing_cycle=sub.billing_cycle,
        billing_interval=sub.billing_interval,
        custom_days_interval=sub.custom_days_interval,
        selected_months=list(parse_selected_months(sub.selected_months)),
        selected_year_months=parse_year_month_list(sub.selected_year_months),
        historical_billed_year_months=parse_year_month_list(sub.historical_billed_year_months),
        memo=sub.memo,
    )


def _event_response(e: BillingEventModel) -> BillingEventResponse:
    return BillingEventResponse(
        id=e.id,
        subscription_id=e.subscription_id,
        billed_at=e.billed_at,
        amount=str(e.amount),
        currency=e.currency,
        event_type=e.event_type,
        is_amount_overridden=e.is_amount_overridden,
        memo=e.memo,
    )


def _http_error(exc: SubscriptionValidationError) -> HTTPException:
    if isinstance(exc, SubscriptionNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


# === Endpoints ===

@router.post("/", response_model=SubscriptionResponse)
def create_subscription(
    req: SubscriptionRequest,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    """Создать подписку и сгенерировать прогноз списаний"""
    try:
        sub_id = CreateSubscriptionUseCase(db).execute(account_id=account_id, **req.model_dump())
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return _subscription_response(get_subscription(db, sub_id, account_id))


@router.get("/", response_model=list[SubscriptionResponse])
def list_subscriptions(
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
    status: str | None = None,
):
    """Список подписок"""
    query = db.query(SubscriptionModel).filter(SubscriptionModel.account_id == account_id)
    if status:
        query = query.filter(SubscriptionModel.status == status)
    subs = query.order_by(SubscriptionModel.name).all()
    return [_subscription_response(s) for s in subs]


@router.post("/regenerate")
def regenerate_all(
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    """Пересчитать прогноз для всех подписок аккаунта"""
    count = RegenerateProjectionsUseCase(db).execute(account_id=account_id)
    return {"projected": count}


@router.get("/summary")
def summary(
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
    include_paused: bool | None = None,
):
    """Итоги за текущий месяц / год"""
    today = default_calendar().today()
    metrics = build_summary(db, account_id, today, include_paused=include_paused)
    return {
        "month_projected": {k: str(v) for k, v in metrics.month_projected.items()},
        "month_confirmed": {k: str(v) for k, v in metrics.month_confirmed.items()},
        "year_projected": {k: str(v) for k, v in metrics.year_projected.items()},
        "month_projected_by_category": [
            {"category": c.category, "currency": c.currency, "total": str(c.total)}
            for c in metrics.month_projected_by_category
        ],
        "upcoming": [
            {
                "event_id": str(u.event_id),
                "subscription_id": str(u.subscription_id),
                "subscription_name": u.subscription_name,
                "billed_at": u.billed_at.isoformat(),
                "amount": str(u.amount),
                "currency": u.currency,
                "event_type": u.event_type,
            }
            for u in metrics.upcoming
        ],
    }


@router.post("/events/{event_id}/confirm")
def confirm_event(
    event_id: uuid.UUID,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    """Подтвердить списание (PROJECTED -> CONFIRMED)"""
    try:
        ConfirmBillingEventUseCase(db).execute(event_id, account_id)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return {"status": "confirmed"}


@router.patch("/events/{event_id}")
def edit_event(
    event_id: uuid.UUID,
    req: EditEventRequest,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    """Изменить сумму / заметку списания"""
    try:
        EditBillingEventUseCase(db).execute(event_id, account_id, amount=req.amount, memo=req.memo)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return {"status": "updated"}


@router.get("/{sub_id}", response_model=SubscriptionResponse)
def get_subscription_detail(
    sub_id: uuid.UUID,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    try:
        sub = get_subscription(db, sub_id, account_id)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return _subscription_response(sub)


@router.patch("/{sub_id}", response_model=SubscriptionResponse)
def update_subscription(
    sub_id: uuid.UUID,
    req: UpdateSubscriptionRequest,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    """Изменить подписку (только переданные поля)"""
    try:
        UpdateSubscriptionUseCase(db).execute(sub_id, account_id, **req.model_dump(exclude_none=True))
        sub = get_subscription(db, sub_id, account_id)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return _subscription_response(sub)


@router.post("/{sub_id}/status", response_model=SubscriptionResponse)
def change_status(
    sub_id: uuid.UUID,
    req: StatusRequest,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    """Пауза / отмена / возобновление"""
    try:
        ChangeSubscriptionStatusUseCase(db).execute(
            sub_id, account_id, status=req.status, cancellation_date=req.cancellation_date,
        )
        sub = get_subscription(db, sub_id, account_id)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return _subscription_response(sub)


@router.delete("/{sub_id}")
def delete_subscription(
    sub_id: uuid.UUID,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    """Удалить подписку вместе со списаниями"""
    try:
        DeleteSubscriptionUseCase(db).execute(sub_id, account_id)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return {"status": "deleted"}


@router.get("/{sub_id}/events", response_model=list[BillingEventResponse])
def list_events(
    sub_id: uuid.UUID,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
    event_type: str | None = None,
):
    """Списания подписки (PROJECTED / CONFIRMED)"""
    try:
        sub = get_subscription(db, sub_id, account_id)
        events = list_billing_events(db, sub, event_type)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return [_event_response(e) for e in events]


@router.get("/{sub_id}/next-billing-date")
def next_billing(
    sub_id: uuid.UUID,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
    reference_date: date | None = None,
):
    """Ближайшая дата списания (null для паузы / завершённой отмены)"""
    try:
        sub = get_subscription(db, sub_id, account_id)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    next_date = get_next_billing_date(db, sub, reference=reference_date)
    return {"next_billing_date": next_date.isoformat() if next_date else None}


@router.post("/{sub_id}/regenerate")
def regenerate_one(
    sub_id: uuid.UUID,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_account_id),
):
    """Пересчитать прогноз одной подписки"""
    try:
        count = RegenerateProjectionsUseCase(db).execute(account_id=account_id, subscription_id=sub_id)
    except SubscriptionValidationError as e:
        raise _http_error(e)
    return {"projected": count}
