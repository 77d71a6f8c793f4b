"""
Billing event repository - persistence boundary for projection reconciliation.

Wraps the SQLAlchemy session with the handful of operations the projection
service needs. Errors from the session propagate unchanged.
"""
import uuid
from typing import List, Optional
from sqlalchemy.orm import Session

from subtracker.infrastructure.db.models import BillingEventModel


class BillingEventRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_subscription(
        self,
        subscription_id: uuid.UUID,
        event_type: Optional[str] = None,
    ) -> List[BillingEventModel]:
        """
        Events of a subscription, oldest billing first

        Args:
            subscription_id: ID подписки
            event_type: PROJECTED / CONFIRMED, None = все
        """
        q = self.db.query(BillingEventModel).filter(
            BillingEventModel.subscription_id == subscription_id,
        )
        if event_type is not None:
            q = q.filter(BillingEventModel.event_type == event_type)
        return q.order_by(BillingEventModel.billed_at, BillingEventModel.created_at).all()

    def add(self, event: BillingEventModel) -> BillingEventModel:
        self.db.add(event)
        self.db.flush()
        return event

    def delete(self, event: BillingEventModel) -> None:
        self.db.delete(event)
        self.db.flush()

    def delete_for_subscription(self, subscription_id: uuid.UUID) -> int:
        """Удалить все события подписки. Returns count of deleted rows."""
        count = self.db.query(BillingEventModel).filter(
            BillingEventModel.subscription_id == subscription_id,
        ).delete(synchronize_session="fetch")
        self.db.flush()
        return count
