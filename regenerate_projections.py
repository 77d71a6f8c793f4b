"""
Пересчитать PROJECTED списания вручную (все подписки или один аккаунт)

Usage:
    python regenerate_projections.py            # все аккаунты
    python regenerate_projections.py 2          # только account_id=2
"""
import logging
import sys

from subtracker.infrastructure.db.session import get_db
from subtracker.application.subscriptions import RegenerateProjectionsUseCase
from subtracker.infrastructure.db.models import BillingEventModel, EVENT_TYPE_PROJECTED

logging.basicConfig(level=logging.INFO)

account_id = int(sys.argv[1]) if len(sys.argv) > 1 else None

db = next(get_db())

try:
    scope = f"account_id={account_id}" if account_id is not None else "все аккаунты"
    print(f"Пересчитываем прогноз списаний ({scope})...")

    count = RegenerateProjectionsUseCase(db).execute(account_id=account_id)
    print(f"✓ Создано прогнозных списаний: {count}")

    q = db.query(BillingEventModel).filter(BillingEventModel.event_type == EVENT_TYPE_PROJECTED)
    if account_id is not None:
        q = q.filter(BillingEventModel.account_id == account_id)
    for e in q.order_by(BillingEventModel.billed_at).limit(10).all():
        print(f"  - {e.billed_at}: {e.amount} {e.currency}")

except Exception as e:
    print(f"✗ ОШИБКА: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)

finally:
    db.close()
