import shutil
import tempfile
from datetime import datetime, timedelta
from decimal import Decimal

from wc_subscriptions.core.db import Db
from wc_subscriptions.core.models.order import Order
from wc_subscriptions.core.models.order_item import OrderItem


class FixedClock:
    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def make_temp_db(testcase) -> Db:
    folder = tempfile.mkdtemp(prefix="wcsub_")
    db = Db(url=f"sqlite:///{folder}/test.db", tag="测试")
    db.create_tables()
    testcase.addCleanup(shutil.rmtree, folder, True)
    testcase.addCleanup(db.engine.dispose)
    return db


def seed_order(db: Db, period="monthly", price="99.00", flagged=True, with_subscription=True, status="completed") -> int:
    now = datetime.now()
    with db.session_scope() as session:
        order = Order(status=status, currency="kr", total=Decimal("0"), created_at=now, updated_at=now)
        session.add(order)
        session.flush()
        item = OrderItem(order_id=order.id, name="Demo", quantity=1, price=Decimal("0"), created_at=now)
        if with_subscription:
            item.subscription_period = period
            item.subscription_price = price
            item.is_subscription_order = flagged
        session.add(item)
        session.flush()
        order_id = order.id
    return order_id
