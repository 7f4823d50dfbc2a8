from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from wc_subscriptions.core.db import DB, Db
from wc_subscriptions.core.exceptions import InvalidPrice, OrderNotFound, OrderStoreUnavailable
from wc_subscriptions.core.log import get_logger
from wc_subscriptions.core.models.order import Order
from wc_subscriptions.core.models.order_item import OrderItem

logger = get_logger(__name__)


@dataclass(frozen=True)
class SubscriptionFields:
    order_id: int
    period: str
    price: Decimal
    is_subscription_order: bool
    order_status: str


def parse_price(value) -> Decimal:
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidPrice(value) from None
    if not price.is_finite() or price < 0:
        raise InvalidPrice(value)
    return price


class SqlOrderStore:
    """订单存储：从订单行的订阅元数据读取订阅记录，并回写下次扣款时间。"""

    def __init__(self, db: Db = None):
        self.db = db or DB

    def get_subscription_fields(self, order_id) -> Optional[SubscriptionFields]:
        try:
            with self.db.session_scope() as session:
                order = session.get(Order, order_id)
                if order is None:
                    raise OrderNotFound(order_id)
                items = (
                    session.query(OrderItem)
                    .filter(OrderItem.order_id == order.id)
                    .order_by(OrderItem.id.asc())
                    .all()
                )
                rows = [x for x in items if x.subscription_period and x.subscription_price]
                if not rows:
                    return None
                if len({x.subscription_period for x in rows}) > 1:
                    logger.warning("订单 %s 含多个不同周期的订阅行，按第一行排期", order_id)
                item = rows[0]
                return SubscriptionFields(
                    order_id=order.id,
                    period=str(item.subscription_period),
                    price=parse_price(item.subscription_price),
                    is_subscription_order=bool(item.is_subscription_order),
                    order_status=str(order.status or ""),
                )
        except SQLAlchemyError as e:
            raise OrderStoreUnavailable(f"读取订单订阅信息失败: {e}") from e

    def set_next_payment_at(self, order_id, when: datetime) -> None:
        try:
            with self.db.session_scope() as session:
                order = session.get(Order, order_id)
                if order is None:
                    raise OrderNotFound(order_id)
                order.next_payment_at = when
                order.updated_at = datetime.now()
        except SQLAlchemyError as e:
            raise OrderStoreUnavailable(f"写入下次扣款时间失败: {e}") from e

    def get_next_payment_at(self, order_id) -> Optional[datetime]:
        with self.db.session_scope() as session:
            order = session.get(Order, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            return order.next_payment_at
