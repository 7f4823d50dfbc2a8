from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from wc_subscriptions.core.config import cfg
from wc_subscriptions.core.events import E, log_event
from wc_subscriptions.core.exceptions import InvalidOrderState, OrderNotFound
from wc_subscriptions.core.log import get_logger
from wc_subscriptions.core.models.order import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PENDING,
    Order,
)
from wc_subscriptions.core.models.order_item import OrderItem
from wc_subscriptions.core.plan_service import get_plan, get_product

logger = get_logger(__name__)


@dataclass
class OrderLine:
    product_id: int
    quantity: int = 1
    # 选择的订阅周期；为空表示一次性购买
    subscription_period: Optional[str] = None


def _currency() -> str:
    return str(cfg.get("billing.currency", "kr") or "kr")


def subscription_message(period: str, price, currency: str = "") -> str:
    return (
        f"This is a subscription product and you will be billed {price}{currency or _currency()} "
        f"on a {period} basis."
    )


def _item_to_dict(item: OrderItem, currency: str) -> Dict:
    data = {
        "id": item.id,
        "product_id": item.product_id,
        "name": item.name,
        "quantity": int(item.quantity or 0),
        "price": str(item.price),
        "is_subscription_order": bool(item.is_subscription_order),
        "subscription_period": item.subscription_period,
        "subscription_price": item.subscription_price,
    }
    if item.subscription_period and item.subscription_price:
        data["subscription_msg"] = subscription_message(item.subscription_period, item.subscription_price, currency)
    return data


def order_to_dict(order: Order, items: List[OrderItem]) -> Dict:
    return {
        "id": order.id,
        "status": order.status,
        "currency": order.currency,
        "total": str(order.total),
        "next_payment_at": order.next_payment_at.isoformat() if order.next_payment_at else None,
        "completed_at": order.completed_at.isoformat() if order.completed_at else None,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [_item_to_dict(x, order.currency) for x in items],
    }


def create_order(session, lines: Iterable[OrderLine]) -> Order:
    """
    下单：订阅行按所选周期的方案定价，并把周期 / 价格 / 订阅标记写入订单行。
    """
    lines = list(lines)
    if not lines:
        raise InvalidOrderState("订单至少需要一个商品")
    now = datetime.now()
    order = Order(status=ORDER_STATUS_PENDING, currency=_currency(), total=0, created_at=now, updated_at=now)
    session.add(order)
    session.flush()

    total = Decimal("0")
    try:
        for line in lines:
            product = get_product(session, line.product_id)
            quantity = max(1, int(line.quantity or 1))
            item = OrderItem(
                order_id=order.id,
                product_id=product.id,
                name=product.name,
                quantity=quantity,
                created_at=now,
            )
            if line.subscription_period:
                if not product.subscription_enabled:
                    raise InvalidOrderState(f"商品 {product.id} 未开启订阅")
                plan = get_plan(session, product.id, line.subscription_period)
                item.price = plan.price
                item.subscription_period = plan.period
                item.subscription_price = str(plan.price)
                item.is_subscription_order = True
            else:
                item.price = product.regular_price
                item.is_subscription_order = False
            total += Decimal(item.price) * quantity
            session.add(item)
    except Exception:
        session.rollback()
        raise

    order.total = total
    session.commit()
    session.refresh(order)
    log_event(logger, E.ORDER_CREATE, order_id=order.id, lines=len(lines), total=total)
    return order


def get_order(session, order_id) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


def get_order_items(session, order_id) -> List[OrderItem]:
    return session.query(OrderItem).filter(OrderItem.order_id == order_id).order_by(OrderItem.id.asc()).all()


def complete_order(session, order_id) -> bool:
    """pending → completed。返回是否本次发生了状态变更（重复完成为幂等 no-op）。"""
    order = get_order(session, order_id)
    if order.status == ORDER_STATUS_COMPLETED:
        log_event(logger, E.ORDER_COMPLETE_SKIP, order_id=order.id, reason="already_completed")
        return False
    if order.status != ORDER_STATUS_PENDING:
        raise InvalidOrderState(f"订单状态不可完成: {order.status}")
    now = datetime.now()
    order.status = ORDER_STATUS_COMPLETED
    order.completed_at = now
    order.updated_at = now
    session.commit()
    log_event(logger, E.ORDER_COMPLETE, order_id=order.id)
    return True


def cancel_order(session, order_id) -> Order:
    order = get_order(session, order_id)
    if order.status == ORDER_STATUS_COMPLETED:
        raise InvalidOrderState("已完成订单不可取消")
    order.status = ORDER_STATUS_CANCELLED
    order.updated_at = datetime.now()
    session.commit()
    session.refresh(order)
    return order


def subscription_summary(session, order_id) -> Dict:
    """后台订单详情中展示的订阅信息。"""
    order = get_order(session, order_id)
    subs = [
        {"period": x.subscription_period, "price": x.subscription_price}
        for x in get_order_items(session, order.id)
        if x.subscription_period and x.subscription_price
    ]
    return {
        "order_id": order.id,
        "status": order.status,
        "is_subscription_order": bool(subs),
        "subscriptions": subs,
        "next_payment_at": order.next_payment_at.isoformat() if order.next_payment_at else None,
    }
