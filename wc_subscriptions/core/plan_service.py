from datetime import datetime
from typing import Dict, List, Optional

from wc_subscriptions.core.config import cfg
from wc_subscriptions.core.events import E, log_event
from wc_subscriptions.core.exceptions import DuplicatePlanPeriod, InvalidOrderState, PlanNotFound, ProductNotFound
from wc_subscriptions.core.log import get_logger
from wc_subscriptions.core.models.product import Product
from wc_subscriptions.core.models.subscription_plan import SubscriptionPlan
from wc_subscriptions.core.order_store import parse_price
from wc_subscriptions.core.period import PERIOD_CHOICES, parse_period

logger = get_logger(__name__)


def _plan_to_dict(plan: SubscriptionPlan) -> Dict:
    return {
        "id": plan.id,
        "product_id": plan.product_id,
        "period": plan.period,
        "price": str(plan.price),
        "label": f"{plan.period}: {plan.price} {cfg.get('billing.currency', 'kr')}",
    }


def product_to_dict(product: Product, plans: Optional[List[SubscriptionPlan]] = None) -> Dict:
    return {
        "id": product.id,
        "name": product.name,
        "regular_price": str(product.regular_price),
        "subscription_enabled": bool(product.subscription_enabled),
        "plans": [_plan_to_dict(x) for x in (plans or [])],
        "period_choices": PERIOD_CHOICES,
    }


def create_product(session, name: str, regular_price, subscription_enabled: bool = False) -> Product:
    now = datetime.now()
    product = Product(
        name=str(name or "").strip()[:200],
        regular_price=parse_price(regular_price),
        subscription_enabled=bool(subscription_enabled),
        created_at=now,
        updated_at=now,
    )
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


def get_product(session, product_id) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product


def set_subscription_enabled(session, product_id, enabled: bool) -> Product:
    """开关商品订阅；关闭时删除其全部订阅方案。"""
    product = get_product(session, product_id)
    product.subscription_enabled = bool(enabled)
    product.updated_at = datetime.now()
    if not enabled:
        session.query(SubscriptionPlan).filter(SubscriptionPlan.product_id == product.id).delete()
        log_event(logger, E.PLAN_SUBSCRIPTION_DISABLE, product_id=product.id)
    else:
        log_event(logger, E.PLAN_SUBSCRIPTION_ENABLE, product_id=product.id)
    session.commit()
    session.refresh(product)
    return product


def list_plans(session, product_id) -> List[SubscriptionPlan]:
    return (
        session.query(SubscriptionPlan)
        .filter(SubscriptionPlan.product_id == product_id)
        .order_by(SubscriptionPlan.id.asc())
        .all()
    )


def get_plan(session, product_id, period: str) -> SubscriptionPlan:
    kind = parse_period(period)
    plan = (
        session.query(SubscriptionPlan)
        .filter(SubscriptionPlan.product_id == product_id, SubscriptionPlan.period == kind.value)
        .first()
    )
    if plan is None:
        raise PlanNotFound(product_id, kind.value)
    return plan


def add_plan(session, product_id, period: str, price) -> SubscriptionPlan:
    product = get_product(session, product_id)
    if not product.subscription_enabled:
        raise InvalidOrderState(f"商品 {product.id} 未开启订阅")
    kind = parse_period(period)
    amount = parse_price(price)
    exists = (
        session.query(SubscriptionPlan.id)
        .filter(SubscriptionPlan.product_id == product.id, SubscriptionPlan.period == kind.value)
        .first()
    )
    if exists:
        log_event(logger, E.PLAN_ADD_DUPLICATE, level="warning", product_id=product.id, period=kind.value)
        raise DuplicatePlanPeriod(product.id, kind.value)
    plan = SubscriptionPlan(product_id=product.id, period=kind.value, price=amount, created_at=datetime.now())
    session.add(plan)
    session.commit()
    session.refresh(plan)
    log_event(logger, E.PLAN_ADD, product_id=product.id, period=kind.value, price=amount)
    return plan


def plan_catalog(session, product_id) -> Dict:
    product = get_product(session, product_id)
    return product_to_dict(product, list_plans(session, product.id))
