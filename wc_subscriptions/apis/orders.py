from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from wc_subscriptions.core.billing_scheduler import get_billing_scheduler, handle_order_completed
from wc_subscriptions.core.db import DB
from wc_subscriptions.core.exceptions import SubscriptionError
from wc_subscriptions.core.order_service import (
    OrderLine,
    cancel_order,
    complete_order,
    create_order,
    get_order,
    get_order_items,
    order_to_dict,
    subscription_summary,
)
from .base import http_error, outcome_to_dict, success_response


router = APIRouter(prefix="/orders", tags=["订单"])


class OrderLineRequest(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1, le=999)
    # 计费方式选择：为空为一次性购买，否则为订阅周期
    subscription_period: Optional[str] = Field(default=None, max_length=20)


class CreateOrderRequest(BaseModel):
    lines: List[OrderLineRequest] = Field(..., min_length=1)


def _order_payload(session, order_id) -> dict:
    order = get_order(session, order_id)
    return order_to_dict(order, get_order_items(session, order.id))


@router.post("", summary="创建订单")
async def create_order_api(payload: CreateOrderRequest):
    session = DB.get_session()
    try:
        order = create_order(
            session,
            [OrderLine(x.product_id, x.quantity, x.subscription_period) for x in payload.lines],
        )
        return success_response(_order_payload(session, order.id), message="订单创建成功")
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()


@router.get("/{order_id}", summary="获取订单详情")
async def get_order_api(order_id: int):
    session = DB.get_session()
    try:
        return success_response(_order_payload(session, order_id))
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("/{order_id}/complete", summary="完成订单并排期续费")
async def complete_order_api(order_id: int):
    session = DB.get_session()
    try:
        changed = complete_order(session, order_id)
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()
    try:
        outcome = get_billing_scheduler().schedule_next_billing(order_id)
    except SubscriptionError as e:
        raise http_error(e)
    return success_response({"order_id": order_id, "status_changed": changed, "billing": outcome_to_dict(outcome)})


@router.post("/{order_id}/cancel", summary="取消未完成订单")
async def cancel_order_api(order_id: int):
    session = DB.get_session()
    try:
        cancel_order(session, order_id)
        return success_response(_order_payload(session, order_id), message="订单已取消")
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()


@router.get("/{order_id}/subscription", summary="获取订单订阅信息")
async def order_subscription_api(order_id: int):
    session = DB.get_session()
    try:
        return success_response(subscription_summary(session, order_id))
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("/{order_id}/events/completed", summary="订单完成事件回调（可重复投递）")
async def order_completed_event(order_id: int):
    outcome = handle_order_completed(order_id)
    if outcome is None:
        return success_response({"order_id": order_id, "billing": None}, message="续费排期失败，详见日志", code=1)
    return success_response({"order_id": order_id, "billing": outcome_to_dict(outcome)})
