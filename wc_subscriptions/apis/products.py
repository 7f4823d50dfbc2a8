from decimal import Decimal

from fastapi import APIRouter
from pydantic import BaseModel, Field

from wc_subscriptions.core.db import DB
from wc_subscriptions.core.exceptions import SubscriptionError
from wc_subscriptions.core.plan_service import (
    add_plan,
    create_product,
    plan_catalog,
    set_subscription_enabled,
)
from .base import http_error, success_response


router = APIRouter(prefix="/products", tags=["商品订阅方案"])


class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    regular_price: Decimal = Field(default=Decimal("0"), ge=0)
    subscription_enabled: bool = False


class SubscriptionToggleRequest(BaseModel):
    enabled: bool


class AddPlanRequest(BaseModel):
    period: str = Field(..., max_length=20)
    price: Decimal = Field(..., ge=0)


@router.post("", summary="创建商品")
async def create_product_api(payload: CreateProductRequest):
    session = DB.get_session()
    try:
        product = create_product(
            session,
            name=payload.name,
            regular_price=payload.regular_price,
            subscription_enabled=payload.subscription_enabled,
        )
        return success_response(plan_catalog(session, product.id), message="商品创建成功")
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()


@router.get("/{product_id}", summary="获取商品及订阅方案")
async def get_product_api(product_id: int):
    session = DB.get_session()
    try:
        return success_response(plan_catalog(session, product_id))
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()


@router.put("/{product_id}/subscription", summary="开启/关闭商品订阅")
async def toggle_subscription(product_id: int, payload: SubscriptionToggleRequest):
    session = DB.get_session()
    try:
        set_subscription_enabled(session, product_id, payload.enabled)
        return success_response(plan_catalog(session, product_id))
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()


@router.get("/{product_id}/plans", summary="获取商品订阅方案列表")
async def list_plans_api(product_id: int):
    session = DB.get_session()
    try:
        return success_response(plan_catalog(session, product_id)["plans"])
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("/{product_id}/plans", summary="新增订阅方案")
async def add_plan_api(product_id: int, payload: AddPlanRequest):
    session = DB.get_session()
    try:
        add_plan(session, product_id, period=payload.period, price=payload.price)
        return success_response(plan_catalog(session, product_id), message="订阅方案已添加")
    except SubscriptionError as e:
        raise http_error(e)
    finally:
        session.close()
