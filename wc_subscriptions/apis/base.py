from typing import Any, Optional

from fastapi import HTTPException, status

from wc_subscriptions.core.exceptions import (
    DuplicatePlanPeriod,
    InvalidOrderState,
    InvalidPeriod,
    InvalidPrice,
    OrderNotFound,
    OrderStoreUnavailable,
    PlanNotFound,
    ProductNotFound,
    SchedulingCollaboratorUnavailable,
    SubscriptionError,
)


def success_response(data: Any = None, message: str = "success", code: int = 0) -> dict:
    return {"code": code, "message": message, "data": data}


def error_response(code: int, message: str, data: Optional[Any] = None) -> dict:
    return {"code": code, "message": message, "data": data}


_STATUS_BY_ERROR = (
    ((OrderNotFound, ProductNotFound, PlanNotFound), status.HTTP_404_NOT_FOUND),
    ((InvalidPeriod, InvalidPrice, DuplicatePlanPeriod, InvalidOrderState), status.HTTP_400_BAD_REQUEST),
    ((SchedulingCollaboratorUnavailable, OrderStoreUnavailable), status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(e: SubscriptionError) -> HTTPException:
    """领域异常 → HTTPException，detail 使用统一响应结构。"""
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for types, http_status in _STATUS_BY_ERROR:
        if isinstance(e, types):
            code = http_status
            break
    return HTTPException(
        status_code=code,
        detail=error_response(code=code, message=str(e), data={"error": type(e).__name__}),
    )


def outcome_to_dict(outcome) -> Optional[dict]:
    if outcome is None:
        return None
    next_payment_at = getattr(outcome, "next_payment_at", None)
    return {
        "status": outcome.status,
        "next_payment_at": next_payment_at.isoformat() if next_payment_at else None,
    }
