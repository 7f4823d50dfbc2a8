from fastapi import APIRouter, Query

from wc_subscriptions.core.exceptions import SubscriptionError
from wc_subscriptions.core.task_scheduler import SqlTaskScheduler
from wc_subscriptions.jobs.recurring_billing import run_due_tasks
from .base import http_error, success_response


router = APIRouter(prefix="/tasks", tags=["延迟任务"])


@router.get("", summary="获取延迟任务列表")
async def list_tasks_api(
    status: str = Query("", max_length=20),
    task_name: str = Query("", max_length=100),
    limit: int = Query(100, ge=1, le=500),
):
    return success_response(SqlTaskScheduler().list_tasks(status=status, task_name=task_name, limit=limit))


@router.post("/run-due", summary="立即执行已到期任务")
async def run_due_tasks_api(limit: int = Query(50, ge=1, le=500)):
    try:
        return success_response(run_due_tasks(limit=limit))
    except SubscriptionError as e:
        raise http_error(e)
