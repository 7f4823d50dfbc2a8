import time
from datetime import datetime
from threading import Thread
from typing import Callable, Dict

from wc_subscriptions.core.billing_scheduler import RECURRING_PAYMENT_TASK, process_recurring_payment
from wc_subscriptions.core.config import cfg
from wc_subscriptions.core.events import E, log_event
from wc_subscriptions.core.log import get_logger, trace_ctx
from wc_subscriptions.core.task_scheduler import SqlTaskScheduler

logger = get_logger(__name__)

TASK_HANDLERS: Dict[str, Callable] = {
    RECURRING_PAYMENT_TASK: process_recurring_payment,
}


def register_task_handler(task_name: str, handler: Callable) -> None:
    """处理函数以任务 args 为位置参数，另接收关键字参数 fire_at（本次计划触发时间）。"""
    TASK_HANDLERS[task_name] = handler


def run_due_tasks(task_scheduler: SqlTaskScheduler = None, now: datetime = None, limit: int = 0, handlers=None) -> Dict:
    """领取并执行所有已到期任务，返回执行统计。"""
    task_scheduler = task_scheduler or SqlTaskScheduler()
    handlers = TASK_HANDLERS if handlers is None else handlers
    now = now or datetime.now()
    batch = int(limit or cfg.get("billing.worker_batch_size", 50) or 50)

    fired, failed = [], []
    for task in task_scheduler.claim_due(now, limit=batch):
        with trace_ctx(task["id"][:8]):
            handler = handlers.get(task["task_name"])
            if handler is None:
                log_event(logger, E.TASK_EXECUTE_SKIP, level="warning", task_id=task["id"], task=task["task_name"])
                task_scheduler.mark_failed(task["id"], f"未注册的任务: {task['task_name']}")
                failed.append(task["id"])
                continue
            log_event(logger, E.TASK_EXECUTE_START, task_id=task["id"], task=task["task_name"], args=task["args"])
            try:
                handler(*task["args"], fire_at=datetime.fromisoformat(task["fire_at"]))
            except Exception as e:
                logger.exception("延迟任务执行失败: %s", task["id"])
                log_event(logger, E.TASK_EXECUTE_FAIL, level="error", task_id=task["id"], reason=str(e))
                task_scheduler.mark_failed(task["id"], str(e))
                failed.append(task["id"])
                continue
            task_scheduler.mark_fired(task["id"])
            log_event(logger, E.TASK_EXECUTE_COMPLETE, task_id=task["id"], task=task["task_name"])
            fired.append(task["id"])
    return {"total": len(fired) + len(failed), "fired": fired, "failed": failed}


def _worker_loop():
    interval = max(5, int(cfg.get("billing.worker_interval_seconds", 30) or 30))
    while True:
        try:
            log_event(logger, E.WORKER_SWEEP_START, interval=interval)
            result = run_due_tasks()
            log_event(logger, E.WORKER_SWEEP_COMPLETE, total=result["total"], failed=len(result["failed"]))
        except Exception:
            logger.exception("续费任务扫描异常")
        time.sleep(interval)


def start_recurring_billing_worker():
    t = Thread(target=_worker_loop, daemon=True, name="recurring-billing")
    t.start()
    log_event(logger, E.SYSTEM_WORKER_START, worker="recurring-billing")
    return t
