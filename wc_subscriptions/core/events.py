"""
core/events.py — 结构化事件日志

提供统一的事件类型常量（E 类）和 log_event() 格式化方法。
订单完成、续费排期、任务触发等关键操作均通过此模块记录，确保日志可 grep / 统计。

格式：event=xxx | key=val | key=val

用法：
    from wc_subscriptions.core.log import get_logger
    from wc_subscriptions.core.events import log_event, E

    logger = get_logger(__name__)
    log_event(logger, E.BILLING_SCHEDULE_CREATED, order_id=42, fire_at="2025-02-28 10:00:00")
    # 输出：event=billing.schedule.created | order_id=42 | fire_at=2025-02-28 10:00:00
"""

import logging
from typing import Any


class E:
    """结构化事件类型常量，按功能模块分组。"""

    # ── 商品订阅方案 Plan ──────────────────────────────────────────────────────
    PLAN_SUBSCRIPTION_ENABLE = "plan.subscription.enable"
    PLAN_SUBSCRIPTION_DISABLE = "plan.subscription.disable"
    PLAN_ADD = "plan.add"
    PLAN_ADD_DUPLICATE = "plan.add.duplicate"

    # ── 订单 Order ─────────────────────────────────────────────────────────────
    ORDER_CREATE = "order.create"
    ORDER_COMPLETE = "order.complete"
    ORDER_COMPLETE_SKIP = "order.complete.skip"

    # ── 续费排期 Billing schedule ──────────────────────────────────────────────
    BILLING_SCHEDULE_START = "billing.schedule.start"
    BILLING_SCHEDULE_CREATED = "billing.schedule.created"
    BILLING_SCHEDULE_EXISTS = "billing.schedule.exists"
    BILLING_SCHEDULE_NOT_APPLICABLE = "billing.schedule.not_applicable"
    BILLING_SCHEDULE_FAIL = "billing.schedule.fail"
    BILLING_RECURRING_DUE = "billing.recurring.due"

    # ── 延迟任务 Task ──────────────────────────────────────────────────────────
    TASK_SCHEDULE_ADD = "task.schedule.add"
    TASK_SCHEDULE_DUPLICATE = "task.schedule.duplicate"
    TASK_EXECUTE_START = "task.execute.start"
    TASK_EXECUTE_COMPLETE = "task.execute.complete"
    TASK_EXECUTE_FAIL = "task.execute.fail"
    TASK_EXECUTE_SKIP = "task.execute.skip"
    TASK_RECLAIM = "task.reclaim"

    # ── 后台扫描 Worker ────────────────────────────────────────────────────────
    WORKER_SWEEP_START = "worker.sweep.start"
    WORKER_SWEEP_COMPLETE = "worker.sweep.complete"

    # ── 系统 System ────────────────────────────────────────────────────────────
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_DB_INIT = "system.db_init"
    SYSTEM_WORKER_START = "system.worker.start"


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "info",
    **fields: Any,
) -> None:
    """
    记录结构化事件日志，格式：event=xxx | key=val | key=val

    示例：
        log_event(logger, E.BILLING_SCHEDULE_FAIL, level="error",
                  order_id=42, reason="invalid_period")
        # → event=billing.schedule.fail | order_id=42 | reason=invalid_period
    """
    parts = [f"event={event}"]
    for k, v in fields.items():
        sv = str(v) if not isinstance(v, str) else v
        # 截断超长字段，避免单行日志过大
        if len(sv) > 300:
            sv = sv[:297] + "..."
        parts.append(f"{k}={sv}")
    msg = " | ".join(parts)
    getattr(logger, level)(msg, stacklevel=2)
