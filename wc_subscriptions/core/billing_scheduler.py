"""
core/billing_scheduler.py — 订单完成后的续费排期

订单完成 → 读取订单订阅记录 → 计算下次扣款时间 → 确保恰好一个 process_recurring_payment 待执行任务。

同一订单的“检查 + 登记”在进程内按 order_id 串行（_KeyedLocks），
跨进程由任务表 dedupe_key 的唯一约束兜底，重复投递的完成事件不会产生第二个任务。
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Generator, Optional, Union

from wc_subscriptions.core.events import E, log_event
from wc_subscriptions.core.exceptions import SubscriptionError
from wc_subscriptions.core.log import get_logger, trace_ctx
from wc_subscriptions.core.models.order import ORDER_STATUS_COMPLETED
from wc_subscriptions.core.order_store import SqlOrderStore
from wc_subscriptions.core.period import compute_next_payment
from wc_subscriptions.core.task_scheduler import SqlTaskScheduler

logger = get_logger(__name__)

RECURRING_PAYMENT_TASK = "process_recurring_payment"

OUTCOME_SCHEDULED = "scheduled"
OUTCOME_ALREADY_SCHEDULED = "already_scheduled"
OUTCOME_NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class Scheduled:
    next_payment_at: datetime
    status: str = OUTCOME_SCHEDULED


@dataclass(frozen=True)
class AlreadyScheduled:
    status: str = OUTCOME_ALREADY_SCHEDULED


@dataclass(frozen=True)
class NotApplicable:
    status: str = OUTCOME_NOT_APPLICABLE


SchedulingOutcome = Union[Scheduled, AlreadyScheduled, NotApplicable]


class SystemClock:
    def now(self) -> datetime:
        return datetime.now()


class _KeyedLocks:
    """按键分配的互斥锁，无人持有时回收。"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[object, list] = {}

    @contextmanager
    def hold(self, key) -> Generator[None, None, None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)


class BillingScheduler:
    def __init__(self, order_store=None, task_scheduler=None, clock=None):
        self.order_store = order_store or SqlOrderStore()
        self.task_scheduler = task_scheduler or SqlTaskScheduler()
        self.clock = clock or SystemClock()
        self._locks = _KeyedLocks()

    def schedule_next_billing(self, order_id, base_time: datetime = None) -> SchedulingOutcome:
        """
        为订单排期下一次续费。

        base_time 为计算起点，缺省取时钟当前时间；到期任务传入其 fire_at，周期不随扫描延迟漂移。

        - 订单不存在：抛出 OrderNotFound
        - 订单没有订阅元数据或尚未完成：返回 NotApplicable，无任何写入
        - 已有待执行任务：next_payment_at 回写为该任务的触发时间，返回 AlreadyScheduled
        - 周期非法：抛出 InvalidPeriod，不写入 next_payment_at、不登记任务
        - 任务存储不可用：抛出 SchedulingCollaboratorUnavailable，不写入 next_payment_at
        """
        log_event(logger, E.BILLING_SCHEDULE_START, order_id=order_id)
        try:
            fields = self.order_store.get_subscription_fields(order_id)
            if fields is None or not fields.is_subscription_order:
                log_event(logger, E.BILLING_SCHEDULE_NOT_APPLICABLE, order_id=order_id)
                return NotApplicable()
            if fields.order_status != ORDER_STATUS_COMPLETED:
                log_event(logger, E.BILLING_SCHEDULE_NOT_APPLICABLE, order_id=order_id, status=fields.order_status)
                return NotApplicable()

            next_payment_at = compute_next_payment(fields.period, base_time or self.clock.now())
            args = [fields.order_id]

            with self._locks.hold(fields.order_id):
                existing = self.task_scheduler.next_scheduled(RECURRING_PAYMENT_TASK, args)
                if existing is not None:
                    self.order_store.set_next_payment_at(fields.order_id, existing)
                    log_event(logger, E.BILLING_SCHEDULE_EXISTS, order_id=order_id, fire_at=existing.isoformat())
                    return AlreadyScheduled()

                created = self.task_scheduler.schedule_once(RECURRING_PAYMENT_TASK, next_payment_at, args)
                if not created:
                    # 其他进程抢先登记，以其触发时间为准
                    existing = self.task_scheduler.next_scheduled(RECURRING_PAYMENT_TASK, args)
                    if existing is not None:
                        self.order_store.set_next_payment_at(fields.order_id, existing)
                else:
                    self.order_store.set_next_payment_at(fields.order_id, next_payment_at)
        except SubscriptionError as e:
            log_event(
                logger,
                E.BILLING_SCHEDULE_FAIL,
                level="error",
                order_id=order_id,
                error=type(e).__name__,
                reason=str(e),
            )
            raise

        if not created:
            log_event(logger, E.BILLING_SCHEDULE_EXISTS, order_id=order_id)
            return AlreadyScheduled()
        log_event(
            logger,
            E.BILLING_SCHEDULE_CREATED,
            order_id=order_id,
            period=fields.period,
            price=fields.price,
            next_payment_at=next_payment_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
        return Scheduled(next_payment_at)


_default_scheduler: Optional[BillingScheduler] = None
_default_lock = threading.Lock()


def get_billing_scheduler() -> BillingScheduler:
    global _default_scheduler
    with _default_lock:
        if _default_scheduler is None:
            _default_scheduler = BillingScheduler()
        return _default_scheduler


def schedule_next_billing(order_id) -> SchedulingOutcome:
    return get_billing_scheduler().schedule_next_billing(order_id)


def handle_order_completed(order_id, scheduler: BillingScheduler = None) -> Optional[SchedulingOutcome]:
    """订单完成事件处理：失败只记录日志，不在此处重试。"""
    scheduler = scheduler or get_billing_scheduler()
    with trace_ctx(f"order-{order_id}"):
        try:
            return scheduler.schedule_next_billing(order_id)
        except SubscriptionError:
            logger.exception("订单 %s 续费排期失败", order_id)
            return None


def process_recurring_payment(order_id, fire_at: datetime = None, scheduler: BillingScheduler = None) -> SchedulingOutcome:
    """到期任务处理：记录本期续费，并从本期触发时间起为下一周期排期。"""
    scheduler = scheduler or get_billing_scheduler()
    log_event(logger, E.BILLING_RECURRING_DUE, order_id=order_id, fire_at=fire_at.isoformat() if fire_at else "")
    return scheduler.schedule_next_billing(order_id, base_time=fire_at)
