"""
core/task_scheduler.py — 一次性延迟任务存储

任务以 (task_name, args) 为键；pending 期间持有唯一的 dedupe_key，
schedule_once 依赖唯一约束实现“存在即跳过，否则创建”，多线程 / 多进程并发排期也只会留下一个待执行任务。
任务被 claim_due 领取后释放 dedupe_key，之后可以为同一键再次排期。
长时间停留在 running 的任务视为执行中断，由 claim_due 重新领取。
"""

import json
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from wc_subscriptions.core.config import cfg
from wc_subscriptions.core.db import DB, Db
from wc_subscriptions.core.events import E, log_event
from wc_subscriptions.core.exceptions import SchedulingCollaboratorUnavailable
from wc_subscriptions.core.log import get_logger
from wc_subscriptions.core.models.scheduled_task import ScheduledTask

logger = get_logger(__name__)

TASK_STATUS_PENDING = "pending"
TASK_STATUS_RUNNING = "running"
TASK_STATUS_FIRED = "fired"
TASK_STATUS_FAILED = "failed"


def dedupe_key(task_name: str, args: Sequence) -> str:
    return f"{task_name}:{json.dumps(list(args), separators=(',', ':'), default=str)}"


def _task_to_dict(task: ScheduledTask) -> Dict:
    return {
        "id": task.id,
        "task_name": task.task_name,
        "args": json.loads(task.args or "[]"),
        "fire_at": task.fire_at.isoformat() if task.fire_at else None,
        "status": task.status,
        "last_error": task.last_error or "",
        "fired_at": task.fired_at.isoformat() if task.fired_at else None,
        "created_at": task.created_at.isoformat() if task.created_at else None,
    }


class SqlTaskScheduler:
    def __init__(self, db: Db = None):
        self.db = db or DB

    def has_pending(self, task_name: str, args: Sequence) -> bool:
        return self.next_scheduled(task_name, args) is not None

    def next_scheduled(self, task_name: str, args: Sequence) -> Optional[datetime]:
        key = dedupe_key(task_name, args)
        try:
            with self.db.session_scope() as session:
                task = (
                    session.query(ScheduledTask)
                    .filter(ScheduledTask.dedupe_key == key, ScheduledTask.status == TASK_STATUS_PENDING)
                    .first()
                )
                return task.fire_at if task else None
        except SQLAlchemyError as e:
            raise SchedulingCollaboratorUnavailable(f"查询待执行任务失败: {e}") from e

    def schedule_once(self, task_name: str, fire_at: datetime, args: Sequence) -> bool:
        """登记一次性任务；同键已有 pending 任务时返回 False。"""
        key = dedupe_key(task_name, args)
        now = datetime.now()
        try:
            with self.db.session_scope() as session:
                session.add(
                    ScheduledTask(
                        id=str(uuid.uuid4()),
                        task_name=task_name,
                        args=json.dumps(list(args), default=str),
                        fire_at=fire_at,
                        status=TASK_STATUS_PENDING,
                        dedupe_key=key,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            log_event(logger, E.TASK_SCHEDULE_DUPLICATE, task=task_name, key=key)
            return False
        except SQLAlchemyError as e:
            raise SchedulingCollaboratorUnavailable(f"登记延迟任务失败: {e}") from e
        log_event(logger, E.TASK_SCHEDULE_ADD, task=task_name, key=key, fire_at=fire_at.isoformat())
        return True

    def claim_due(self, now: datetime, limit: int = 50, stale_seconds: int = None) -> List[Dict]:
        """
        领取已到期的 pending 任务并标记为 running。

        running 超过 stale_seconds 仍未结束的任务（worker 中途退出）一并重新领取；
        续费处理对已排期订单返回 AlreadyScheduled，重复执行不会多登记任务。
        """
        if stale_seconds is None:
            stale_seconds = int(cfg.get("billing.task_stale_seconds", 900) or 900)
        stale_before = now - timedelta(seconds=max(1, int(stale_seconds)))
        claimable = or_(
            and_(ScheduledTask.status == TASK_STATUS_PENDING, ScheduledTask.fire_at <= now),
            and_(ScheduledTask.status == TASK_STATUS_RUNNING, ScheduledTask.updated_at <= stale_before),
        )
        claimed = []
        try:
            with self.db.session_scope() as session:
                rows = (
                    session.query(ScheduledTask.id, ScheduledTask.status)
                    .filter(claimable)
                    .order_by(ScheduledTask.fire_at.asc())
                    .limit(max(1, min(int(limit or 50), 500)))
                    .all()
                )
                for task_id, status in rows:
                    # 条件更新，其他 worker 已领取的任务 rowcount 为 0
                    updated = (
                        session.query(ScheduledTask)
                        .filter(ScheduledTask.id == task_id, claimable)
                        .update(
                            {
                                ScheduledTask.status: TASK_STATUS_RUNNING,
                                ScheduledTask.dedupe_key: None,
                                ScheduledTask.updated_at: now,
                            },
                            synchronize_session=False,
                        )
                    )
                    if updated:
                        if status == TASK_STATUS_RUNNING:
                            log_event(logger, E.TASK_RECLAIM, level="warning", task_id=task_id)
                        task = session.get(ScheduledTask, task_id)
                        claimed.append(_task_to_dict(task))
        except SQLAlchemyError as e:
            raise SchedulingCollaboratorUnavailable(f"领取到期任务失败: {e}") from e
        return claimed

    def mark_fired(self, task_id: str) -> None:
        self._finish(task_id, TASK_STATUS_FIRED, "")

    def mark_failed(self, task_id: str, error: str) -> None:
        self._finish(task_id, TASK_STATUS_FAILED, error)

    def _finish(self, task_id: str, status: str, error: str) -> None:
        now = datetime.now()
        with self.db.session_scope() as session:
            task = session.get(ScheduledTask, task_id)
            if task is None:
                return
            task.status = status
            task.last_error = (error or "")[:2000] or None
            task.fired_at = now
            task.updated_at = now

    def list_tasks(self, status: str = "", task_name: str = "", limit: int = 100) -> List[Dict]:
        with self.db.session_scope() as session:
            query = session.query(ScheduledTask)
            status_text = str(status or "").strip().lower()
            if status_text:
                query = query.filter(ScheduledTask.status == status_text)
            if task_name:
                query = query.filter(ScheduledTask.task_name == task_name)
            rows = query.order_by(ScheduledTask.fire_at.asc()).limit(max(1, min(int(limit or 100), 500))).all()
            return [_task_to_dict(x) for x in rows]
