from .base import Base, Column, String, Integer, DateTime, Text


class ScheduledTask(Base):
    __tablename__ = "scheduled_tasks"

    id = Column(String(64), primary_key=True, index=True)
    task_name = Column(String(100), index=True, nullable=False)
    args = Column(Text, nullable=False, default="[]")  # JSON 数组
    fire_at = Column(DateTime, index=True, nullable=False)
    status = Column(String(20), index=True, nullable=False, default="pending")  # pending/running/fired/failed
    # 仅在 pending 期间持有，唯一约束保证同一 task_name + args 最多一个待执行任务
    dedupe_key = Column(String(255), unique=True, nullable=True)
    last_error = Column(Text, nullable=True)
    fired_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
