from .base import Base, Column, String, Integer, DateTime, Money


ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(32), index=True, nullable=False, default=ORDER_STATUS_PENDING)
    currency = Column(String(16), nullable=False, default="kr")
    total = Column(Money, nullable=False, default=0)
    # 下次扣款时间，订单完成时计算；为空表示尚未排期
    next_payment_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
