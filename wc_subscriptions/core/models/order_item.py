from .base import Base, Column, String, Integer, DateTime, Boolean, ForeignKey, Money


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=True)
    name = Column(String(200), nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Money, nullable=False, default=0)
    # 下单时写入的订阅元数据
    subscription_period = Column(String(20), nullable=True)
    subscription_price = Column(String(32), nullable=True)
    is_subscription_order = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime)
