from .base import Base, Column, String, Integer, DateTime, ForeignKey, UniqueConstraint, Money


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"
    # 同一商品每个周期只允许一个方案
    __table_args__ = (UniqueConstraint("product_id", "period", name="uq_plan_product_period"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    period = Column(String(20), nullable=False)
    price = Column(Money, nullable=False)
    created_at = Column(DateTime)
