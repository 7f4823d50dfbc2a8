from .base import Base, Column, String, Integer, DateTime, Boolean, Money


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    regular_price = Column(Money, nullable=False, default=0)
    # 是否为订阅型商品（后台“Subscription product”勾选框）
    subscription_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
