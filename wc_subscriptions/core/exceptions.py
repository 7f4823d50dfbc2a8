class SubscriptionError(Exception):
    """订阅 / 续费相关错误的基类。"""


class OrderNotFound(SubscriptionError):
    def __init__(self, order_id):
        super().__init__(f"订单不存在: {order_id}")
        self.order_id = order_id


class InvalidPeriod(SubscriptionError):
    def __init__(self, period):
        super().__init__(f"不支持的订阅周期: {period!r}")
        self.period = period


class InvalidPrice(SubscriptionError):
    def __init__(self, price):
        super().__init__(f"订阅价格无效: {price!r}")
        self.price = price


class SchedulingCollaboratorUnavailable(SubscriptionError):
    """延迟任务存储不可用，本次排期失败（不在核心内重试）。"""


class OrderStoreUnavailable(SubscriptionError):
    """订单存储不可用。"""


class ProductNotFound(SubscriptionError):
    def __init__(self, product_id):
        super().__init__(f"商品不存在: {product_id}")
        self.product_id = product_id


class PlanNotFound(SubscriptionError):
    def __init__(self, product_id, period):
        super().__init__(f"商品 {product_id} 没有 {period} 订阅方案")
        self.product_id = product_id
        self.period = period


class DuplicatePlanPeriod(SubscriptionError):
    def __init__(self, product_id, period):
        super().__init__(f"订阅周期已存在，请选择其他周期: {period}")
        self.product_id = product_id
        self.period = period


class InvalidOrderState(SubscriptionError):
    pass
