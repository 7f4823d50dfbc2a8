# 商品与订阅方案
from .product import Product
from .subscription_plan import SubscriptionPlan
# 订单与订单行
from .order import Order
from .order_item import OrderItem
# 延迟任务
from .scheduled_task import ScheduledTask
# 基础模型
from .base import *
