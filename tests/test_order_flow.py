import unittest
from datetime import datetime
from decimal import Decimal

from support import FixedClock, make_temp_db

from wc_subscriptions.core.billing_scheduler import AlreadyScheduled, BillingScheduler, NotApplicable, Scheduled
from wc_subscriptions.core.exceptions import InvalidOrderState, PlanNotFound
from wc_subscriptions.core.order_service import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    OrderLine,
    cancel_order,
    complete_order,
    create_order,
    get_order,
    get_order_items,
    subscription_message,
    subscription_summary,
)
from wc_subscriptions.core.order_store import SqlOrderStore
from wc_subscriptions.core.plan_service import add_plan, create_product
from wc_subscriptions.core.task_scheduler import SqlTaskScheduler


class OrderFlowTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_temp_db(self)
        self.session = self.db.get_session()
        self.addCleanup(self.session.close)
        self.clock = FixedClock(datetime(2025, 5, 31, 12, 0))
        self.scheduler = BillingScheduler(
            order_store=SqlOrderStore(self.db),
            task_scheduler=SqlTaskScheduler(self.db),
            clock=self.clock,
        )
        self.sub_product = create_product(self.session, name="Magazine", regular_price="2000", subscription_enabled=True)
        add_plan(self.session, self.sub_product.id, "monthly", "450")
        self.plain_product = create_product(self.session, name="Mug", regular_price="300")

    def test_subscription_line_carries_metadata(self):
        order = create_order(
            self.session,
            [OrderLine(self.sub_product.id, 1, "monthly"), OrderLine(self.plain_product.id, 2)],
        )
        items = get_order_items(self.session, order.id)
        self.assertTrue(items[0].is_subscription_order)
        self.assertEqual(items[0].subscription_period, "monthly")
        self.assertEqual(Decimal(items[0].subscription_price), Decimal("450"))
        self.assertFalse(items[1].is_subscription_order)
        self.assertIsNone(items[1].subscription_period)
        self.assertEqual(Decimal(order.total), Decimal("1050"))

    def test_complete_and_schedule(self):
        order = create_order(self.session, [OrderLine(self.sub_product.id, 1, "monthly")])
        self.assertTrue(complete_order(self.session, order.id))
        outcome = self.scheduler.schedule_next_billing(order.id)
        self.assertIsInstance(outcome, Scheduled)
        self.assertEqual(outcome.next_payment_at, datetime(2025, 6, 30, 12, 0))

        # 完成事件重复投递
        self.assertFalse(complete_order(self.session, order.id))
        self.assertIsInstance(self.scheduler.schedule_next_billing(order.id), AlreadyScheduled)

        self.session.expire_all()
        summary = subscription_summary(self.session, order.id)
        self.assertEqual(summary["status"], ORDER_STATUS_COMPLETED)
        self.assertTrue(summary["is_subscription_order"])
        self.assertEqual(summary["next_payment_at"], "2025-06-30T12:00:00")

    def test_plain_order_is_not_applicable(self):
        order = create_order(self.session, [OrderLine(self.plain_product.id, 1)])
        complete_order(self.session, order.id)
        self.assertIsInstance(self.scheduler.schedule_next_billing(order.id), NotApplicable)

    def test_unknown_plan_period(self):
        with self.assertRaises(PlanNotFound):
            create_order(self.session, [OrderLine(self.sub_product.id, 1, "yearly")])
        with self.assertRaises(InvalidOrderState):
            create_order(self.session, [OrderLine(self.plain_product.id, 1, "monthly")])

    def test_cancelled_order_cannot_complete(self):
        order = create_order(self.session, [OrderLine(self.plain_product.id, 1)])
        cancel_order(self.session, order.id)
        self.assertEqual(get_order(self.session, order.id).status, ORDER_STATUS_CANCELLED)
        with self.assertRaises(InvalidOrderState):
            complete_order(self.session, order.id)

    def test_subscription_message(self):
        self.assertEqual(
            subscription_message("monthly", "450.00", "kr"),
            "This is a subscription product and you will be billed 450.00kr on a monthly basis.",
        )


if __name__ == "__main__":
    unittest.main()
