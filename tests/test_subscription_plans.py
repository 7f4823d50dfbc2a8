import unittest
from decimal import Decimal

from support import make_temp_db

from wc_subscriptions.core.exceptions import (
    DuplicatePlanPeriod,
    InvalidOrderState,
    InvalidPeriod,
    InvalidPrice,
    PlanNotFound,
    ProductNotFound,
)
from wc_subscriptions.core.plan_service import (
    add_plan,
    create_product,
    get_plan,
    list_plans,
    plan_catalog,
    set_subscription_enabled,
)


class SubscriptionPlanTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_temp_db(self)
        self.session = self.db.get_session()
        self.addCleanup(self.session.close)
        self.product = create_product(self.session, name="Coffee club", regular_price="1500", subscription_enabled=True)

    def test_add_plans_per_period(self):
        add_plan(self.session, self.product.id, "monthly", "990")
        add_plan(self.session, self.product.id, "Yearly", "9900")
        periods = [x.period for x in list_plans(self.session, self.product.id)]
        self.assertEqual(periods, ["monthly", "yearly"])
        self.assertEqual(Decimal(get_plan(self.session, self.product.id, "yearly").price), Decimal("9900"))

    def test_duplicate_period_is_rejected(self):
        add_plan(self.session, self.product.id, "monthly", "990")
        with self.assertRaises(DuplicatePlanPeriod):
            add_plan(self.session, self.product.id, "monthly", "500")
        self.assertEqual(len(list_plans(self.session, self.product.id)), 1)

    def test_invalid_input(self):
        with self.assertRaises(InvalidPeriod):
            add_plan(self.session, self.product.id, "weekly", "10")
        with self.assertRaises(InvalidPrice):
            add_plan(self.session, self.product.id, "monthly", "-1")
        with self.assertRaises(ProductNotFound):
            add_plan(self.session, 12345, "monthly", "10")
        with self.assertRaises(PlanNotFound):
            get_plan(self.session, self.product.id, "minutely")

    def test_disable_subscription_removes_plans(self):
        add_plan(self.session, self.product.id, "monthly", "990")
        set_subscription_enabled(self.session, self.product.id, False)
        catalog = plan_catalog(self.session, self.product.id)
        self.assertFalse(catalog["subscription_enabled"])
        self.assertEqual(catalog["plans"], [])
        with self.assertRaises(InvalidOrderState):
            add_plan(self.session, self.product.id, "monthly", "990")

    def test_catalog_lists_period_choices(self):
        catalog = plan_catalog(self.session, self.product.id)
        self.assertEqual(catalog["period_choices"], ["minutely", "monthly", "yearly"])


if __name__ == "__main__":
    unittest.main()
