import unittest
from datetime import datetime, timedelta

from support import make_temp_db

from wc_subscriptions.core.task_scheduler import (
    TASK_STATUS_FAILED,
    TASK_STATUS_FIRED,
    TASK_STATUS_PENDING,
    TASK_STATUS_RUNNING,
    SqlTaskScheduler,
    dedupe_key,
)


class TaskSchedulerTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_temp_db(self)
        self.tasks = SqlTaskScheduler(self.db)
        self.fire_at = datetime(2025, 3, 1, 9, 0)

    def test_schedule_once_is_exists_or_create(self):
        self.assertFalse(self.tasks.has_pending("process_recurring_payment", [7]))
        self.assertTrue(self.tasks.schedule_once("process_recurring_payment", self.fire_at, [7]))
        self.assertFalse(self.tasks.schedule_once("process_recurring_payment", self.fire_at + timedelta(days=1), [7]))
        self.assertTrue(self.tasks.has_pending("process_recurring_payment", [7]))
        self.assertEqual(self.tasks.next_scheduled("process_recurring_payment", [7]), self.fire_at)
        self.assertEqual(len(self.tasks.list_tasks()), 1)

    def test_keys_are_independent_per_args_and_name(self):
        self.assertTrue(self.tasks.schedule_once("process_recurring_payment", self.fire_at, [1]))
        self.assertTrue(self.tasks.schedule_once("process_recurring_payment", self.fire_at, [2]))
        self.assertTrue(self.tasks.schedule_once("other_task", self.fire_at, [1]))
        self.assertEqual(len(self.tasks.list_tasks(status=TASK_STATUS_PENDING)), 3)
        self.assertEqual(dedupe_key("process_recurring_payment", [1]), "process_recurring_payment:[1]")

    def test_claim_due_only_returns_due_tasks_once(self):
        self.tasks.schedule_once("process_recurring_payment", self.fire_at, [1])
        self.tasks.schedule_once("process_recurring_payment", self.fire_at + timedelta(hours=1), [2])

        self.assertEqual(self.tasks.claim_due(self.fire_at - timedelta(seconds=1)), [])
        claimed = self.tasks.claim_due(self.fire_at)
        self.assertEqual([x["args"] for x in claimed], [[1]])
        self.assertEqual(claimed[0]["status"], TASK_STATUS_RUNNING)
        self.assertEqual(self.tasks.claim_due(self.fire_at), [])

    def test_claimed_task_releases_key(self):
        self.tasks.schedule_once("process_recurring_payment", self.fire_at, [1])
        task = self.tasks.claim_due(self.fire_at)[0]
        self.assertFalse(self.tasks.has_pending("process_recurring_payment", [1]))
        self.assertTrue(self.tasks.schedule_once("process_recurring_payment", self.fire_at + timedelta(days=31), [1]))

        self.tasks.mark_fired(task["id"])
        statuses = {x["id"]: x["status"] for x in self.tasks.list_tasks()}
        self.assertEqual(statuses[task["id"]], TASK_STATUS_FIRED)

    def test_stale_running_task_is_reclaimed(self):
        self.tasks.schedule_once("process_recurring_payment", self.fire_at, [4])
        task = self.tasks.claim_due(self.fire_at)[0]

        # 仍在执行窗口内，不会被重复领取
        self.assertEqual(self.tasks.claim_due(self.fire_at + timedelta(seconds=60), stale_seconds=600), [])

        reclaimed = self.tasks.claim_due(self.fire_at + timedelta(seconds=601), stale_seconds=600)
        self.assertEqual([x["id"] for x in reclaimed], [task["id"]])
        self.assertEqual(reclaimed[0]["status"], TASK_STATUS_RUNNING)
        self.assertEqual(self.tasks.claim_due(self.fire_at + timedelta(seconds=700), stale_seconds=600), [])

        self.tasks.mark_fired(task["id"])
        self.assertEqual(self.tasks.claim_due(self.fire_at + timedelta(days=1), stale_seconds=600), [])

    def test_mark_failed_keeps_error(self):
        self.tasks.schedule_once("process_recurring_payment", self.fire_at, [3])
        task = self.tasks.claim_due(self.fire_at)[0]
        self.tasks.mark_failed(task["id"], "boom")
        rows = self.tasks.list_tasks(status=TASK_STATUS_FAILED)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["last_error"], "boom")
        self.assertIsNotNone(rows[0]["fired_at"])


if __name__ == "__main__":
    unittest.main()
