import logging
import os
import tempfile
import unittest
from unittest.mock import patch

from wc_subscriptions.core.config import Config
from wc_subscriptions.core.events import E, log_event
from wc_subscriptions.core.log import _TraceIdFilter, set_trace_id, trace_ctx


class ConfigTestCase(unittest.TestCase):
    def setUp(self):
        fd, self.path = tempfile.mkstemp(suffix=".yaml")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(
                "db: ${TEST_WCSUB_DB:-sqlite:///fallback.db}\n"
                "billing:\n"
                "  worker_enabled: ${TEST_WCSUB_WORKER:-True}\n"
                "  worker_interval_seconds: 15\n"
            )
        self.addCleanup(os.remove, self.path)

    def test_dotted_get_and_env_defaults(self):
        conf = Config(self.path)
        self.assertEqual(conf.get("db"), "sqlite:///fallback.db")
        self.assertIs(conf.get("billing.worker_enabled"), True)
        self.assertEqual(conf.get("billing.worker_interval_seconds"), 15)
        self.assertEqual(conf.get("billing.missing", "x"), "x")

    def test_env_override(self):
        with patch.dict(os.environ, {"TEST_WCSUB_WORKER": "False", "TEST_WCSUB_DB": "sqlite:///env.db"}):
            conf = Config(self.path)
            self.assertIs(conf.get("billing.worker_enabled"), False)
            self.assertEqual(conf.get("db"), "sqlite:///env.db")

    def test_set_and_save(self):
        conf = Config(self.path)
        conf.set("billing.currency", "ISK")
        conf.save_config()
        self.assertEqual(Config(self.path).get("billing.currency"), "ISK")

    def test_missing_file_is_empty(self):
        conf = Config(os.path.join(tempfile.gettempdir(), "does-not-exist-wcsub.yaml"))
        self.assertEqual(conf.get("db", "default"), "default")


class LogEventTestCase(unittest.TestCase):
    def test_log_event_format(self):
        logger = logging.getLogger("wcsub.test.events")
        with self.assertLogs(logger, level="INFO") as logs:
            log_event(logger, E.BILLING_SCHEDULE_CREATED, order_id=42, period="monthly")
        self.assertIn("event=billing.schedule.created | order_id=42 | period=monthly", logs.output[0])

    def test_long_fields_are_truncated(self):
        logger = logging.getLogger("wcsub.test.events")
        with self.assertLogs(logger, level="INFO") as logs:
            log_event(logger, E.TASK_EXECUTE_FAIL, reason="x" * 500)
        self.assertIn("reason=" + "x" * 297 + "...", logs.output[0])


class TraceIdTestCase(unittest.TestCase):
    def _record_trace_id(self):
        record = logging.LogRecord("wcsub.test", logging.INFO, __file__, 1, "msg", None, None)
        _TraceIdFilter().filter(record)
        return record.trace_id

    def test_trace_ctx_sets_and_restores(self):
        outer = self._record_trace_id()
        with trace_ctx("order-42") as tid:
            self.assertEqual(tid, "order-42")
            self.assertEqual(self._record_trace_id(), "order-42")
        self.assertEqual(self._record_trace_id(), outer)

    def test_set_trace_id_generates_and_truncates(self):
        with trace_ctx():
            self.assertEqual(len(set_trace_id("")), 8)
            self.assertEqual(set_trace_id("x" * 40), "x" * 16)
            self.assertEqual(self._record_trace_id(), "x" * 16)


if __name__ == "__main__":
    unittest.main()
