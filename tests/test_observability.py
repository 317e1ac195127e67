"""Tests for tracing endpoint handling and per-run log context."""

import unittest

import structlog

from mailsync.utils.logger import run_context
from mailsync.utils.tracing import get_tracer, traces_endpoint


class TestTracesEndpoint(unittest.TestCase):
    def test_appends_traces_path(self):
        self.assertEqual(traces_endpoint("http://collector:4318"), "http://collector:4318/v1/traces")
        self.assertEqual(traces_endpoint("http://collector:4318/"), "http://collector:4318/v1/traces")

    def test_keeps_existing_path(self):
        self.assertEqual(traces_endpoint("http://collector:4318/v1/traces"), "http://collector:4318/v1/traces")

    def test_tracer_usable_without_init(self):
        with get_tracer().start_as_current_span("noop") as span:
            span.set_attribute("k", 1)


class TestRunContext(unittest.TestCase):
    def test_binds_and_restores(self):
        structlog.contextvars.clear_contextvars()
        with run_context("sync_inbox", folder="INBOX") as run_id:
            bound = structlog.contextvars.get_contextvars()
            self.assertEqual(bound["run_id"], run_id)
            self.assertEqual(bound["run_kind"], "sync_inbox")
            self.assertEqual(bound["folder"], "INBOX")
        self.assertEqual(structlog.contextvars.get_contextvars(), {})

    def test_nested_run_restores_outer(self):
        structlog.contextvars.clear_contextvars()
        with run_context("outer") as outer_id:
            with run_context("inner"):
                pass
            self.assertEqual(structlog.contextvars.get_contextvars()["run_id"], outer_id)
        structlog.contextvars.clear_contextvars()


if __name__ == "__main__":
    unittest.main()
