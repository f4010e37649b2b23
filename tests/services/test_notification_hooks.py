"""Notification hook adapters."""

import threading
from datetime import UTC, datetime

import pytest

from docflow_kernel.domain.workflow import TransitionEvent
from docflow_services.notification import (
    AsyncNotificationDispatcher,
    CollectingNotificationHook,
    LoggingNotificationHook,
    NullNotificationHook,
)
from docflow_services.workflow_engine import WorkflowEngine


def _event(version=1):
    return TransitionEvent(
        document_type="vendor_invoice",
        document_id="VI-N",
        from_state="pending",
        to_state="ready_for_processing",
        actor_id="vendor-1",
        actor_role="vendor",
        version=version,
        occurred_at=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        action="submit",
    )


class TestLoggingHook:

    def test_emits_structured_event(self, captured_logs):
        LoggingNotificationHook().notify(_event())

        (record,) = [r for r in captured_logs() if r["message"] == "workflow_notification"]
        assert record["observability_event"] == "workflow_notification"
        assert record["to_state"] == "ready_for_processing"
        assert record["version"] == 1
        assert record["occurred_at"] == "2024-01-01T12:00:00+00:00"


class TestSimpleHooks:

    def test_collecting_hook(self):
        hook = CollectingNotificationHook()
        hook.notify(_event(1))
        hook.notify(_event(2))
        assert [e.version for e in hook.events] == [1, 2]
        hook.clear()
        assert hook.events == ()

    def test_null_hook(self):
        assert NullNotificationHook().notify(_event()) is None


class TestAsyncDispatcher:

    def test_delivers_on_worker_thread(self):
        delivered_on = []

        class ThreadRecorder:
            def notify(self, event):
                delivered_on.append(threading.current_thread().name)

        with AsyncNotificationDispatcher(ThreadRecorder(), max_workers=1) as dispatcher:
            dispatcher.notify(_event())
            dispatcher.flush(timeout=5)

        assert len(delivered_on) == 1
        assert delivered_on[0].startswith("docflow-notify")

    def test_notify_does_not_wait_for_delivery(self):
        release = threading.Event()
        sink = CollectingNotificationHook()

        class SlowHook:
            def notify(self, event):
                release.wait(5)
                sink.notify(event)

        dispatcher = AsyncNotificationDispatcher(SlowHook(), max_workers=1)
        try:
            dispatcher.notify(_event())
            assert sink.events == ()
            release.set()
            dispatcher.flush(timeout=5)
            assert len(sink.events) == 1
        finally:
            release.set()
            dispatcher.shutdown()

    def test_delegate_failure_logged(self, captured_logs):
        class FailingHook:
            def notify(self, event):
                raise ConnectionError("webhook unreachable")

        with AsyncNotificationDispatcher(FailingHook()) as dispatcher:
            dispatcher.notify(_event())
            dispatcher.flush(timeout=5)

        failures = [r for r in captured_logs() if r["message"] == "notification_delivery_failed"]
        assert failures[0]["exc_type"] == "ConnectionError"

    def test_events_after_shutdown_dropped(self, captured_logs):
        sink = CollectingNotificationHook()
        dispatcher = AsyncNotificationDispatcher(sink)
        dispatcher.shutdown()

        dispatcher.notify(_event())

        assert sink.events == ()
        assert any(r["message"] == "notification_dropped" for r in captured_logs())

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            AsyncNotificationDispatcher(NullNotificationHook(), max_workers=0)

    def test_engine_with_async_dispatcher(self, drive, transition_table, memory_backend):
        sink = CollectingNotificationHook()
        with AsyncNotificationDispatcher(sink) as dispatcher:
            engine = WorkflowEngine(transition_table, memory_backend.unit_of_work, notification_hook=dispatcher)
            drive(engine, "profile_change", "PC-N", [("approved", "hr")])
            dispatcher.flush(timeout=5)

        (event,) = sink.events
        assert (event.to_state, event.version) == ("approved", 1)
