"""
Notification hooks for committed workflow transitions.

The engine calls ``notify(event)`` once per applied transition, after the
commit.  A hook that raises is logged by the engine and otherwise ignored:
the transition is already durable.

Hooks:
    LoggingNotificationHook      -- emits a ``workflow_notification`` log event.
    AsyncNotificationDispatcher  -- hands events to a delegate on a thread pool
                                    so slow delivery never holds up ``apply``.
    CollectingNotificationHook   -- keeps events in memory (tests, dry runs).
    NullNotificationHook         -- drops events.

Usage:
    dispatcher = AsyncNotificationDispatcher(LoggingNotificationHook(), max_workers=2)
    engine = WorkflowEngine(table, uow_factory, notification_hook=dispatcher)
    ...
    dispatcher.shutdown()
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor

from docflow_kernel.domain.ports import NotificationHook
from docflow_kernel.domain.workflow import TransitionEvent
from docflow_kernel.logging_config import get_logger

logger = get_logger("services.notification")

EVENT_WORKFLOW_NOTIFICATION = "workflow_notification"


def _event_fields(event: TransitionEvent) -> dict:
    return {
        "observability_event": EVENT_WORKFLOW_NOTIFICATION,
        "document_type": event.document_type,
        "document_id": event.document_id,
        "from_state": event.from_state,
        "to_state": event.to_state,
        "actor_id": event.actor_id,
        "actor_role": event.actor_role,
        "version": event.version,
        "action": event.action,
        "occurred_at": event.occurred_at.isoformat(),
    }


class LoggingNotificationHook:
    """Emit one structured log event per committed transition."""

    def notify(self, event: TransitionEvent) -> None:
        logger.info(EVENT_WORKFLOW_NOTIFICATION, extra=_event_fields(event))


class NullNotificationHook:
    def notify(self, event: TransitionEvent) -> None:
        return None


class CollectingNotificationHook:
    """Thread-safe in-memory collector."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[TransitionEvent] = []

    def notify(self, event: TransitionEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> tuple[TransitionEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class AsyncNotificationDispatcher:
    """Deliver events to ``delegate`` on a background thread pool.

    ``notify`` returns as soon as the event is queued.  Delegate failures
    are logged from the worker thread.  After ``shutdown`` further events
    are dropped with a warning.
    """

    def __init__(self, delegate: NotificationHook, max_workers: int = 2) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._delegate = delegate
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="docflow-notify",
        )
        self._lock = threading.Lock()
        self._closed = False
        self._pending: set[Future] = set()

    def notify(self, event: TransitionEvent) -> None:
        with self._lock:
            if self._closed:
                logger.warning(
                    "notification_dropped",
                    extra={
                        "document_type": event.document_type,
                        "document_id": event.document_id,
                        "version": event.version,
                    },
                )
                return
            future = self._executor.submit(self._deliver, event)
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _deliver(self, event: TransitionEvent) -> None:
        try:
            self._delegate.notify(event)
        except Exception:  # noqa: BLE001
            logger.error(
                "notification_delivery_failed",
                extra={
                    "document_type": event.document_type,
                    "document_id": event.document_id,
                    "version": event.version,
                },
                exc_info=True,
            )

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def flush(self, timeout: float | None = None) -> None:
        """Block until every queued event has been delivered."""
        with self._lock:
            futures = list(self._pending)
        for future in futures:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("notification_dispatcher_stopped", extra={"waited": wait})

    def __enter__(self) -> AsyncNotificationDispatcher:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
