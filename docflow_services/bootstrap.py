"""
docflow_services.bootstrap -- wires a CompiledWorkflowPack into a running engine.

Responsibility:
    Single place where storage, logging and notification delivery are
    chosen from ``EngineSettings`` and composed into a ``WorkflowEngine``.
    The engine itself never reads configuration.

Usage:
    from docflow_config import get_active_config
    from docflow_services.bootstrap import start_runtime

    runtime = start_runtime(get_active_config())
    result = runtime.engine.apply(...)
    runtime.close()

Storage selection (first match wins):
    1. ``backend``          -- an InMemoryBackend (tests, dry runs)
    2. ``session_factory``  -- caller-owned SQLAlchemy sessions
    3. ``pack.engine.database.url`` -- module engine via init_engine_from_url;
       tables are created when ``create_schema`` is set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from docflow_config.compiler import CompiledWorkflowPack
from docflow_config.schema import NotificationSettings
from docflow_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from docflow_kernel.db.immutability import register_immutability_listeners
from docflow_kernel.domain.clock import Clock
from docflow_kernel.domain.ports import NotificationHook, UnitOfWorkFactory
from docflow_kernel.logging_config import configure_logging, get_logger
from docflow_kernel.services.memory import InMemoryBackend
from docflow_kernel.services.unit_of_work import SqlUnitOfWork
from docflow_services.notification import (
    AsyncNotificationDispatcher,
    LoggingNotificationHook,
)
from docflow_services.workflow_engine import WorkflowEngine

logger = get_logger("services.bootstrap")


def build_notification_hook(settings: NotificationSettings) -> NotificationHook | None:
    """Hook for the configured mode: ``log``, ``async`` or ``none``."""
    if settings.mode == "none":
        return None
    if settings.mode == "log":
        return LoggingNotificationHook()
    if settings.mode == "async":
        return AsyncNotificationDispatcher(
            LoggingNotificationHook(), max_workers=settings.max_workers,
        )
    raise ValueError(f"Unknown notification mode: {settings.mode!r}")


def build_unit_of_work_factory(
    pack: CompiledWorkflowPack,
    backend: InMemoryBackend | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> UnitOfWorkFactory:
    if backend is not None:
        return backend.unit_of_work
    if session_factory is not None:
        return SqlUnitOfWork.factory(session_factory)

    db = pack.engine.database
    engine = init_engine_from_url(
        db.url, echo=db.echo, pool_size=db.pool_size, max_overflow=db.max_overflow,
    )
    if db.create_schema:
        create_tables(engine)
    register_immutability_listeners()
    return SqlUnitOfWork.factory(get_session_factory())


@dataclass
class WorkflowRuntime:
    """A wired engine plus the resources that need closing."""

    pack: CompiledWorkflowPack
    engine: WorkflowEngine
    notification_hook: NotificationHook | None = None

    def close(self) -> None:
        if isinstance(self.notification_hook, AsyncNotificationDispatcher):
            self.notification_hook.shutdown(wait=True)

    def __enter__(self) -> WorkflowRuntime:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def start_runtime(
    pack: CompiledWorkflowPack,
    *,
    backend: InMemoryBackend | None = None,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
    notification_hook: NotificationHook | None = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> WorkflowRuntime:
    """Build a WorkflowEngine for ``pack``.

    An explicit ``notification_hook`` replaces the configured one.
    """
    configure_logging(level=pack.engine.logging.level.upper())

    uow_factory = build_unit_of_work_factory(pack, backend, session_factory)
    hook = notification_hook
    if hook is None:
        hook = build_notification_hook(pack.engine.notifications)

    engine = WorkflowEngine(
        pack.table,
        uow_factory,
        clock=clock,
        notification_hook=hook,
        outcome_sink=outcome_sink,
    )
    logger.info(
        "workflow_runtime_started",
        extra={
            "config_id": pack.config_id,
            "config_version": pack.config_version,
            "document_types": list(pack.document_types),
            "storage": "memory" if backend is not None else "sql",
            "notification_mode": pack.engine.notifications.mode,
        },
    )
    return WorkflowRuntime(pack=pack, engine=engine, notification_hook=hook)
