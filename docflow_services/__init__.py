"""
docflow_services -- stateful orchestration over the docflow kernel.

WorkflowEngine is the only component that changes workflow document
state.  ``bootstrap.start_runtime`` wires it from a CompiledWorkflowPack.
"""

from docflow_services.bootstrap import WorkflowRuntime, start_runtime
from docflow_services.notification import (
    AsyncNotificationDispatcher,
    CollectingNotificationHook,
    LoggingNotificationHook,
    NullNotificationHook,
)
from docflow_services.workflow_engine import WorkflowEngine

__all__ = [
    "AsyncNotificationDispatcher",
    "CollectingNotificationHook",
    "LoggingNotificationHook",
    "NullNotificationHook",
    "WorkflowEngine",
    "WorkflowRuntime",
    "start_runtime",
]
