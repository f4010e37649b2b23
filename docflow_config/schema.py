"""
WorkflowConfigurationSet schema.

Defines the human-authored, reviewable source artifact for workflow
configuration.  YAML fragments are parsed into these types by the loader,
composed by the assembler, and compiled into a CompiledWorkflowPack by the
compiler.

Key distinction:
  WorkflowConfigurationSet = source artifact (human-authored, versioned)
  CompiledWorkflowPack     = runtime artifact (validated TransitionTable, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique


@unique
class ConfigStatus(str, Enum):
    """Lifecycle status for a configuration set.

    Sets are append-only; each version names its predecessor.  When more
    than one set is available, PUBLISHED sets win over the others.
    """

    DRAFT = "draft"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


# ---------------------------------------------------------------------------
# Roles and guards
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleDef:
    """An actor role known to the configuration set."""

    name: str
    description: str = ""


@dataclass(frozen=True)
class GuardDef:
    """A named business precondition callers evaluate and pass in."""

    name: str
    description: str = ""


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransitionDef:
    """One edge of a workflow as written in YAML."""

    from_state: str
    to_state: str
    roles: tuple[str, ...]
    guard: str | None = None
    action: str = ""


@dataclass(frozen=True)
class WorkflowDef:
    """One document type's state machine as written in YAML."""

    document_type: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[TransitionDef, ...]
    terminal_states: tuple[str, ...] = ()
    description: str = ""
    source_file: str = ""


# ---------------------------------------------------------------------------
# Engine settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    create_schema: bool = False


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class NotificationSettings:
    """How committed transitions are handed to the notification hook.

    mode:
        ``log``   -- LoggingNotificationHook, synchronous.
        ``async`` -- LoggingNotificationHook behind a thread pool.
        ``none``  -- no hook.
    """

    mode: str = "log"
    max_workers: int = 2


@dataclass(frozen=True)
class EngineSettings:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)


# ---------------------------------------------------------------------------
# Configuration set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowConfigurationSet:
    """The assembled, human-authored configuration set."""

    config_id: str
    version: int
    checksum: str
    status: ConfigStatus
    workflows: tuple[WorkflowDef, ...]
    roles: tuple[RoleDef, ...] = ()
    guards: tuple[GuardDef, ...] = ()
    engine: EngineSettings = field(default_factory=EngineSettings)
    description: str = ""
    predecessor: str | None = None
