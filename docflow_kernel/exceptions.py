"""
Typed Exception Hierarchy for the docflow kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow engine (HTTP handlers, maintenance jobs) must be
able to tell "not your turn" from "not allowed for your role" from
"conditions not met" without parsing message strings.  Every error
therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA as instance attributes

The engine never raises the WorkflowError family across its public
boundary: ``WorkflowEngine.apply`` returns the instance inside an
``ApplyResult``.  ``ApplyResult.unwrap()`` re-raises it for callers
that prefer exceptions.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DocflowError (base)
    |
    +-- WorkflowError
    |   +-- DocumentNotFoundError
    |   +-- VersionConflictError
    |   +-- NoSuchTransitionError
    |   +-- RoleNotAuthorizedError
    |   +-- GuardNotSatisfiedError
    |   +-- AmbiguousTransitionError
    |   +-- StorageError
    |   +-- ApplyCancelledError
    |
    +-- DocumentAlreadyExistsError
    |
    +-- ConfigurationError
    |   +-- WorkflowDefinitionError
    |   +-- UnknownStateError
    |   +-- UnknownDocumentTypeError
    |   +-- DuplicateTransitionRuleError
    |   +-- AmbiguousTransitionRuleError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When
----------------|-----------------------------|-----------------------------------------
Workflow        | DOCUMENT_NOT_FOUND          | No document for (type, id)
                | VERSION_CONFLICT            | expected_version is stale (re-read, retry)
                | NO_SUCH_TRANSITION          | (from, to) has no rule for the type
                | ROLE_NOT_AUTHORIZED         | Actor role not in the rule's role set
                | GUARD_NOT_SATISFIED         | Named business guard false or absent
                | AMBIGUOUS_TRANSITION        | >1 rule matched (configuration defect)
                | STORAGE_ERROR               | Store / audit I/O failure, nothing committed
                | APPLY_CANCELLED             | Caller cancelled before the write
----------------|-----------------------------|-----------------------------------------
Configuration   | WORKFLOW_DEFINITION_INVALID | Structural defect in a workflow
                | UNKNOWN_STATE               | Rule references an undeclared state
                | UNKNOWN_DOCUMENT_TYPE       | No table registered for the type
                | DUPLICATE_TRANSITION_RULE   | Same (from, to, role, guard) twice
                | AMBIGUOUS_TRANSITION_RULE   | Two rules on (from, to) share a role
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of an append-only record
----------------|-----------------------------|-----------------------------------------
Creation        | DOCUMENT_ALREADY_EXISTS     | create() for an existing (type, id)

===============================================================================
HANDLING PATTERNS
===============================================================================

    result = engine.apply(...)
    if not result.success:
        if isinstance(result.error, VersionConflictError):
            reload_and_retry()
        elif isinstance(result.error, RoleNotAuthorizedError):
            return http_403(result.error.code)
        elif result.is_system_error:
            page_operator(result.error)

===============================================================================
"""


class DocflowError(Exception):
    """
    Base exception for all docflow errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "DOCFLOW_ERROR"


# Workflow (apply-time) errors


class WorkflowError(DocflowError):
    """Base exception for apply-time workflow outcomes."""

    code: str = "WORKFLOW_ERROR"
    # System-level errors page an operator when persistent.
    is_system_error: bool = False


class DocumentNotFoundError(WorkflowError):
    """No workflow document exists for the given identifiers."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"Document not found: {document_type}/{document_id}")


class VersionConflictError(WorkflowError):
    """The caller's expected version is stale."""

    code: str = "VERSION_CONFLICT"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        expected_version: int,
        actual_version: int | None = None,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on {document_type}/{document_id}: "
            f"expected {expected_version}, found {actual_version}"
        )


class NoSuchTransitionError(WorkflowError):
    """No rule exists for (from_state, to_state) in the document type."""

    code: str = "NO_SUCH_TRANSITION"

    def __init__(self, document_type: str, from_state: str, to_state: str):
        self.document_type = document_type
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"No transition '{from_state}' -> '{to_state}' for {document_type}"
        )


class RoleNotAuthorizedError(WorkflowError):
    """Actor role lacks permission for the requested transition."""

    code: str = "ROLE_NOT_AUTHORIZED"

    def __init__(
        self,
        document_type: str,
        from_state: str,
        to_state: str,
        actor_role: str,
    ):
        self.document_type = document_type
        self.from_state = from_state
        self.to_state = to_state
        self.actor_role = actor_role
        super().__init__(
            f"Role '{actor_role}' may not move {document_type} "
            f"from '{from_state}' to '{to_state}'"
        )


class GuardNotSatisfiedError(WorkflowError):
    """The rule's business guard was false or not supplied."""

    code: str = "GUARD_NOT_SATISFIED"

    def __init__(self, document_type: str, guard_name: str):
        self.document_type = document_type
        self.guard_name = guard_name
        super().__init__(f"Guard not satisfied: {guard_name} ({document_type})")


class AmbiguousTransitionError(WorkflowError):
    """More than one rule matched a single apply request."""

    code: str = "AMBIGUOUS_TRANSITION"
    is_system_error: bool = True

    def __init__(
        self,
        document_type: str,
        from_state: str,
        to_state: str,
        actor_role: str,
        match_count: int,
    ):
        self.document_type = document_type
        self.from_state = from_state
        self.to_state = to_state
        self.actor_role = actor_role
        self.match_count = match_count
        super().__init__(
            f"{match_count} rules match '{from_state}' -> '{to_state}' "
            f"for role '{actor_role}' in {document_type}"
        )


class StorageError(WorkflowError):
    """Document store or audit log I/O failed; nothing was committed."""

    code: str = "STORAGE_ERROR"
    is_system_error: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


class ApplyCancelledError(WorkflowError):
    """The caller cancelled the apply before the conditional write."""

    code: str = "APPLY_CANCELLED"

    def __init__(self, document_type: str, document_id: str, reason: str):
        self.document_type = document_type
        self.document_id = document_id
        self.reason = reason
        super().__init__(
            f"Apply on {document_type}/{document_id} cancelled: {reason}"
        )


class DocumentAlreadyExistsError(DocflowError):
    """A document with the same (type, id) is already registered."""

    code: str = "DOCUMENT_ALREADY_EXISTS"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"Document already exists: {document_type}/{document_id}")


# Configuration (load-time) errors


class ConfigurationError(DocflowError):
    """Base exception for workflow configuration defects."""

    code: str = "CONFIGURATION_ERROR"


class WorkflowDefinitionError(ConfigurationError):
    """A workflow definition is structurally invalid."""

    code: str = "WORKFLOW_DEFINITION_INVALID"

    def __init__(self, document_type: str, reason: str):
        self.document_type = document_type
        self.reason = reason
        super().__init__(f"Invalid workflow '{document_type}': {reason}")


class UnknownStateError(ConfigurationError):
    """A rule references a state the workflow does not declare."""

    code: str = "UNKNOWN_STATE"

    def __init__(self, document_type: str, state: str):
        self.document_type = document_type
        self.state = state
        super().__init__(f"State '{state}' is not declared in {document_type}")


class UnknownDocumentTypeError(ConfigurationError):
    """No transition table is registered for the document type."""

    code: str = "UNKNOWN_DOCUMENT_TYPE"

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(f"Unknown document type: {document_type}")


class DuplicateTransitionRuleError(ConfigurationError):
    """The same (from, to, role, guard) tuple is declared twice."""

    code: str = "DUPLICATE_TRANSITION_RULE"

    def __init__(
        self,
        document_type: str,
        from_state: str,
        to_state: str,
        role: str,
        guard_name: str | None,
    ):
        self.document_type = document_type
        self.from_state = from_state
        self.to_state = to_state
        self.role = role
        self.guard_name = guard_name
        super().__init__(
            f"Duplicate rule in {document_type}: '{from_state}' -> '{to_state}' "
            f"role={role} guard={guard_name}"
        )


class AmbiguousTransitionRuleError(ConfigurationError):
    """Two rules on the same (from, to) pair are open to the same role."""

    code: str = "AMBIGUOUS_TRANSITION_RULE"

    def __init__(
        self,
        document_type: str,
        from_state: str,
        to_state: str,
        role: str,
    ):
        self.document_type = document_type
        self.from_state = from_state
        self.to_state = to_state
        self.role = role
        super().__init__(
            f"Ambiguous rules in {document_type}: '{from_state}' -> '{to_state}' "
            f"declared more than once for role {role}"
        )


# Audit errors


class AuditError(DocflowError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, entry_seq: int, expected_hash: str, actual_hash: str):
        self.entry_seq = entry_seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at seq {entry_seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )


# Immutability errors


class ImmutabilityError(DocflowError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete a protected record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
