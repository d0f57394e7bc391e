"""
Exception hierarchy for the orchestration core.

Generation failures carry an ``ErrorKind`` so the retry policy can decide
what to do with them without inspecting messages again.
"""

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIALS = "invalid_credentials"
    SCHEMA_VALIDATION = "schema_validation"
    OTHER = "other"


class ScriptForgeError(Exception):
    """Base class for all orchestration errors."""
    pass


class GenerationError(ScriptForgeError):
    """A generation attempt (or a whole generation) failed."""

    kind: ErrorKind = ErrorKind.OTHER

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class GenerationTimeoutError(GenerationError):
    kind = ErrorKind.TIMEOUT


class RateLimitedError(GenerationError):
    kind = ErrorKind.RATE_LIMITED


class InvalidCredentialsError(GenerationError):
    kind = ErrorKind.INVALID_CREDENTIALS


class SchemaValidationError(GenerationError):
    kind = ErrorKind.SCHEMA_VALIDATION


class UnknownAgentTypeError(ScriptForgeError, ValueError):
    """Raised as soon as an agent type outside the task library is requested."""

    def __init__(self, agent_type: str):
        super().__init__(f"Unknown agent type: {agent_type}")
        self.agent_type = agent_type


class CoordinatorFault(ScriptForgeError):
    """Fatal to a whole run (e.g. the workflow has no id)."""
    pass


class WorkflowBusyError(ScriptForgeError):
    """Another execution is already active for this workflow."""

    def __init__(self, workflow_id: str, active_owner: str):
        super().__init__(
            f"Workflow {workflow_id} is busy (active execution: {active_owner})"
        )
        self.workflow_id = workflow_id
        self.active_owner = active_owner


class InvalidTransitionError(ScriptForgeError):
    """A node status change that the state machine does not allow."""

    def __init__(self, node_id: str, current: str, requested: str):
        super().__init__(
            f"Node {node_id}: cannot transition from '{current}' to '{requested}'"
        )
        self.node_id = node_id
        self.current = current
        self.requested = requested
