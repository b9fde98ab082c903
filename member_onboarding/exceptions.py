"""Workflow error taxonomy.

Handlers raise these internally; the handler boundary turns them into a failed
``WorkflowResult`` carrying the matching ``ErrorKind`` so callers never see a
stack trace.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Category of a failed workflow operation."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    EXTERNAL_DEPENDENCY = "EXTERNAL_DEPENDENCY"
    PERSISTENCE = "PERSISTENCE"
    HANDLER_REJECTED = "HANDLER_REJECTED"


class WorkflowError(Exception):
    """Base class for errors raised while executing a workflow phase."""

    kind: ErrorKind = ErrorKind.PERSISTENCE


class MemberNotFoundError(WorkflowError):
    """Raised when the member (or a record it depends on) does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, member_id: str, detail: str = "") -> None:
        message = f"Member with ID {member_id} not found"
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
        self.member_id = member_id


class InvalidTransitionError(WorkflowError):
    """Raised when a status change is not allowed from the current state."""

    kind = ErrorKind.INVALID_TRANSITION


class WorkflowValidationError(WorkflowError):
    """Raised when a payload is missing a required field."""

    kind = ErrorKind.VALIDATION_FAILURE


class ExternalDependencyError(WorkflowError):
    """Raised when a downstream collaborator (identity, email) fails."""

    kind = ErrorKind.EXTERNAL_DEPENDENCY


class IdentityProvisioningError(ExternalDependencyError):
    """Raised when the identity provider cannot create the member's account."""


class NotificationError(ExternalDependencyError):
    """Raised by email transports; never escapes the notification service."""


class PersistenceError(WorkflowError):
    """Raised when the storage layer rejects a write."""

    kind = ErrorKind.PERSISTENCE


class ConcurrentUpdateError(PersistenceError):
    """Raised when the member row changed between read and conditional write."""

    def __init__(self, member_id: str) -> None:
        super().__init__(
            f"Member {member_id} was modified by another request; please retry"
        )
        self.member_id = member_id
