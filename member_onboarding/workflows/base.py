"""Workflow definition models for member onboarding orchestration."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from member_onboarding.exceptions import ErrorKind
from member_onboarding.models import Member


class WorkflowPhase(str, enum.Enum):
    """Closed set of onboarding phases. Every phase has exactly one handler."""

    PHASE_1_APPLICATION = "PHASE_1_APPLICATION"
    PHASE_2_COMPLETION = "PHASE_2_COMPLETION"
    PHASE_3_UPDATE = "PHASE_3_UPDATE"
    COMMITTEE_APPROVAL = "COMMITTEE_APPROVAL"
    BOARD_APPROVAL = "BOARD_APPROVAL"
    CEO_APPROVAL = "CEO_APPROVAL"
    REJECTION = "REJECTION"
    PAYMENT_LINK = "PAYMENT_LINK"
    PAYMENT_COMPLETION = "PAYMENT_COMPLETION"
    PAYMENT_RESET = "PAYMENT_RESET"
    IDENTITY_PROVISIONING = "IDENTITY_PROVISIONING"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["WorkflowPhase"]:
        """Return the phase for a stored value, or None when unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


APPROVAL_PHASES: FrozenSet[WorkflowPhase] = frozenset(
    {
        WorkflowPhase.COMMITTEE_APPROVAL,
        WorkflowPhase.BOARD_APPROVAL,
        WorkflowPhase.CEO_APPROVAL,
    }
)

PAYMENT_PHASES: FrozenSet[WorkflowPhase] = frozenset(
    {
        WorkflowPhase.PAYMENT_LINK,
        WorkflowPhase.PAYMENT_COMPLETION,
        WorkflowPhase.PAYMENT_RESET,
        WorkflowPhase.IDENTITY_PROVISIONING,
    }
)


@dataclass
class WorkflowContext:
    """Input for one handler invocation."""

    phase: WorkflowPhase
    data: Dict[str, Any] = field(default_factory=dict)
    entity_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WorkflowResult:
    """Outcome of a workflow operation: an entity and message, or an error."""

    success: bool
    phase: WorkflowPhase
    entity: Optional[Member] = None
    next_phase: Optional[WorkflowPhase] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    provisioning_error: Optional[str] = None

    @classmethod
    def ok(
        cls,
        phase: WorkflowPhase,
        entity: Member,
        message: str,
        next_phase: Optional[WorkflowPhase] = None,
    ) -> "WorkflowResult":
        return cls(
            success=True,
            phase=phase,
            entity=entity,
            message=message,
            next_phase=next_phase,
        )

    @classmethod
    def fail(
        cls, phase: WorkflowPhase, error: str, kind: ErrorKind
    ) -> "WorkflowResult":
        return cls(success=False, phase=phase, error=error, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to a JSON-serialisable dictionary."""
        data: Dict[str, Any] = {
            "success": self.success,
            "phase": self.phase.value,
            "next_phase": self.next_phase.value if self.next_phase else None,
        }
        if self.entity is not None:
            data["data"] = self.entity.to_dict()
        if self.message:
            data["message"] = self.message
        if self.error:
            data["error"] = self.error
        if self.error_kind:
            data["error_kind"] = self.error_kind.value
        if self.provisioning_error:
            data["provisioning_error"] = self.provisioning_error
        return data


class PhaseHandler(ABC):
    """Contract shared by every phase handler."""

    phases: FrozenSet[WorkflowPhase] = frozenset()

    def can_handle(self, context: WorkflowContext) -> bool:
        return context.phase in self.phases

    @abstractmethod
    def handle(self, context: WorkflowContext) -> WorkflowResult: ...
