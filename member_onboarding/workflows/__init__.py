"""Member onboarding workflow engine."""

from __future__ import annotations

from member_onboarding.workflows.base import (
    APPROVAL_PHASES,
    WorkflowContext,
    WorkflowPhase,
    WorkflowResult,
)
from member_onboarding.workflows.orchestrator import (
    WorkflowOrchestrator,
    build_orchestrator,
)

__all__ = [
    "APPROVAL_PHASES",
    "WorkflowContext",
    "WorkflowPhase",
    "WorkflowResult",
    "WorkflowOrchestrator",
    "build_orchestrator",
]
