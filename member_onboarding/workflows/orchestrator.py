"""Workflow orchestrator - single entry point for every onboarding operation."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from flask_sqlalchemy import SQLAlchemy

from member_onboarding.core import get_settings
from member_onboarding.core.settings import AppSettings
from member_onboarding.exceptions import ErrorKind
from member_onboarding.repositories import (
    MemberRepository,
    WorkflowTransitionRepository,
)
from member_onboarding.services.identity_service import (
    IdentityProvider,
    build_identity_provider,
)
from member_onboarding.services.notification_service import (
    WorkflowNotificationService,
)
from member_onboarding.workflows.base import (
    APPROVAL_PHASES,
    PhaseHandler,
    WorkflowContext,
    WorkflowPhase,
    WorkflowResult,
)
from member_onboarding.workflows.handlers import (
    ApprovalHandler,
    PaymentHandler,
    Phase1Handler,
    Phase2Handler,
    Phase3Handler,
    RejectionHandler,
)

logger = logging.getLogger(__name__)


class WorkflowOrchestrator:
    """Routes workflow operations to the handler registered for their phase."""

    def __init__(
        self,
        handlers: Sequence[PhaseHandler],
        members: MemberRepository,
        transitions: WorkflowTransitionRepository,
        workflow_type: str,
    ) -> None:
        """Register handlers by phase.

        Raises:
            ValueError: If a phase has no handler or more than one
        """
        self.members = members
        self.transitions = transitions
        self.workflow_type = workflow_type
        self._handlers: Dict[WorkflowPhase, PhaseHandler] = {}
        for handler in handlers:
            for phase in handler.phases:
                if phase in self._handlers:
                    raise ValueError(f"Phase {phase.value} already has a handler")
                self._handlers[phase] = handler

        missing = [phase.value for phase in WorkflowPhase if phase not in self._handlers]
        if missing:
            raise ValueError(f"No handler registered for phases: {', '.join(missing)}")

    def execute_phase1(self, data: Dict[str, Any]) -> WorkflowResult:
        return self._dispatch(WorkflowPhase.PHASE_1_APPLICATION, None, data)

    def execute_phase2(self, member_id: str, data: Dict[str, Any]) -> WorkflowResult:
        return self._dispatch(WorkflowPhase.PHASE_2_COMPLETION, member_id, data)

    def execute_phase3(self, member_id: str, data: Dict[str, Any]) -> WorkflowResult:
        return self._dispatch(WorkflowPhase.PHASE_3_UPDATE, member_id, data)

    def execute_approval(self, member_id: str, data: Dict[str, Any]) -> WorkflowResult:
        """Approve at whatever stage the member's current status belongs to."""
        member = self.members.get_by_member_id(member_id)
        if member is None:
            return WorkflowResult.fail(
                WorkflowPhase.COMMITTEE_APPROVAL,
                f"Member with ID {member_id} not found",
                ErrorKind.NOT_FOUND,
            )

        transition = self.transitions.get_transition(self.workflow_type, member.status)
        if transition is None:
            return WorkflowResult.fail(
                WorkflowPhase.COMMITTEE_APPROVAL,
                f"No valid transition for status {member.status}",
                ErrorKind.INVALID_TRANSITION,
            )

        phase = WorkflowPhase.parse(transition.phase)
        if phase not in APPROVAL_PHASES:
            return WorkflowResult.fail(
                WorkflowPhase.COMMITTEE_APPROVAL,
                f"Invalid approval phase {transition.phase} for status {member.status}",
                ErrorKind.INVALID_TRANSITION,
            )
        return self._dispatch(phase, member_id, data)

    def execute_rejection(self, member_id: str, data: Dict[str, Any]) -> WorkflowResult:
        return self._dispatch(WorkflowPhase.REJECTION, member_id, data)

    def add_payment_link(self, member_id: str, data: Dict[str, Any]) -> WorkflowResult:
        return self._dispatch(WorkflowPhase.PAYMENT_LINK, member_id, data)

    def complete_payment(self, member_id: str, data: Dict[str, Any]) -> WorkflowResult:
        return self._dispatch(WorkflowPhase.PAYMENT_COMPLETION, member_id, data)

    def reset_payment(self, member_id: str, data: Dict[str, Any]) -> WorkflowResult:
        return self._dispatch(WorkflowPhase.PAYMENT_RESET, member_id, data)

    def retry_identity_provisioning(self, member_id: str) -> WorkflowResult:
        return self._dispatch(WorkflowPhase.IDENTITY_PROVISIONING, member_id, {})

    def _dispatch(
        self, phase: WorkflowPhase, member_id: Optional[str], data: Dict[str, Any]
    ) -> WorkflowResult:
        context = WorkflowContext(phase=phase, data=dict(data), entity_id=member_id)
        handler = self._handlers[phase]
        if not handler.can_handle(context):
            logger.error(f"{type(handler).__name__} refused phase {phase.value}")
            return WorkflowResult.fail(
                phase,
                f"Handler {type(handler).__name__} cannot handle phase {phase.value}",
                ErrorKind.HANDLER_REJECTED,
            )

        logger.debug(f"Dispatching {phase.value} for {member_id or 'new member'}")
        return handler.handle(context)


def build_orchestrator(
    db: SQLAlchemy,
    settings: Optional[AppSettings] = None,
    notification_service: Optional[WorkflowNotificationService] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> WorkflowOrchestrator:
    """Wire repositories, collaborators and handlers into an orchestrator."""
    settings = settings or get_settings()
    config = settings.workflow_config
    members = MemberRepository(db)
    transitions = WorkflowTransitionRepository(db)
    notifications = notification_service or WorkflowNotificationService(settings)
    identity = identity_provider or build_identity_provider(settings)

    shared = (members, transitions, notifications, config)
    handlers = [
        Phase1Handler(*shared),
        Phase2Handler(*shared),
        Phase3Handler(*shared),
        ApprovalHandler(*shared),
        RejectionHandler(*shared, stage_map=settings.rejection_stages),
        PaymentHandler(*shared, identity_provider=identity),
    ]
    return WorkflowOrchestrator(handlers, members, transitions, config["WORKFLOW_TYPE"])
