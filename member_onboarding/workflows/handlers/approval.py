"""Approval handler - advances a member one step up the approval ladder."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from member_onboarding.exceptions import InvalidTransitionError
from member_onboarding.models import ApprovalHistoryEntry, Member, WorkflowTransition
from member_onboarding.repositories import (
    MemberRepository,
    WorkflowTransitionRepository,
)
from member_onboarding.services.notification_service import (
    NotificationKind,
    WorkflowNotificationService,
)
from member_onboarding.utils import utcnow
from member_onboarding.workflows.base import (
    APPROVAL_PHASES,
    WorkflowContext,
    WorkflowPhase,
    WorkflowResult,
)
from member_onboarding.workflows.handlers.base import BaseWorkflowHandler
from member_onboarding.workflows.validators import (
    ValidationContext,
    ValidatorChain,
    build_approval_chain,
)

logger = logging.getLogger(__name__)


def committee_actions(member: Member, order: int, stage: str) -> int:
    """Count approvals and rejections already recorded for a committee stage."""
    approvals = sum(
        1
        for entry in member.approval_history
        if entry.order == order and entry.approval_stage == stage
    )
    rejections = sum(
        1
        for entry in member.rejection_history
        if entry.order == order and entry.rejection_stage == stage
    )
    return approvals + rejections


class ApprovalHandler(BaseWorkflowHandler):
    """Runs the validator chain and records an approval.

    At the committee stage the member only moves on once approvals plus
    rejections reach the configured quorum; every other stage moves on the
    first approval.
    """

    phases = APPROVAL_PHASES

    def __init__(
        self,
        members: MemberRepository,
        transitions: WorkflowTransitionRepository,
        notifications: WorkflowNotificationService,
        config: Mapping[str, Any],
        chain: Optional[ValidatorChain] = None,
    ) -> None:
        super().__init__(members, transitions, notifications, config)
        self.committee_stage: str = config["COMMITTEE_STAGE"]
        self.required_actions: int = int(config["REQUIRED_COMMITTEE_ACTIONS"])
        self.chain = chain or build_approval_chain(
            transitions, self.workflow_type, self.committee_stage
        )

    def _execute(self, context: WorkflowContext) -> WorkflowResult:
        self._require_fields(context.data, "action_by", "action_by_email")
        return self._with_conflict_retry(
            context.entity_id or "", lambda: self._approve(context)
        )

    def _approve(self, context: WorkflowContext) -> WorkflowResult:
        data = context.data
        member = self._load_member(context, fresh=True)
        self._require_not_terminal(member, "approve")

        validation = ValidationContext(
            entity=member,
            current_status=member.status,
            current_user_email=str(data["action_by_email"]).strip().lower(),
        )
        result = self.chain.validate(validation)
        if not result.is_valid:
            raise InvalidTransitionError(result.error)

        transition = validation.transition
        if WorkflowPhase.parse(transition.phase) != context.phase:
            raise InvalidTransitionError(
                f"Status {member.status} expects phase {transition.phase}, "
                f"not {context.phase.value}"
            )

        previous_status = member.status
        next_status = self._next_status(member, transition)
        member.approval_history.append(
            ApprovalHistoryEntry(
                approval_stage=transition.approval_stage,
                order=transition.order,
                approved_by=data["action_by"],
                approver_email=validation.current_user_email,
                comments=data.get("comments"),
                approved_at=utcnow(),
            )
        )
        member.status = next_status
        self.members.save(member)

        if next_status != previous_status:
            logger.info(f"Member {member.member_id}: {previous_status} → {next_status}")
            self._notify(
                NotificationKind.APPROVAL,
                member,
                {"approval_stage": transition.approval_stage},
            )
            message = f"Approved at {transition.approval_stage} stage"
        else:
            recorded = committee_actions(member, transition.order, self.committee_stage)
            logger.info(
                f"Member {member.member_id}: committee action {recorded}/"
                f"{self.required_actions} recorded"
            )
            message = (
                f"Committee approval recorded ({recorded} of "
                f"{self.required_actions} required actions)"
            )

        return WorkflowResult.ok(
            context.phase,
            member,
            message,
            next_phase=self._phase_for_status(member.status),
        )

    def _next_status(self, member: Member, transition: WorkflowTransition) -> str:
        if transition.approval_stage != self.committee_stage:
            return transition.next_status
        recorded = committee_actions(member, transition.order, self.committee_stage)
        if recorded + 1 >= self.required_actions:
            return transition.next_status
        return member.status
