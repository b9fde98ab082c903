"""Rejection handler - committee feedback, admin rejection and stage rejection."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from member_onboarding.exceptions import InvalidTransitionError, WorkflowValidationError
from member_onboarding.models import Member, RejectionHistoryEntry
from member_onboarding.repositories import (
    MemberRepository,
    WorkflowTransitionRepository,
)
from member_onboarding.services.notification_service import (
    NotificationKind,
    WorkflowNotificationService,
)
from member_onboarding.utils import utcnow
from member_onboarding.workflows.base import WorkflowContext, WorkflowPhase, WorkflowResult
from member_onboarding.workflows.handlers.approval import committee_actions
from member_onboarding.workflows.handlers.base import BaseWorkflowHandler
from member_onboarding.workflows.validators import (
    has_acted_at_order,
    missing_prior_stage,
    stage_name,
)

logger = logging.getLogger(__name__)

ADMIN_ORDER = 0


class RejectionHandler(BaseWorkflowHandler):
    """Records a rejection against the stage the member currently sits in.

    ``stage_map`` maps a status to ``{"stage": ..., "order": ...}``. Statuses
    missing from the map cannot be rejected.
    """

    phases = frozenset({WorkflowPhase.REJECTION})

    def __init__(
        self,
        members: MemberRepository,
        transitions: WorkflowTransitionRepository,
        notifications: WorkflowNotificationService,
        config: Mapping[str, Any],
        stage_map: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> None:
        super().__init__(members, transitions, notifications, config)
        self.stage_map = dict(
            stage_map if stage_map is not None else config["REJECTION_STAGES"]
        )
        self.committee_stage: str = config["COMMITTEE_STAGE"]
        self.required_actions: int = int(config["REQUIRED_COMMITTEE_ACTIONS"])

    def _execute(self, context: WorkflowContext) -> WorkflowResult:
        comments = context.data.get("comments")
        if not isinstance(comments, str) or not comments.strip():
            raise WorkflowValidationError("Comments are required for rejection")
        self._require_fields(context.data, "action_by", "action_by_email")
        return self._with_conflict_retry(
            context.entity_id or "", lambda: self._reject(context)
        )

    def _reject(self, context: WorkflowContext) -> WorkflowResult:
        member = self._load_member(context, fresh=True)
        self._require_not_terminal(member, "reject")

        stage_info = self.stage_map.get(member.status)
        if stage_info is None:
            raise InvalidTransitionError(
                f"No rejection stage configured for status {member.status}"
            )
        stage = str(stage_info["stage"])
        order = int(stage_info["order"])
        data = context.data
        entry = RejectionHistoryEntry(
            rejection_stage=stage,
            order=order,
            rejected_by=data["action_by"],
            rejector_email=str(data["action_by_email"]).strip().lower(),
            reason=data["comments"].strip(),
            rejected_at=utcnow(),
        )

        if stage == self.committee_stage:
            return self._record_committee_feedback(context, member, entry)
        if order != ADMIN_ORDER:
            self._check_stage_order(member, order)
        return self._reject_member(context, member, entry)

    def _record_committee_feedback(
        self, context: WorkflowContext, member: Member, entry: RejectionHistoryEntry
    ) -> WorkflowResult:
        if has_acted_at_order(member, entry.order, entry.rejector_email):
            raise InvalidTransitionError(
                "You have already provided feedback for this application "
                "at the committee stage"
            )
        self._check_prior_stages(member, entry.order)

        previous_status = member.status
        next_status = previous_status
        recorded = committee_actions(member, entry.order, self.committee_stage)
        if recorded + 1 >= self.required_actions:
            transition = self.transitions.get_transition(self.workflow_type, previous_status)
            if transition is None:
                raise InvalidTransitionError(
                    f"No valid transition for status {previous_status}"
                )
            next_status = transition.next_status

        member.rejection_history.append(entry)
        member.status = next_status
        self.members.save(member)

        if next_status != previous_status:
            logger.info(f"Member {member.member_id}: {previous_status} → {next_status}")
            self._notify(
                NotificationKind.APPROVAL,
                member,
                {"approval_stage": self.committee_stage},
            )
        else:
            logger.info(
                f"Member {member.member_id}: committee feedback {recorded + 1}/"
                f"{self.required_actions} recorded"
            )

        return WorkflowResult.ok(
            context.phase,
            member,
            "Committee feedback recorded",
            next_phase=self._phase_for_status(member.status),
        )

    def _check_prior_stages(self, member: Member, order: int) -> None:
        error = missing_prior_stage(member, order, self.transitions, self.workflow_type)
        if error:
            raise InvalidTransitionError(error)

    def _check_stage_order(self, member: Member, order: int) -> None:
        self._check_prior_stages(member, order)
        if any(entry.order == order for entry in member.approval_history):
            stage = stage_name(self.transitions, self.workflow_type, order)
            raise InvalidTransitionError(
                f"Invalid approval order: {stage} approval has already been completed"
            )

    def _reject_member(
        self, context: WorkflowContext, member: Member, entry: RejectionHistoryEntry
    ) -> WorkflowResult:
        previous_status = member.status
        member.rejection_history.append(entry)
        member.status = self.config["REJECTED_STATUS"]
        self.members.save(member)
        logger.info(
            f"Member {member.member_id}: {previous_status} → {member.status} "
            f"({entry.rejection_stage})"
        )

        params: Dict[str, Any] = {"rejection_reason": entry.reason}
        self._notify(NotificationKind.REJECTION, member, params)
        return WorkflowResult.ok(context.phase, member, "Application rejected")
