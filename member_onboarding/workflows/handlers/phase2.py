"""Phase 2 - application completion."""

from __future__ import annotations

import logging
from typing import Any, Dict

from member_onboarding.exceptions import InvalidTransitionError
from member_onboarding.models import Member
from member_onboarding.services.notification_service import NotificationKind
from member_onboarding.utils import deep_merge
from member_onboarding.workflows.base import WorkflowContext, WorkflowPhase, WorkflowResult
from member_onboarding.workflows.handlers.base import BaseWorkflowHandler
from member_onboarding.workflows.handlers.phase1 import MEMBER_FIELDS, NESTED_FIELDS

logger = logging.getLogger(__name__)


def apply_profile_update(member: Member, data: Dict[str, Any]) -> None:
    """Merge a partial payload into the member's profile fields.

    Nested JSON fields are deep-merged and assigned as new dicts; ``None``
    values are ignored at every level.
    """
    for field in MEMBER_FIELDS:
        if data.get(field) is not None:
            setattr(member, field, data[field])
    for field in NESTED_FIELDS:
        if data.get(field) is not None:
            setattr(member, field, deep_merge(getattr(member, field), data[field]))


class Phase2Handler(BaseWorkflowHandler):
    """Completes the application and submits it for committee review."""

    phases = frozenset({WorkflowPhase.PHASE_2_COMPLETION})

    def _execute(self, context: WorkflowContext) -> WorkflowResult:
        member = self._load_member(context)
        if member.status not in self.config["PHASE2_SOURCE_STATUSES"]:
            raise InvalidTransitionError(
                f"Application {member.member_id} cannot be completed from status "
                f"{member.status}"
            )

        # Users are managed in Phase 1 and Phase 3 only
        apply_profile_update(member, context.data)
        previous_status = member.status
        member.status = self.config["COMPLETION_STATUS"]
        self.members.save(member)
        logger.info(f"Member {member.member_id}: {previous_status} → {member.status}")

        self._notify(NotificationKind.PHASE2_CONFIRMATION, member)
        self._notify(NotificationKind.PHASE2_ADMIN_NOTIFICATION, member)
        return WorkflowResult.ok(
            context.phase,
            member,
            "Application completed and submitted for review",
            next_phase=self._phase_for_status(member.status),
        )
