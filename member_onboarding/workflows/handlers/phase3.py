"""Phase 3 - profile updates after activation."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from member_onboarding.exceptions import InvalidTransitionError, WorkflowValidationError
from member_onboarding.models import Member, MemberUser, UserType
from member_onboarding.utils import utcnow
from member_onboarding.workflows.base import WorkflowContext, WorkflowPhase, WorkflowResult
from member_onboarding.workflows.handlers.base import BaseWorkflowHandler
from member_onboarding.workflows.handlers.phase1 import USER_FIELDS
from member_onboarding.workflows.handlers.phase2 import apply_profile_update

logger = logging.getLogger(__name__)


class Phase3Handler(BaseWorkflowHandler):
    """Updates an active member's profile and users. Status is left as is."""

    phases = frozenset({WorkflowPhase.PHASE_3_UPDATE})

    def _execute(self, context: WorkflowContext) -> WorkflowResult:
        member = self._load_member(context)
        if member.status != self.config["ACTIVE_STATUS"]:
            raise InvalidTransitionError(
                f"Member {member.member_id} must be {self.config['ACTIVE_STATUS']} "
                f"to update its profile (current status: {member.status})"
            )

        users = context.data.get("users")
        # Validate users before anything is touched
        if users:
            self._check_users(member, users)

        apply_profile_update(member, context.data)
        if users:
            self._merge_users(member, users)
        self.members.save(member)
        logger.info(f"Updated profile of active member {member.member_id}")

        return WorkflowResult.ok(context.phase, member, "Member updated successfully")

    def _check_users(self, member: Member, users: List[Dict[str, Any]]) -> None:
        """New users need an email; at most one user may end up Primary."""
        user_types = {user.id: user.user_type for user in member.users}
        added = []
        for user in users:
            user_type = user.get("user_type")
            if user.get("id") in user_types:
                if user_type is not None:
                    user_types[user["id"]] = user_type
                continue
            self._require_fields(user, "email")
            added.append(user_type or UserType.SECONDARY.value)

        resulting = list(user_types.values()) + added
        if resulting.count(UserType.PRIMARY.value) > 1:
            raise WorkflowValidationError("Only one user can be the Primary user")

    def _merge_users(self, member: Member, users: List[Dict[str, Any]]) -> None:
        """Update users matched by id; anything else is added as a new user."""
        existing = {user.id: user for user in member.users}
        for incoming in users:
            values = {
                field: incoming[field]
                for field in USER_FIELDS
                if incoming.get(field) is not None
            }
            target = existing.get(incoming.get("id"))
            if target is None:
                values.setdefault("user_type", UserType.SECONDARY.value)
                member.users.append(MemberUser(**values))
                continue
            for field, value in values.items():
                setattr(target, field, value)
            target.updated_at = utcnow()
