"""Phase 1 - initial application submission."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from member_onboarding.exceptions import WorkflowValidationError
from member_onboarding.models import MemberUser, PaymentStatus, UserType
from member_onboarding.services.notification_service import NotificationKind
from member_onboarding.workflows.base import (
    WorkflowContext,
    WorkflowPhase,
    WorkflowResult,
)
from member_onboarding.workflows.handlers.base import BaseWorkflowHandler

logger = logging.getLogger(__name__)

MEMBER_FIELDS = ("category", "tier")
NESTED_FIELDS = ("organisation_info", "member_consent", "additional_info")
USER_FIELDS = tuple(
    column.name
    for column in MemberUser.__table__.columns
    if column.name not in {"id", "member_pk", "created_at", "updated_at"}
)


class Phase1Handler(BaseWorkflowHandler):
    """Creates the member record in ``pendingFormSubmission``."""

    phases = frozenset({WorkflowPhase.PHASE_1_APPLICATION})

    def _execute(self, context: WorkflowContext) -> WorkflowResult:
        data = context.data
        users = self._user_rows(data)
        member_data: Dict[str, Any] = {
            field: data.get(field) for field in MEMBER_FIELDS
        }
        for field in NESTED_FIELDS:
            member_data[field] = dict(data.get(field) or {})

        # Identifiers and status are never taken from the caller
        member_data.update(
            member_id=self.members.next_member_id(),
            application_number=self.members.next_application_number(),
            status=self.config["INITIAL_STATUS"],
            payment_status=PaymentStatus.PENDING.value,
        )

        member = self.members.create_member(member_data, users)
        logger.info(
            f"Created member {member.member_id} ({member.application_number}) "
            f"in {member.status}"
        )

        self._notify(
            NotificationKind.PHASE1_CONFIRMATION,
            member,
            {
                "phase2_url": self.notifications.build_phase2_url(
                    member.application_number
                )
            },
        )
        return WorkflowResult.ok(
            context.phase,
            member,
            "Application submitted. Please complete the remaining details.",
            next_phase=WorkflowPhase.PHASE_2_COMPLETION,
        )

    def _user_rows(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = []
        for user in data.get("users") or []:
            row = {
                field: user[field]
                for field in USER_FIELDS
                if user.get(field) is not None
            }
            self._require_fields(row, "email")
            row.setdefault("user_type", UserType.SECONDARY.value)
            rows.append(row)

        primaries = sum(1 for r in rows if r["user_type"] == UserType.PRIMARY.value)
        if primaries > 1:
            raise WorkflowValidationError("Only one user can be the Primary user")
        # The first contact becomes primary when the caller did not flag one
        if rows and not primaries:
            rows[0]["user_type"] = UserType.PRIMARY.value
        return rows
