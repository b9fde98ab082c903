"""Shared plumbing for workflow phase handlers."""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from member_onboarding.exceptions import (
    ConcurrentUpdateError,
    ErrorKind,
    InvalidTransitionError,
    MemberNotFoundError,
    WorkflowError,
    WorkflowValidationError,
)
from member_onboarding.models import Member
from member_onboarding.repositories import (
    MemberRepository,
    WorkflowTransitionRepository,
)
from member_onboarding.services.notification_service import (
    NotificationKind,
    WorkflowNotificationService,
)
from member_onboarding.workflows.base import (
    PhaseHandler,
    WorkflowContext,
    WorkflowPhase,
    WorkflowResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseWorkflowHandler(PhaseHandler):
    """Phase handler with storage, notification and error-boundary helpers.

    Subclasses implement ``_execute`` and raise ``WorkflowError`` subclasses;
    ``handle`` turns them (and storage failures) into failed results.
    """

    def __init__(
        self,
        members: MemberRepository,
        transitions: WorkflowTransitionRepository,
        notifications: WorkflowNotificationService,
        config: Mapping[str, Any],
    ) -> None:
        self.members = members
        self.transitions = transitions
        self.notifications = notifications
        self.config = config
        self.workflow_type: str = config["WORKFLOW_TYPE"]

    def handle(self, context: WorkflowContext) -> WorkflowResult:
        try:
            return self._execute(context)
        except WorkflowError as exc:
            logger.error(
                f"{context.phase.value} failed for {context.entity_id or 'new member'}: "
                f"{exc}"
            )
            return WorkflowResult.fail(context.phase, str(exc), exc.kind)
        except SQLAlchemyError as exc:
            self.members.rollback()
            logger.error(f"{context.phase.value} storage failure: {exc}")
            return WorkflowResult.fail(
                context.phase, "Failed to persist workflow change", ErrorKind.PERSISTENCE
            )

    @abstractmethod
    def _execute(self, context: WorkflowContext) -> WorkflowResult: ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_member(self, context: WorkflowContext, fresh: bool = False) -> Member:
        if not context.entity_id:
            raise WorkflowValidationError("Member ID is required")
        if fresh:
            member = self.members.reload(context.entity_id)
        else:
            member = self.members.get_by_member_id(context.entity_id)
        if member is None:
            raise MemberNotFoundError(context.entity_id)
        return member

    def _require_not_terminal(self, member: Member, action: str) -> None:
        if member.status in self.config["TERMINAL_STATUSES"]:
            raise InvalidTransitionError(
                f"Cannot {action} member {member.member_id} in terminal status "
                f"{member.status}"
            )

    def _require_fields(self, data: Dict[str, Any], *names: str) -> None:
        for name in names:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise WorkflowValidationError(f"{name} is required")

    def _phase_for_status(self, status: str) -> Optional[WorkflowPhase]:
        """Phase of the transition leaving ``status``, if one is configured."""
        row = self.transitions.get_transition(self.workflow_type, status)
        return WorkflowPhase.parse(row.phase) if row else None

    def _notify(
        self,
        kind: NotificationKind,
        member: Member,
        extra_params: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.notifications.send(kind, member, extra_params or {})

    def _with_conflict_retry(
        self, member_id: str, operation: Callable[[], T]
    ) -> T:
        """Re-run a read-validate-write operation after losing a version race."""
        attempts = int(self.config["CONFLICT_RETRIES"])
        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except ConcurrentUpdateError:
                if attempt == attempts:
                    raise
                logger.warning(
                    f"Retrying {member_id} after concurrent update "
                    f"(attempt {attempt}/{attempts})"
                )
        raise ConcurrentUpdateError(member_id)
