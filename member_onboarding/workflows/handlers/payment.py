"""Payment handler - payment link, activation, reset and account provisioning."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from member_onboarding.exceptions import (
    ErrorKind,
    ExternalDependencyError,
    IdentityProvisioningError,
    InvalidTransitionError,
    MemberNotFoundError,
    PersistenceError,
    WorkflowValidationError,
)
from member_onboarding.models import Member, MemberUser, PaymentStatus
from member_onboarding.repositories import (
    MemberRepository,
    WorkflowTransitionRepository,
)
from member_onboarding.services.identity_service import IdentityProvider
from member_onboarding.services.notification_service import (
    NotificationKind,
    WorkflowNotificationService,
)
from member_onboarding.utils import add_years, utcnow
from member_onboarding.workflows.base import (
    PAYMENT_PHASES,
    WorkflowContext,
    WorkflowPhase,
    WorkflowResult,
)
from member_onboarding.workflows.handlers.base import BaseWorkflowHandler

logger = logging.getLogger(__name__)


class PaymentHandler(BaseWorkflowHandler):
    """Handles every payment phase and identity provisioning for activation."""

    phases = PAYMENT_PHASES

    def __init__(
        self,
        members: MemberRepository,
        transitions: WorkflowTransitionRepository,
        notifications: WorkflowNotificationService,
        config: Mapping[str, Any],
        identity_provider: IdentityProvider,
    ) -> None:
        super().__init__(members, transitions, notifications, config)
        self.identity_provider = identity_provider

    def _execute(self, context: WorkflowContext) -> WorkflowResult:
        if context.phase == WorkflowPhase.PAYMENT_LINK:
            return self._add_payment_link(context)
        if context.phase == WorkflowPhase.PAYMENT_COMPLETION:
            return self._complete_payment(context)
        if context.phase == WorkflowPhase.PAYMENT_RESET:
            return self._reset_payment(context)
        return self._retry_identity_provisioning(context)

    def _require_payment_pending(self, member: Member, action: str) -> None:
        pending = self.config["PAYMENT_PENDING_STATUS"]
        if member.status != pending:
            raise InvalidTransitionError(
                f"Cannot {action} for member {member.member_id}: status is "
                f"{member.status}, expected {pending}"
            )

    def _add_payment_link(self, context: WorkflowContext) -> WorkflowResult:
        self._require_fields(context.data, "payment_link")
        member = self._load_member(context)
        self._require_payment_pending(member, "add a payment link")

        member.payment_link = context.data["payment_link"]
        member.payment_status = context.data.get("payment_status") or member.payment_status
        self.members.save(member)
        logger.info(f"Payment link added for member {member.member_id}")

        self._notify(
            NotificationKind.PAYMENT_LINK,
            member,
            {"payment_link": member.payment_link},
        )
        return WorkflowResult.ok(
            context.phase,
            member,
            "Payment link added",
            next_phase=WorkflowPhase.PAYMENT_COMPLETION,
        )

    def _complete_payment(self, context: WorkflowContext) -> WorkflowResult:
        if context.data.get("payment_status") != PaymentStatus.PAID.value:
            raise WorkflowValidationError(
                "Payment status must be 'paid' to complete the payment"
            )
        member = self._load_member(context)
        self._require_payment_pending(member, "complete payment")
        primary = self._require_primary_user(member)

        now = utcnow()
        member.status = self.config["ACTIVE_STATUS"]
        member.payment_status = PaymentStatus.PAID.value
        member.valid_until = add_years(now, int(self.config["MEMBERSHIP_VALIDITY_YEARS"]))
        member.allowed_user_count = int(self.config["ALLOWED_USER_COUNT"])
        member.approval_date = now
        self.members.save(member)
        logger.info(
            f"Member {member.member_id} activated until {member.valid_until.date()}"
        )

        # The activation is committed; nothing below may fail it
        try:
            member, record_error = self._provision(member, primary)
        except IdentityProvisioningError as exc:
            result = WorkflowResult.ok(
                context.phase,
                member,
                "Payment completed and membership activated; account provisioning "
                "failed and can be retried",
                next_phase=WorkflowPhase.IDENTITY_PROVISIONING,
            )
            result.provisioning_error = str(exc)
            result.error_kind = ErrorKind.EXTERNAL_DEPENDENCY
            return result

        result = WorkflowResult.ok(
            context.phase,
            member,
            "Payment completed and membership activated",
            next_phase=WorkflowPhase.PHASE_3_UPDATE,
        )
        if record_error:
            result.provisioning_error = record_error
            result.error_kind = ErrorKind.PERSISTENCE
        return result

    def _reset_payment(self, context: WorkflowContext) -> WorkflowResult:
        self._require_fields(context.data, "payment_status")
        member = self._load_member(context)
        member.payment_link = None
        member.payment_status = context.data["payment_status"]
        self.members.save(member)
        logger.info(
            f"Payment reset for member {member.member_id} ({member.payment_status})"
        )
        return WorkflowResult.ok(context.phase, member, "Payment reset")

    def _retry_identity_provisioning(self, context: WorkflowContext) -> WorkflowResult:
        member = self._load_member(context)
        if member.status != self.config["ACTIVE_STATUS"]:
            raise InvalidTransitionError(
                f"Member {member.member_id} is not active (status: {member.status})"
            )
        if member.identity_external_id:
            raise InvalidTransitionError(
                f"Member {member.member_id} already has an identity account"
            )
        primary = self._require_primary_user(member)

        member, record_error = self._provision(member, primary)
        result = WorkflowResult.ok(
            context.phase,
            member,
            "Identity account provisioned",
            next_phase=WorkflowPhase.PHASE_3_UPDATE,
        )
        if record_error:
            result.provisioning_error = record_error
            result.error_kind = ErrorKind.PERSISTENCE
        return result

    def _require_primary_user(self, member: Member) -> MemberUser:
        primary = member.primary_user
        if (
            primary is None
            or not primary.email
            or not primary.first_name
            or not primary.last_name
        ):
            raise WorkflowValidationError(
                f"Member {member.member_id} needs a primary user with email, "
                f"first name and last name"
            )
        return primary

    def _provision(
        self, member: Member, primary: MemberUser
    ) -> Tuple[Member, Optional[str]]:
        """Create the primary user's account and send the welcome email.

        Once the provider returns, the account exists: the welcome email goes
        out even when the account id cannot be recorded on the member.

        Returns:
            The reloaded member, and an error message when the account id
            could not be recorded

        Raises:
            IdentityProvisioningError: If the provider could not create the account
        """
        member_id = member.member_id
        try:
            account = self.identity_provider.create_user(
                email=primary.email,
                first_name=primary.first_name,
                last_name=primary.last_name,
            )
        except ExternalDependencyError as exc:
            logger.warning(f"Identity provisioning failed for member {member_id}: {exc}")
            raise IdentityProvisioningError(str(exc)) from exc

        record_error = None
        try:
            member = self._record_identity(member_id, account.external_id)
            logger.info(f"Identity account provisioned for member {member_id}")
        except (PersistenceError, SQLAlchemyError) as exc:
            self.members.rollback()
            record_error = (
                f"Identity account {account.external_id} was created but could not "
                f"be recorded on member {member_id}: {exc}"
            )
            logger.error(record_error)

        self._notify(
            NotificationKind.WELCOME,
            member,
            {"temporary_password": account.temporary_password},
        )
        return member, record_error

    def _record_identity(self, member_id: str, external_id: str) -> Member:
        """Store the account id on a fresh copy of the member."""

        def record() -> Member:
            member = self.members.reload(member_id)
            if member is None:
                raise MemberNotFoundError(member_id)
            member.identity_external_id = external_id
            member.identity_provisioned_at = utcnow()
            self.members.save(member)
            return member

        return self._with_conflict_retry(member_id, record)
