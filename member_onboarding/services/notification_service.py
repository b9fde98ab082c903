"""Notification service - workflow emails sent after committed transitions."""

from __future__ import annotations

import enum
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional

from member_onboarding.core import get_settings
from member_onboarding.core.settings import AppSettings
from member_onboarding.exceptions import NotificationError
from member_onboarding.models import Member

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    """Workflow notification kinds."""

    PHASE1_CONFIRMATION = "MEMBER_PHASE1_CONFIRMATION"
    PHASE2_CONFIRMATION = "MEMBER_PHASE2_CONFIRMATION"
    PHASE2_ADMIN_NOTIFICATION = "MEMBER_PHASE2_ADMIN_NOTIFICATION"
    APPROVAL = "MEMBER_APPROVAL"
    REJECTION = "MEMBER_REJECTION"
    PAYMENT_LINK = "MEMBER_PAYMENT_LINK"
    WELCOME = "MEMBER_WELCOME"


@dataclass(frozen=True)
class NotificationTemplate:
    subject: str
    body: str
    to_admin: bool = False


TEMPLATES: Dict[NotificationKind, NotificationTemplate] = {
    NotificationKind.PHASE1_CONFIRMATION: NotificationTemplate(
        subject="[Membership] Application {application_number} received",
        body="""
Dear {first_name},

Thank you for applying for membership on behalf of {company_name}.

Application Number: {application_number}

Please complete the remaining details of your application here:
{phase2_url}
""",
    ),
    NotificationKind.PHASE2_CONFIRMATION: NotificationTemplate(
        subject="[Membership] Application {application_number} submitted",
        body="""
Dear {first_name},

Your membership application for {company_name} is complete and has been
submitted for committee review.

Application Number: {application_number}
""",
    ),
    NotificationKind.PHASE2_ADMIN_NOTIFICATION: NotificationTemplate(
        subject="[Membership] Review required: {application_number}",
        body="""
A membership application is ready for committee review.

Application Number: {application_number}
Member ID: {member_id}
Company: {company_name}
Category: {category}
""",
        to_admin=True,
    ),
    NotificationKind.APPROVAL: NotificationTemplate(
        subject="[Membership] Application {application_number} progressed",
        body="""
Dear {first_name},

Your membership application has passed the {approval_stage} review.

Application Number: {application_number}
Current Status: {status}
""",
    ),
    NotificationKind.REJECTION: NotificationTemplate(
        subject="[Membership] Application {application_number} rejected",
        body="""
Dear {first_name},

We regret to inform you that your membership application has been rejected.

Application Number: {application_number}

Reason:
{rejection_reason}
""",
    ),
    NotificationKind.PAYMENT_LINK: NotificationTemplate(
        subject="[Membership] Payment details for {application_number}",
        body="""
Dear {first_name},

Your membership application has been approved. Please complete the payment
using the link below:

{payment_link}

Bank transfer details:
Account Holder: {account_holder}
Account Number: {account_number}
IBAN: {iban}
""",
    ),
    NotificationKind.WELCOME: NotificationTemplate(
        subject="[Membership] Welcome, {company_name}",
        body="""
Dear {first_name} {last_name},

Your membership is now active.

Member ID: {member_id}
Username: {user_email}
Temporary Password: {temporary_password}

Sign in at {frontend_base_url} and change your password on first login.
""",
    ),
}


class _DefaultParams(dict):
    def __missing__(self, key: str) -> str:
        return ""


class WorkflowNotificationService:
    """Best-effort notifications for the onboarding workflow.

    ``send`` never raises: delivery problems are logged and the caller's
    already-committed transition stands.
    """

    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        """Initialize notification service.

        Args:
            settings: Application settings (defaults to the cached settings)
        """
        self.settings = settings or get_settings()

    def send(
        self,
        kind: NotificationKind,
        member: Member,
        extra_params: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Render and deliver one workflow notification.

        Args:
            kind: Notification kind
            member: Member the notification is about
            extra_params: Template parameters on top of the member defaults
        """
        try:
            template = TEMPLATES[kind]
            recipient = self._resolve_recipient(template, member)
            if not recipient:
                logger.warning(
                    f"No primary user found for member {member.member_id} - "
                    f"{kind.value} not sent"
                )
                return

            params = _DefaultParams(self._build_base_params(member))
            params.update(self._kind_params(kind))
            params.update(extra_params or {})

            subject = template.subject.format_map(params)
            body = template.body.format_map(params)
            self.send_email([recipient], subject, body)
            logger.info(f"{kind.value} sent to {recipient}")
        except Exception as e:
            logger.error(f"Failed to send {kind.value} for {member.member_id}: {e}")

    def send_email(self, to: List[str], subject: str, body: str) -> None:
        """Deliver a plain text email through SMTP, or log it when unconfigured.

        Raises:
            NotificationError: If the SMTP transport fails
        """
        if not to:
            raise NotificationError("No recipients specified for email")

        if self.settings.email.smtp_server:
            self._send_via_smtp(to, subject, body)
            return

        logger.info(
            f"Email notification (not sent - no email service configured):\n"
            f"To: {', '.join(to)}\n"
            f"Subject: {subject}\n"
            f"Body: {body[:200]}..."
        )

    def build_phase2_url(self, application_number: str) -> str:
        """Link to the second part of the application form."""
        base = self.settings.frontend_base_url.rstrip("/")
        return f"{base}/membership/application/{application_number}"

    def _resolve_recipient(
        self, template: NotificationTemplate, member: Member
    ) -> Optional[str]:
        if template.to_admin:
            return self.settings.admin_email
        primary = member.primary_user
        return primary.email if primary else None

    def _build_base_params(self, member: Member) -> Dict[str, Any]:
        primary = member.primary_user
        organisation = member.organisation_info or {}
        return {
            "application_number": member.application_number or "",
            "member_id": member.member_id or "",
            "company_name": organisation.get("companyName")
            or organisation.get("company_name")
            or "your organization",
            "category": member.category or "",
            "status": member.status,
            "first_name": (primary.first_name if primary else None) or "Applicant",
            "last_name": (primary.last_name if primary else None) or "",
            "user_email": primary.email if primary else "",
        }

    def _kind_params(self, kind: NotificationKind) -> Dict[str, Any]:
        if kind == NotificationKind.PAYMENT_LINK:
            return {
                "account_number": self.settings.bank_account_number or "",
                "iban": self.settings.bank_iban or "",
                "account_holder": self.settings.bank_account_holder or "",
            }
        if kind == NotificationKind.WELCOME:
            return {"frontend_base_url": self.settings.frontend_base_url}
        return {}

    def _send_via_smtp(self, to: List[str], subject: str, body: str) -> None:
        """Send email via SMTP.

        Args:
            to: Recipient emails
            subject: Email subject
            body: Plain text body
        """
        email = self.settings.email
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = email.sender
        msg["To"] = ", ".join(to)
        msg.attach(MIMEText(body, "plain"))

        try:
            with smtplib.SMTP(email.smtp_server, email.smtp_port) as server:
                if email.use_tls:
                    server.starttls()
                if email.username and email.password:
                    server.login(email.username, email.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"Failed to send email via SMTP: {exc}") from exc

        logger.info(f"SMTP email sent to {', '.join(to)}: {subject}")
