"""Shared fixtures: a Flask app on a temporary SQLite file with recording fakes."""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional, Tuple

import pytest

from member_onboarding.core.settings import (
    AppSettings,
    EmailSettings,
    IdentityProviderSettings,
)
from member_onboarding.exceptions import IdentityProvisioningError
from member_onboarding.main import create_app
from member_onboarding.models import (
    ApprovalHistoryEntry,
    Member,
    MemberUser,
    RejectionHistoryEntry,
    WorkflowTransition,
    db,
)
from member_onboarding.repositories import MemberRepository
from member_onboarding.seeds import seed_transitions
from member_onboarding.services.identity_service import IdentityAccount
from member_onboarding.services.notification_service import (
    NotificationKind,
    WorkflowNotificationService,
)
from member_onboarding.workflows import build_orchestrator

PRIMARY_USER = {
    "email": "jane.doe@acme.test",
    "first_name": "Jane",
    "last_name": "Doe",
    "user_type": "Primary",
}


class RecordingNotifications(WorkflowNotificationService):
    """Notification service that records instead of delivering."""

    def __init__(self, settings: AppSettings) -> None:
        super().__init__(settings)
        self.sent: List[Tuple[NotificationKind, str, Dict[str, Any]]] = []

    def send(self, kind, member, extra_params=None) -> None:
        self.sent.append((kind, member.member_id, dict(extra_params or {})))

    def kinds(self) -> List[NotificationKind]:
        return [kind for kind, _, _ in self.sent]


class FakeIdentityProvider:
    """Identity provider that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, str]] = []
        self.fail = False

    def create_user(self, email: str, first_name: str, last_name: str) -> IdentityAccount:
        self.calls.append(
            {"email": email, "first_name": first_name, "last_name": last_name}
        )
        if self.fail:
            raise IdentityProvisioningError("Graph API unavailable")
        return IdentityAccount(
            external_id=f"entra-{len(self.calls)}", temporary_password="Temp#Pass123"
        )


@pytest.fixture
def settings(tmp_path) -> AppSettings:
    return AppSettings(
        sqlalchemy_database_uri_override=f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
        required_committee_actions=2,
        admin_email="admin@membership.test",
        frontend_base_url="https://members.test",
        email=EmailSettings(),
        identity=IdentityProviderSettings(),
    )


@pytest.fixture
def notifications(settings) -> RecordingNotifications:
    return RecordingNotifications(settings)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def app(settings, notifications, identity):
    app = create_app(settings)
    app.config.update(
        TESTING=True,
        NOTIFICATION_SERVICE=notifications,
        IDENTITY_PROVIDER=identity,
    )
    with app.app_context():
        db.create_all()
        seed_transitions(db)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def orchestrator(app, settings, notifications, identity):
    return build_orchestrator(
        db, settings, notification_service=notifications, identity_provider=identity
    )


@pytest.fixture
def make_orchestrator(app, settings, notifications, identity):
    """Build an orchestrator with overridden settings fields."""

    def _make(**overrides: Any):
        return build_orchestrator(
            db,
            settings.model_copy(update=overrides),
            notification_service=notifications,
            identity_provider=identity,
        )

    return _make


@pytest.fixture
def members(app) -> MemberRepository:
    return MemberRepository(db)


@pytest.fixture
def load_member(members):
    def _load(member_id: str) -> Optional[Member]:
        return members.reload(member_id)

    return _load


@pytest.fixture
def make_member(app):
    """Insert a member directly, bypassing the workflow."""
    counter = itertools.count(1)

    def _make(
        status: str = "pendingCommitteeApproval",
        users: Optional[List[Dict[str, Any]]] = None,
        approvals: Tuple[Tuple[str, int, str], ...] = (),
        rejections: Tuple[Tuple[str, int, str], ...] = (),
        **fields: Any,
    ) -> str:
        number = next(counter)
        values: Dict[str, Any] = {
            "member_id": f"MEM-9{number:04d}",
            "application_number": f"APP-2026-9{number:04d}",
            "status": status,
            "category": "Free Zone",
            "organisation_info": {
                "companyName": "Acme Trading",
                "address": {"city": "Abu Dhabi", "country": "UAE"},
            },
            "member_consent": {"termsAccepted": True},
            "additional_info": {},
            "payment_status": "pending",
        }
        values.update(fields)
        member = Member(**values)
        for user in users if users is not None else [PRIMARY_USER]:
            member.users.append(MemberUser(**user))
        for stage, order, email in approvals:
            member.approval_history.append(
                ApprovalHistoryEntry(
                    approval_stage=stage,
                    order=order,
                    approved_by=email.split("@")[0],
                    approver_email=email,
                )
            )
        for stage, order, email in rejections:
            member.rejection_history.append(
                RejectionHistoryEntry(
                    rejection_stage=stage,
                    order=order,
                    rejected_by=email.split("@")[0],
                    rejector_email=email,
                    reason="Needs more detail",
                )
            )
        db.session.add(member)
        db.session.commit()
        return values["member_id"]

    return _make


@pytest.fixture
def three_stage_ladder(app):
    """Committee (1) → board (2) → CEO (3)."""
    committee = WorkflowTransition.query.filter_by(
        current_status="pendingCommitteeApproval"
    ).one()
    committee.next_status = "pendingBoardApproval"
    ceo = WorkflowTransition.query.filter_by(current_status="pendingCEOApproval").one()
    ceo.order = 3
    db.session.add(
        WorkflowTransition(
            workflow_type="MEMBER_ONBOARDING",
            current_status="pendingBoardApproval",
            next_status="pendingCEOApproval",
            phase="BOARD_APPROVAL",
            approval_stage="board",
            order=2,
        )
    )
    db.session.commit()

