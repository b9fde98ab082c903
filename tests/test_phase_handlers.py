import pytest

from member_onboarding.exceptions import ErrorKind
from member_onboarding.services.notification_service import NotificationKind
from member_onboarding.utils import utcnow
from member_onboarding.workflows import WorkflowPhase

APPLICATION = {
    "category": "Free Zone",
    "tier": "Gold",
    "organisation_info": {
        "companyName": "Acme Trading",
        "address": {"city": "Abu Dhabi", "country": "UAE"},
    },
    "member_consent": {"termsAccepted": True},
    "users": [
        {"email": "jane.doe@acme.test", "first_name": "Jane", "last_name": "Doe"},
        {"email": "ops@acme.test", "first_name": "Omar"},
    ],
}


class TestPhase1:
    def test_creates_member_in_initial_status(
        self, orchestrator, load_member, notifications
    ):
        result = orchestrator.execute_phase1(
            dict(APPLICATION, status="active", payment_status="paid")
        )

        assert result.success
        assert result.next_phase == WorkflowPhase.PHASE_2_COMPLETION
        member = load_member(result.entity.member_id)
        assert member.member_id == "MEM-00001"
        assert member.application_number == f"APP-{utcnow().year}-00001"
        assert member.status == "pendingFormSubmission"
        assert member.payment_status == "pending"
        assert member.organisation_info["address"]["city"] == "Abu Dhabi"
        assert [u.user_type for u in member.users] == ["Primary", "Secondary"]

        kind, member_id, params = notifications.sent[0]
        assert kind == NotificationKind.PHASE1_CONFIRMATION
        assert member_id == "MEM-00001"
        assert params["phase2_url"] == (
            f"https://members.test/membership/application/{member.application_number}"
        )

    def test_identifiers_are_sequential(self, orchestrator):
        first = orchestrator.execute_phase1(APPLICATION)
        second = orchestrator.execute_phase1(APPLICATION)

        assert first.entity.member_id == "MEM-00001"
        assert second.entity.member_id == "MEM-00002"
        assert second.entity.application_number.endswith("-00002")

    def test_explicit_primary_user_is_kept(self, orchestrator):
        users = [
            {"email": "ops@acme.test"},
            {"email": "ceo@acme.test", "user_type": "Primary"},
        ]
        result = orchestrator.execute_phase1(dict(APPLICATION, users=users))

        assert result.entity.primary_user.email == "ceo@acme.test"

    def test_user_without_email_is_rejected(self, orchestrator, members):
        result = orchestrator.execute_phase1(
            dict(APPLICATION, users=[{"first_name": "Nameless"}])
        )

        assert result.error_kind == ErrorKind.VALIDATION_FAILURE
        assert members.query().count() == 0

    def test_two_primary_users_are_rejected(self, orchestrator, members):
        users = [
            {"email": "jane.doe@acme.test", "user_type": "Primary"},
            {"email": "ceo@acme.test", "user_type": "Primary"},
        ]
        result = orchestrator.execute_phase1(dict(APPLICATION, users=users))

        assert result.error_kind == ErrorKind.VALIDATION_FAILURE
        assert "Primary" in result.error
        assert members.query().count() == 0


class TestPhase2:
    def test_deep_merges_and_submits_for_review(
        self, orchestrator, make_member, load_member, notifications
    ):
        member_id = make_member("pendingFormSubmission")

        result = orchestrator.execute_phase2(
            member_id,
            {
                "tier": "Platinum",
                "organisation_info": {"address": {"city": "Dubai", "country": None}},
                "additional_info": {"employees": 120},
                "users": [{"email": "ignored@acme.test"}],
            },
        )

        member = load_member(member_id)
        assert result.success
        assert result.next_phase == WorkflowPhase.COMMITTEE_APPROVAL
        assert member.status == "pendingCommitteeApproval"
        assert member.tier == "Platinum"
        assert member.organisation_info == {
            "companyName": "Acme Trading",
            "address": {"city": "Dubai", "country": "UAE"},
        }
        assert member.additional_info == {"employees": 120}
        assert member.member_consent == {"termsAccepted": True}
        assert [u.email for u in member.users] == ["jane.doe@acme.test"]
        assert notifications.kinds() == [
            NotificationKind.PHASE2_CONFIRMATION,
            NotificationKind.PHASE2_ADMIN_NOTIFICATION,
        ]

    @pytest.mark.parametrize(
        "status", ["pendingCommitteeApproval", "approvedPendingPayment", "rejected", "active"]
    )
    def test_refused_outside_form_submission(
        self, status, orchestrator, make_member, load_member, notifications
    ):
        member_id = make_member(status)

        result = orchestrator.execute_phase2(
            member_id, {"organisation_info": {"address": {"city": "Dubai"}}}
        )

        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        member = load_member(member_id)
        assert member.status == status
        assert member.organisation_info["address"]["city"] == "Abu Dhabi"
        assert notifications.sent == []

    def test_unknown_member(self, orchestrator):
        result = orchestrator.execute_phase2("MEM-404", {})

        assert result.error_kind == ErrorKind.NOT_FOUND


class TestPhase3:
    def test_updates_active_member(self, orchestrator, make_member, load_member):
        member_id = make_member("active")
        primary_id = load_member(member_id).users[0].id

        result = orchestrator.execute_phase3(
            member_id,
            {
                "organisation_info": {"website": "https://acme.test"},
                "users": [
                    {"id": primary_id, "designation": "Director", "first_name": None},
                    {"email": "new.hire@acme.test", "first_name": "Nia"},
                ],
            },
        )

        member = load_member(member_id)
        assert result.success
        assert member.status == "active"
        assert member.organisation_info["website"] == "https://acme.test"
        assert member.organisation_info["address"]["country"] == "UAE"
        primary, added = member.users
        assert primary.designation == "Director"
        assert primary.first_name == "Jane"
        assert added.email == "new.hire@acme.test"
        assert added.user_type == "Secondary"

    def test_unknown_user_id_adds_user(self, orchestrator, make_member, load_member):
        member_id = make_member("active")

        orchestrator.execute_phase3(
            member_id, {"users": [{"id": 9999, "email": "other@acme.test"}]}
        )

        assert len(load_member(member_id).users) == 2

    def test_new_user_needs_email(self, orchestrator, make_member, load_member):
        member_id = make_member("active")

        result = orchestrator.execute_phase3(
            member_id, {"tier": "Silver", "users": [{"first_name": "Nameless"}]}
        )

        assert result.error_kind == ErrorKind.VALIDATION_FAILURE
        assert load_member(member_id).tier is None

    def test_second_primary_user_is_rejected(
        self, orchestrator, make_member, load_member
    ):
        member_id = make_member("active")

        result = orchestrator.execute_phase3(
            member_id,
            {
                "tier": "Silver",
                "users": [{"email": "ceo@acme.test", "user_type": "Primary"}],
            },
        )

        assert result.error_kind == ErrorKind.VALIDATION_FAILURE
        member = load_member(member_id)
        assert member.tier is None
        assert [u.email for u in member.users] == ["jane.doe@acme.test"]

    def test_primary_role_can_be_handed_over(
        self, orchestrator, make_member, load_member
    ):
        member_id = make_member("active")
        jane_id = load_member(member_id).users[0].id

        result = orchestrator.execute_phase3(
            member_id,
            {
                "users": [
                    {"id": jane_id, "user_type": "Secondary"},
                    {"email": "ceo@acme.test", "user_type": "Primary"},
                ]
            },
        )

        assert result.success
        assert load_member(member_id).primary_user.email == "ceo@acme.test"

    @pytest.mark.parametrize(
        "status", ["pendingFormSubmission", "approvedPendingPayment", "rejected"]
    )
    def test_requires_active_status(self, status, orchestrator, make_member, load_member):
        member_id = make_member(status)

        result = orchestrator.execute_phase3(member_id, {"tier": "Silver"})

        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        member = load_member(member_id)
        assert member.tier is None
        assert member.status == status
