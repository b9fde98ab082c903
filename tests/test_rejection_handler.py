import pytest

from member_onboarding.exceptions import ErrorKind
from member_onboarding.models import WorkflowTransition, db
from member_onboarding.repositories import MemberRepository, WorkflowTransitionRepository
from member_onboarding.services.notification_service import NotificationKind
from member_onboarding.workflows import WorkflowContext, WorkflowPhase
from member_onboarding.workflows.handlers import RejectionHandler


def reject(email, comments="Incomplete trade licence"):
    data = {"action_by": email.split("@")[0].title(), "action_by_email": email}
    if comments is not None:
        data["comments"] = comments
    return data


class UntouchableRepository:
    def __getattr__(self, name):
        raise AssertionError(f"storage accessed: {name}")


@pytest.mark.parametrize("comments", [None, "", "   "])
def test_comments_required_before_storage(settings, notifications, comments):
    handler = RejectionHandler(
        UntouchableRepository(),
        UntouchableRepository(),
        notifications,
        settings.workflow_config,
    )

    result = handler.handle(
        WorkflowContext(
            phase=WorkflowPhase.REJECTION,
            data=reject("a@board.test", comments),
            entity_id="MEM-00001",
        )
    )

    assert not result.success
    assert result.error_kind == ErrorKind.VALIDATION_FAILURE
    assert result.error == "Comments are required for rejection"


def test_committee_rejection_is_feedback(orchestrator, make_member, load_member, notifications):
    member_id = make_member()

    result = orchestrator.execute_rejection(member_id, reject("a@board.test"))

    member = load_member(member_id)
    assert result.success
    assert member.status == "pendingCommitteeApproval"
    assert len(member.rejection_history) == 1
    entry = member.rejection_history[0]
    assert (entry.rejection_stage, entry.order, entry.reason) == (
        "committee",
        1,
        "Incomplete trade licence",
    )
    assert notifications.sent == []


def test_committee_feedback_reaching_quorum_advances(
    orchestrator, make_member, load_member, notifications
):
    member_id = make_member(approvals=(("committee", 1, "a@board.test"),))

    result = orchestrator.execute_rejection(member_id, reject("b@board.test"))

    assert result.success
    assert result.next_phase == WorkflowPhase.CEO_APPROVAL
    assert load_member(member_id).status == "pendingCEOApproval"
    assert notifications.kinds() == [NotificationKind.APPROVAL]


def test_committee_member_cannot_reject_after_approving(orchestrator, make_member):
    member_id = make_member(approvals=(("committee", 1, "a@board.test"),))

    result = orchestrator.execute_rejection(member_id, reject("a@board.test"))

    assert result.error_kind == ErrorKind.INVALID_TRANSITION
    assert result.error == (
        "You have already provided feedback for this application at the committee stage"
    )


def test_committee_quorum_without_transition_fails_closed(
    make_orchestrator, make_member, load_member
):
    row = WorkflowTransition.query.filter_by(
        current_status="pendingCommitteeApproval"
    ).one()
    row.is_active = False
    db.session.commit()
    member_id = make_member()

    result = make_orchestrator(required_committee_actions=1).execute_rejection(
        member_id, reject("a@board.test")
    )

    assert result.error_kind == ErrorKind.INVALID_TRANSITION
    member = load_member(member_id)
    assert member.status == "pendingCommitteeApproval"
    assert member.rejection_history == []


def test_ceo_rejection_rejects_member(orchestrator, make_member, load_member, notifications):
    member_id = make_member(
        "pendingCEOApproval",
        approvals=(("committee", 1, "a@board.test"), ("committee", 1, "b@board.test")),
    )

    result = orchestrator.execute_rejection(
        member_id, reject("ceo@board.test", "Sanctions screening failed")
    )

    member = load_member(member_id)
    assert result.success
    assert member.status == "rejected"
    assert member.rejection_history[0].rejection_stage == "ceo"
    assert member.rejection_history[0].order == 2
    assert notifications.sent == [
        (
            NotificationKind.REJECTION,
            member_id,
            {"rejection_reason": "Sanctions screening failed"},
        )
    ]


def test_ceo_rejection_cannot_skip_committee(orchestrator, make_member, load_member):
    member_id = make_member("pendingCEOApproval")

    result = orchestrator.execute_rejection(member_id, reject("ceo@board.test"))

    assert result.error_kind == ErrorKind.INVALID_TRANSITION
    assert result.error == (
        "Invalid approval order: committee stage (order 1) has not been completed yet"
    )
    assert load_member(member_id).status == "pendingCEOApproval"


@pytest.mark.parametrize("status", ["pendingFormSubmission", "approvedPendingPayment"])
def test_admin_rejection(status, orchestrator, make_member, load_member):
    member_id = make_member(status)

    result = orchestrator.execute_rejection(member_id, reject("admin@membership.test"))

    member = load_member(member_id)
    assert result.success
    assert member.status == "rejected"
    assert member.rejection_history[0].rejection_stage == "admin"
    assert member.rejection_history[0].order == 0


@pytest.mark.parametrize("status", ["rejected", "active"])
def test_terminal_states_refuse_rejection(status, orchestrator, make_member):
    result = orchestrator.execute_rejection(make_member(status), reject("a@board.test"))

    assert result.error_kind == ErrorKind.INVALID_TRANSITION


def test_unmapped_status_fails_closed(app, settings, notifications, make_member):
    handler = RejectionHandler(
        MemberRepository(db),
        WorkflowTransitionRepository(db),
        notifications,
        settings.workflow_config,
        stage_map={"pendingCommitteeApproval": {"stage": "committee", "order": 1}},
    )
    member_id = make_member("pendingCEOApproval")

    result = handler.handle(
        WorkflowContext(
            phase=WorkflowPhase.REJECTION,
            data=reject("ceo@board.test"),
            entity_id=member_id,
        )
    )

    assert result.error_kind == ErrorKind.INVALID_TRANSITION
    assert result.error == "No rejection stage configured for status pendingCEOApproval"


def test_unknown_member(orchestrator):
    result = orchestrator.execute_rejection("MEM-404", reject("a@board.test"))

    assert result.error_kind == ErrorKind.NOT_FOUND
    assert result.error == "Member with ID MEM-404 not found"
