"""API Blueprint - RESTful endpoints over the member onboarding workflow.

Every workflow endpoint validates the payload shape with pydantic, delegates to
the orchestrator and returns the serialised ``WorkflowResult``.
"""

from typing import Any, Dict, Type

from flask import Blueprint, current_app, jsonify, request
from pydantic import BaseModel, ValidationError

from member_onboarding.exceptions import ErrorKind
from member_onboarding.models import db
from member_onboarding.repositories import (
    MemberRepository,
    WorkflowTransitionRepository,
)
from member_onboarding.schemas import (
    CreateMemberRequest,
    PaymentLinkRequest,
    PaymentStatusRequest,
    StatusActionRequest,
    UpdateMemberRequest,
)
from member_onboarding.utils import utcnow
from member_onboarding.workflows import (
    WorkflowOrchestrator,
    WorkflowResult,
    build_orchestrator,
)

api_bp = Blueprint("api", __name__, url_prefix="/api")

ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.VALIDATION_FAILURE: 400,
    ErrorKind.EXTERNAL_DEPENDENCY: 502,
    ErrorKind.PERSISTENCE: 500,
    ErrorKind.HANDLER_REJECTED: 500,
}


# ============================================================================
# Helper Functions
# ============================================================================


def get_orchestrator() -> WorkflowOrchestrator:
    """Build a request-scoped orchestrator with the app's collaborators."""
    return build_orchestrator(
        db,
        current_app.config["APP_SETTINGS"],
        notification_service=current_app.config.get("NOTIFICATION_SERVICE"),
        identity_provider=current_app.config.get("IDENTITY_PROVIDER"),
    )


def parse_payload(schema: Type[BaseModel]) -> Dict[str, Any]:
    """Validate the JSON body and return it as a snake_case dict.

    Raises:
        ValidationError: If the body does not match the schema
    """
    payload = request.get_json(silent=True) or {}
    return schema.model_validate(payload).model_dump(exclude_unset=True)


def result_response(result: WorkflowResult, success_status: int = 200):
    """Render a workflow result with the HTTP status for its outcome."""
    if result.success:
        return jsonify(result.to_dict()), success_status
    status = ERROR_STATUS_CODES.get(result.error_kind, 500)
    return jsonify(result.to_dict()), status


def validation_error_response(error: ValidationError):
    return (
        jsonify(
            {
                "error": "Validation failed",
                "details": error.errors(include_url=False, include_context=False),
            }
        ),
        400,
    )


# ============================================================================
# Health & Lookup Endpoints
# ============================================================================


@api_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "timestamp": utcnow().isoformat()})


@api_bp.route("/workflow-transitions", methods=["GET"])
def list_workflow_transitions():
    """List the active approval ladder."""
    settings = current_app.config["APP_SETTINGS"]
    rows = WorkflowTransitionRepository(db).get_workflow_transitions(
        settings.workflow_config["WORKFLOW_TYPE"]
    )
    return jsonify({"transitions": [row.to_dict() for row in rows]})


@api_bp.route("/members/<member_id>", methods=["GET"])
def get_member(member_id: str):
    """Get a member by its public identifier."""
    member = MemberRepository(db).get_by_member_id(member_id)
    if member is None:
        return jsonify({"error": f"Member with ID {member_id} not found"}), 404
    return jsonify({"data": member.to_dict()})


# ============================================================================
# Application Phases
# ============================================================================


@api_bp.route("/members", methods=["POST"])
def create_member():
    """Phase 1: submit a new membership application."""
    try:
        data = parse_payload(CreateMemberRequest)
    except ValidationError as e:
        return validation_error_response(e)
    return result_response(get_orchestrator().execute_phase1(data), 201)


@api_bp.route("/members/<member_id>/complete", methods=["PATCH"])
def complete_application(member_id: str):
    """Phase 2: complete the application and submit it for review."""
    try:
        data = parse_payload(UpdateMemberRequest)
    except ValidationError as e:
        return validation_error_response(e)
    return result_response(get_orchestrator().execute_phase2(member_id, data))


@api_bp.route("/members/<member_id>", methods=["PATCH"])
def update_member(member_id: str):
    """Phase 3: update an active member's profile and users."""
    try:
        data = parse_payload(UpdateMemberRequest)
    except ValidationError as e:
        return validation_error_response(e)
    return result_response(get_orchestrator().execute_phase3(member_id, data))


# ============================================================================
# Approval & Rejection
# ============================================================================


@api_bp.route("/members/<member_id>/approve", methods=["POST"])
def approve_member(member_id: str):
    """Approve the member at its current approval stage."""
    try:
        data = parse_payload(StatusActionRequest)
    except ValidationError as e:
        return validation_error_response(e)
    return result_response(get_orchestrator().execute_approval(member_id, data))


@api_bp.route("/members/<member_id>/reject", methods=["POST"])
def reject_member(member_id: str):
    """Reject the member, or record committee feedback."""
    try:
        data = parse_payload(StatusActionRequest)
    except ValidationError as e:
        return validation_error_response(e)
    return result_response(get_orchestrator().execute_rejection(member_id, data))


# ============================================================================
# Payment
# ============================================================================


@api_bp.route("/members/<member_id>/payment-link", methods=["PUT"])
def add_payment_link(member_id: str):
    """Attach a payment link to an approved member."""
    try:
        data = parse_payload(PaymentLinkRequest)
    except ValidationError as e:
        return validation_error_response(e)
    return result_response(get_orchestrator().add_payment_link(member_id, data))


@api_bp.route("/members/<member_id>/payment/complete", methods=["POST"])
def complete_payment(member_id: str):
    """Mark the payment as received and activate the membership."""
    try:
        data = parse_payload(PaymentStatusRequest)
    except ValidationError as e:
        return validation_error_response(e)
    return result_response(get_orchestrator().complete_payment(member_id, data))


@api_bp.route("/members/<member_id>/payment/reset", methods=["POST"])
def reset_payment(member_id: str):
    """Clear the payment link and set a new payment status."""
    try:
        data = parse_payload(PaymentStatusRequest)
    except ValidationError as e:
        return validation_error_response(e)
    return result_response(get_orchestrator().reset_payment(member_id, data))


@api_bp.route("/members/<member_id>/identity/retry", methods=["POST"])
def retry_identity_provisioning(member_id: str):
    """Retry creating the primary user's account for an active member."""
    return result_response(get_orchestrator().retry_identity_provisioning(member_id))
