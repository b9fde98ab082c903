APPLICATION = {
    "category": "Free Zone",
    "organisationInfo": {"companyName": "Acme", "address": {"city": "Abu Dhabi"}},
    "memberConsent": {"termsAccepted": True},
    "users": [
        {
            "email": "Jane.Doe@Acme.test",
            "firstName": "Jane",
            "lastName": "Doe",
            "userType": "Primary",
        }
    ],
}


def create(client):
    response = client.post("/api/members", json=APPLICATION)
    assert response.status_code == 201
    return response.get_json()["data"]["member_id"]


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_workflow_transitions(client):
    response = client.get("/api/workflow-transitions")

    rows = response.get_json()["transitions"]
    assert [(row["current_status"], row["order"]) for row in rows] == [
        ("pendingCommitteeApproval", 1),
        ("pendingCEOApproval", 2),
    ]


def test_create_member_accepts_camel_case(client):
    response = client.post("/api/members", json=APPLICATION)

    body = response.get_json()
    assert response.status_code == 201
    assert body["success"] is True
    assert body["phase"] == "PHASE_1_APPLICATION"
    assert body["data"]["status"] == "pendingFormSubmission"
    assert body["data"]["organisation_info"]["companyName"] == "Acme"
    assert body["data"]["users"][0]["email"] == "jane.doe@acme.test"


def test_create_member_rejects_bad_payload(client):
    response = client.post(
        "/api/members", json=dict(APPLICATION, users=[{"email": "not-an-email"}])
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "Validation failed"


def test_get_member(client):
    member_id = create(client)

    assert client.get(f"/api/members/{member_id}").status_code == 200
    assert client.get("/api/members/MEM-404").status_code == 404


def test_complete_then_approve(client):
    member_id = create(client)

    completed = client.patch(
        f"/api/members/{member_id}/complete",
        json={"organisationInfo": {"address": {"country": "UAE"}}},
    )
    assert completed.status_code == 200
    assert completed.get_json()["data"]["organisation_info"]["address"] == {
        "city": "Abu Dhabi",
        "country": "UAE",
    }

    approved = client.post(
        f"/api/members/{member_id}/approve",
        json={"actionBy": "Amal", "actionByEmail": "amal@board.test"},
    )
    body = approved.get_json()
    assert approved.status_code == 200
    assert body["data"]["status"] == "pendingCommitteeApproval"
    assert body["next_phase"] == "COMMITTEE_APPROVAL"


def test_error_kinds_map_to_status_codes(client):
    member_id = create(client)
    actor = {"actionBy": "Amal", "actionByEmail": "amal@board.test"}

    not_found = client.post("/api/members/MEM-404/approve", json=actor)
    assert not_found.status_code == 404
    assert not_found.get_json()["error_kind"] == "NOT_FOUND"

    wrong_state = client.post(f"/api/members/{member_id}/approve", json=actor)
    assert wrong_state.status_code == 409
    assert wrong_state.get_json()["error_kind"] == "INVALID_TRANSITION"

    no_comments = client.post(f"/api/members/{member_id}/reject", json=actor)
    assert no_comments.status_code == 400
    assert no_comments.get_json()["error_kind"] == "VALIDATION_FAILURE"

    missing_actor = client.post(f"/api/members/{member_id}/approve", json={})
    assert missing_actor.status_code == 400


def test_payment_flow(client, make_member, identity):
    member_id = make_member("approvedPendingPayment")

    link = client.put(
        f"/api/members/{member_id}/payment-link",
        json={"paymentLink": "https://pay.test/1"},
    )
    assert link.status_code == 200

    identity.fail = True
    completed = client.post(
        f"/api/members/{member_id}/payment/complete", json={"paymentStatus": "paid"}
    )
    body = completed.get_json()
    assert completed.status_code == 200
    assert body["data"]["status"] == "active"
    assert body["provisioning_error"] == "Graph API unavailable"

    identity.fail = False
    retried = client.post(f"/api/members/{member_id}/identity/retry")
    assert retried.status_code == 200
    assert retried.get_json()["data"]["identity_provisioned"] is True

    reset = client.post(
        f"/api/members/{member_id}/payment/reset", json={"paymentStatus": "refunded"}
    )
    assert reset.status_code == 200
    assert reset.get_json()["data"]["payment_link"] is None


def test_identity_retry_failure_is_bad_gateway(client, make_member, identity):
    member_id = make_member("active")
    identity.fail = True

    response = client.post(f"/api/members/{member_id}/identity/retry")

    assert response.status_code == 502
    assert response.get_json()["error_kind"] == "EXTERNAL_DEPENDENCY"


def test_phase3_requires_active(client):
    member_id = create(client)

    response = client.patch(f"/api/members/{member_id}", json={"tier": "Gold"})

    assert response.status_code == 409
