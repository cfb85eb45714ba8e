import base64
import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from heart_avtal.core.logging import RequestContextFilter, bind_request_context, reset_request_context
from heart_avtal.db.session import get_db
from heart_avtal.main import create_app

API = "/api/v1"
CONTRACTS = f"{API}/heart/contracts"

BUYER = {"X-Actor-Id": "user-buyer"}
SELLER = {"X-Actor-Id": "user-seller"}
REVIEWER = {"X-Actor-Id": "reviewer-1"}

ALL_APPROVALS = {"buyer": True, "seller": True, "platform": True}


@pytest.fixture
def client(svc, session_factory):
    app = create_app(service=svc)

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    with TestClient(app) as c:
        yield c


def create_contract(client, **overrides):
    body = {
        "title": "Försäljning av Café Linnea AB",
        "description": "Överlåtelse av samtliga aktier i Café Linnea AB inklusive inventarier.",
        "type": "business_sale",
        "initiatorName": "Anna Buyer",
        "initiatorEmail": "anna@buyer.se",
        "counterpartyEmail": "erik@seller.se",
        "counterpartyName": "Erik Seller",
        "amount": "2500000",
    }
    body.update(overrides)
    return client.post(CONTRACTS, json=body, headers=BUYER)


def verify_and_sign(client, contract):
    cid = contract["contractId"]
    r = client.post(f"{CONTRACTS}/{cid}/verification/request", headers=BUYER)
    assert r.status_code == 200

    for party in contract["parties"]:
        r = client.post(
            f"{CONTRACTS}/{cid}/parties/{party['partyId']}/verify",
            json={"checks": [{"kind": "identity_documents", "documents": ["pass-1"]}]},
            headers=REVIEWER,
        )
        assert r.status_code == 200

    for party, headers in zip(contract["parties"], (BUYER, SELLER)):
        r = client.post(
            f"{CONTRACTS}/{cid}/parties/{party['partyId']}/sign",
            json={"userAgent": "pytest-agent/1.0"},
            headers=headers,
        )
        assert r.status_code == 200
    return r.json()


def test_health(client):
    r = client.get(f"{API}/health", headers={"X-Request-Id": "rid-123"})
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "database": "ok", "request_id": "rid-123"}
    assert r.headers["X-Request-Id"] == "rid-123"


def test_fee_preview(client):
    r = client.get(f"{API}/heart/fees", params={"amount": "2500000"})
    assert r.status_code == 200
    body = r.json()
    assert body["netAmount"] == "2375000.00"
    assert body["platformFee"] == "75000.00"

    assert client.get(f"{API}/heart/fees", params={"amount": "-1"}).status_code == 422


def test_create_and_get_contract(client):
    r = create_contract(client)
    assert r.status_code == 201
    created = r.json()
    assert created["status"] == "draft"
    assert created["version"] == 1
    assert created["amount"] == "2500000.00"
    assert created["parties"][0]["userId"] == "user-buyer"
    assert created["auditTrail"][0]["action"] == "contract_created"

    r = client.get(f"{CONTRACTS}/{created['contractId']}", headers=BUYER)
    assert r.status_code == 200
    assert r.json()["contractId"] == created["contractId"]

    r = client.get(CONTRACTS, headers=BUYER)
    assert [c["contractId"] for c in r.json()["contracts"]] == [created["contractId"]]


def test_full_lifecycle_over_http(client):
    contract = create_contract(client).json()
    cid = contract["contractId"]

    signed = verify_and_sign(client, contract)
    assert signed["status"] == "pending_platform_approval"
    assert signed["escrow"]["status"] == "secured"
    assert signed["escrow"]["fees"]["netAmount"] == "2375000.00"

    r = client.post(f"{CONTRACTS}/{cid}/approval/approve", json={"comments": "OK"}, headers=REVIEWER)
    assert r.status_code == 200
    assert r.json()["platformApproval"]["approvedBy"] == "reviewer-1"

    r = client.post(f"{CONTRACTS}/{cid}/escrow/release", json={"approvals": ALL_APPROVALS}, headers=REVIEWER)
    assert r.status_code == 200
    assert r.json()["status"] == "completed"

    r = client.get(f"{CONTRACTS}/{cid}/audit", headers=BUYER)
    audit = r.json()
    assert audit["chainValid"] is True
    assert [e["seq"] for e in audit["entries"]] == list(range(1, len(audit["entries"]) + 1))


def test_missing_actor_header(client):
    r = client.post(CONTRACTS, json={})
    assert r.status_code in (401, 422)

    r = client.post(f"{CONTRACTS}/{uuid.uuid4()}/cancel", json={"reason": "x"})
    assert r.status_code == 401


def test_unknown_contract_is_404(client):
    r = client.get(f"{CONTRACTS}/{uuid.uuid4()}", headers=BUYER)
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "CONTRACT_NOT_FOUND"


def test_invalid_draft_is_422_with_errors(client):
    r = create_contract(client, title="ab", type="loan")
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["code"] == "VALIDATION_ERROR"
    assert "Title must be at least 3 characters" in detail["errors"]
    assert "Unknown contract type: loan" in detail["errors"]


def test_signing_unverified_contract_is_409(client):
    contract = create_contract(client).json()
    party_id = contract["parties"][0]["partyId"]

    r = client.post(
        f"{CONTRACTS}/{contract['contractId']}/parties/{party_id}/sign",
        json={"userAgent": "pytest"},
        headers=BUYER,
    )
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "INVALID_TRANSITION"
    assert r.json()["detail"]["currentStatus"] == "draft"


def test_stale_version_is_409(client):
    contract = create_contract(client).json()

    r = client.post(
        f"{CONTRACTS}/{contract['contractId']}/verification/request",
        json={"expectedVersion": 42},
        headers=BUYER,
    )
    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["code"] == "CONCURRENT_MODIFICATION"
    assert detail["expectedVersion"] == 42
    assert detail["actualVersion"] == 1


def test_release_without_platform_approval_is_409(client):
    contract = create_contract(client).json()
    cid = contract["contractId"]
    verify_and_sign(client, contract)
    client.post(f"{CONTRACTS}/{cid}/approval/approve", headers=REVIEWER)

    r = client.post(
        f"{CONTRACTS}/{cid}/escrow/release",
        json={"approvals": {"buyer": True, "seller": True, "platform": False}},
        headers=REVIEWER,
    )
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "MISSING_APPROVALS"
    assert r.json()["detail"]["missing"] == ["platform"]

    r = client.get(f"{CONTRACTS}/{cid}", headers=BUYER)
    assert r.json()["escrow"]["status"] == "secured"


def test_reject_then_refund(client):
    contract = create_contract(client).json()
    cid = contract["contractId"]
    verify_and_sign(client, contract)

    r = client.post(f"{CONTRACTS}/{cid}/approval/reject", json={"comments": "Ofullständig"}, headers=REVIEWER)
    assert r.status_code == 200
    assert r.json()["status"] == "disputed"

    r = client.post(f"{CONTRACTS}/{cid}/escrow/refund", json={"reason": "Avvisat"}, headers=REVIEWER)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert r.json()["escrow"]["status"] == "refunded"


def test_attach_document(client):
    contract = create_contract(client).json()
    cid = contract["contractId"]

    r = client.post(
        f"{CONTRACTS}/{cid}/documents",
        json={"name": "Avtal.pdf", "type": "contract", "contentBase64": base64.b64encode(b"%PDF").decode()},
        headers=BUYER,
    )
    assert r.status_code == 200
    assert len(r.json()["documents"]) == 1

    r = client.post(
        f"{CONTRACTS}/{cid}/documents",
        json={"name": "Avtal.pdf", "contentBase64": "!!not base64!!"},
        headers=BUYER,
    )
    assert r.status_code == 422


def test_delete_draft(client):
    contract = create_contract(client).json()
    cid = contract["contractId"]

    r = client.delete(f"{CONTRACTS}/{cid}", headers=BUYER)
    assert r.status_code == 204
    assert client.get(f"{CONTRACTS}/{cid}", headers=BUYER).status_code == 404


def test_send_verification_code(client, verifier):
    contract = create_contract(client).json()
    cid = contract["contractId"]
    party_id = contract["parties"][1]["partyId"]
    client.post(f"{CONTRACTS}/{cid}/verification/request", headers=BUYER)

    r = client.post(f"{CONTRACTS}/{cid}/parties/{party_id}/verification-code", headers=BUYER)
    assert r.status_code == 200
    reference = r.json()["reference"]

    r = client.post(
        f"{CONTRACTS}/{cid}/parties/{party_id}/verify",
        json={"checks": [{"kind": "verification_code", "code": verifier.issued_code(reference), "reference": reference}]},
        headers=SELLER,
    )
    assert r.status_code == 200
    assert r.json()["results"] == [{"kind": "verification_code", "passed": True, "detail": None}]


def test_oversized_amount_is_422(client):
    r = create_contract(client, amount="1e27")
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "VALIDATION_ERROR"

    r = client.get(f"{API}/heart/fees", params={"amount": "1e27"})
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_patch_draft(client):
    contract = create_contract(client).json()
    cid = contract["contractId"]

    r = client.patch(
        f"{CONTRACTS}/{cid}",
        json={"amount": "3000000", "paymentTerms": "50% vid tillträde", "expectedVersion": 1},
        headers=BUYER,
    )
    assert r.status_code == 200
    assert r.json()["amount"] == "3000000.00"
    assert r.json()["version"] == 2
    assert r.json()["auditTrail"][-1]["action"] == "contract_updated"

    client.post(f"{CONTRACTS}/{cid}/verification/request", headers=BUYER)
    r = client.patch(f"{CONTRACTS}/{cid}", json={"title": "Ny titel"}, headers=BUYER)
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "INVALID_TRANSITION"


def test_log_records_carry_request_context():
    context_filter = RequestContextFilter()
    tokens = bind_request_context("rid-log", "user-buyer")
    try:
        record = logging.LogRecord("heart_avtal", logging.INFO, __file__, 1, "contract created", None, None)
        assert context_filter.filter(record)
        assert (record.request_id, record.actor) == ("rid-log", "user-buyer")

        explicit = logging.LogRecord("heart_avtal", logging.INFO, __file__, 1, "followup", None, None)
        explicit.request_id = "rid-explicit"
        context_filter.filter(explicit)
        assert explicit.request_id == "rid-explicit"
    finally:
        reset_request_context(tokens)

    outside = logging.LogRecord("heart_avtal", logging.INFO, __file__, 1, "startup", None, None)
    context_filter.filter(outside)
    assert outside.request_id is None
