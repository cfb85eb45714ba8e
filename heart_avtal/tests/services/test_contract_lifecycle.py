from decimal import Decimal

import pytest

from heart_avtal.core.contract_status_graph import FORWARD_RANK
from heart_avtal.core.errors import InvalidTransition, MissingApprovals
from heart_avtal.models.enums import ApprovalStatus, ContractStatus, EscrowStatus
from heart_avtal.schemas.serializers import contract_to_resp
from heart_avtal.services.audit_service import AuditAction
from heart_avtal.tests.contract_factory import (
    BUYER,
    REVIEWER,
    SELLER,
    create_verified_contract,
    make_draft,
    sign_all,
    signature_for,
)

ALL_APPROVALS = {"buyer": True, "seller": True, "platform": True}


def status_changes(svc, db, contract_id):
    return [
        (e.payload_json["data"]["from"], e.payload_json["data"]["to"])
        for e in svc.get_audit_trail(db, contract_id)
        if e.action == AuditAction.STATUS_CHANGED
    ]


def test_manual_approval_path_ends_completed(svc, db):
    contract = svc.create_contract(db, make_draft(amount="2500000"), BUYER)
    assert contract.status == ContractStatus.DRAFT.value
    assert contract.version == 1

    contract = svc.request_verification(db, contract.id, BUYER)
    assert contract.status == ContractStatus.PENDING_VERIFICATION.value

    buyer_id, seller_id = [p.id for p in contract.parties]
    contract, _ = svc.verify_party(db, contract.id, buyer_id, REVIEWER)
    assert contract.status == ContractStatus.PENDING_VERIFICATION.value

    contract, _ = svc.verify_party(db, contract.id, seller_id, REVIEWER)
    assert contract.status == ContractStatus.VERIFICATION_COMPLETE.value

    contract = svc.sign_contract(db, contract.id, buyer_id, signature_for(BUYER), BUYER)
    assert contract.status == ContractStatus.PARTIALLY_SIGNED.value

    # last signature -> fully_signed -> escrow secured -> queued for review
    contract = svc.sign_contract(db, contract.id, seller_id, signature_for(SELLER), SELLER)
    assert contract.status == ContractStatus.PENDING_PLATFORM_APPROVAL.value
    assert contract.escrow.status == EscrowStatus.SECURED.value
    assert contract.escrow.account_id
    assert contract.platform_approval.risk_assessment_json["level"] in ("low", "medium", "high", "critical")

    contract = svc.approve_contract(db, contract.id, REVIEWER, comments="Ser bra ut")
    assert contract.status == ContractStatus.PLATFORM_APPROVED.value
    assert contract.platform_approval.approved_by == REVIEWER.user_id

    contract = svc.release_escrow(db, contract.id, ALL_APPROVALS, REVIEWER)
    assert contract.status == ContractStatus.COMPLETED.value
    assert contract.completed_at is not None
    assert contract.escrow.status == EscrowStatus.RELEASED.value
    assert contract.escrow.transaction_id

    escrow = contract.escrow
    assert escrow.platform_fee == Decimal("75000.00")
    assert escrow.escrow_fee == Decimal("12500.00")
    assert escrow.payment_processing_fee == Decimal("37500.00")
    assert escrow.net_amount == Decimal("2375000.00")

    assert [to for _, to in status_changes(svc, db, contract.id)] == [
        "pending_verification",
        "verification_complete",
        "partially_signed",
        "fully_signed",
        "escrow_secured",
        "pending_platform_approval",
        "platform_approved",
        "funds_released",
        "completed",
    ]


def test_small_amount_is_approved_by_system(svc, db):
    contract = create_verified_contract(svc, db, amount="100000", requires_platform_approval=True)
    contract = sign_all(svc, db, contract)

    assert contract.status == ContractStatus.PLATFORM_APPROVED.value
    assert contract.escrow.status == EscrowStatus.SECURED.value
    assert contract.platform_approval.status == ApprovalStatus.APPROVED.value
    assert contract.platform_approval.approved_by == "system"

    approvals = [e for e in contract.audit_entries if e.action == AuditAction.CONTRACT_APPROVED]
    assert len(approvals) == 1
    assert approvals[0].user_id == "system"


def test_approval_not_required_skips_review(svc, db):
    contract = create_verified_contract(svc, db, amount="2500000", requires_platform_approval=False)
    contract = sign_all(svc, db, contract)

    assert contract.status == ContractStatus.PLATFORM_APPROVED.value
    assert contract.platform_approval.approved_by == "system"


@pytest.mark.parametrize("amount", ["0", None])
def test_contract_without_amount_completes_without_escrow(svc, db, amount):
    contract = create_verified_contract(svc, db, amount=amount)
    contract = sign_all(svc, db, contract)

    assert contract.status == ContractStatus.COMPLETED.value
    assert contract.escrow.status == EscrowStatus.NONE.value
    assert contract.escrow.account_id is None

    changes = status_changes(svc, db, contract.id)
    assert ("fully_signed", "platform_approved") in changes
    assert all(to != "escrow_secured" for _, to in changes)


def test_release_with_missing_platform_approval_keeps_escrow_secured(svc, db):
    contract = create_verified_contract(svc, db)
    contract = sign_all(svc, db, contract)
    contract = svc.approve_contract(db, contract.id, REVIEWER)
    version = contract.version

    with pytest.raises(MissingApprovals) as exc:
        svc.release_escrow(db, contract.id, {"buyer": True, "seller": True, "platform": False}, REVIEWER)
    assert exc.value.missing == ["platform"]

    contract = svc.get_contract(db, contract.id)
    assert contract.status == ContractStatus.PLATFORM_APPROVED.value
    assert contract.escrow.status == EscrowStatus.SECURED.value
    assert contract.escrow.transaction_id is None
    assert contract.version == version


def test_release_requires_platform_approval_first(svc, db):
    contract = create_verified_contract(svc, db)
    contract = sign_all(svc, db, contract)
    assert contract.status == ContractStatus.PENDING_PLATFORM_APPROVAL.value

    with pytest.raises(InvalidTransition):
        svc.release_escrow(db, contract.id, ALL_APPROVALS, REVIEWER)


def test_signature_fields_are_set_exactly_when_signed(svc, db):
    contract = create_verified_contract(svc, db)

    def check(c):
        for p in c.parties:
            if p.signed:
                assert p.signed_at is not None
                assert p.signature_hash and p.signature_content_hash
                assert p.signature_ip and p.signature_method
            else:
                assert p.signed_at is None
                assert p.signature_hash is None

    check(contract)
    buyer_id, seller_id = [p.id for p in contract.parties]
    contract = svc.sign_contract(db, contract.id, buyer_id, signature_for(BUYER), BUYER)
    check(contract)
    contract = svc.sign_contract(db, contract.id, seller_id, signature_for(SELLER), SELLER)
    check(contract)

    hashes = {p.signature_content_hash for p in contract.parties}
    assert len(hashes) == 1


def test_party_cannot_sign_twice(svc, db):
    contract = create_verified_contract(svc, db)
    buyer_id = contract.parties[0].id
    svc.sign_contract(db, contract.id, buyer_id, signature_for(BUYER), BUYER)

    with pytest.raises(InvalidTransition):
        svc.sign_contract(db, contract.id, buyer_id, signature_for(BUYER), BUYER)


def test_signing_before_verification_names_unverified_parties(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)
    svc.request_verification(db, contract.id, BUYER)
    buyer_id = contract.parties[0].id
    svc.verify_party(db, contract.id, buyer_id, REVIEWER)

    with pytest.raises(InvalidTransition) as exc:
        svc.sign_contract(db, contract.id, buyer_id, signature_for(BUYER), BUYER)
    assert "1 of 2 parties unverified" in exc.value.condition


def test_status_only_moves_forward_on_the_happy_path(svc, db):
    contract = create_verified_contract(svc, db)
    contract = sign_all(svc, db, contract)
    contract = svc.approve_contract(db, contract.id, REVIEWER)
    contract = svc.release_escrow(db, contract.id, ALL_APPROVALS, REVIEWER)

    for before, after in status_changes(svc, db, contract.id):
        assert FORWARD_RANK[ContractStatus(after)] > FORWARD_RANK[ContractStatus(before)]


def test_reload_reproduces_contract(svc, db, session_factory):
    contract = create_verified_contract(svc, db)
    contract = sign_all(svc, db, contract)
    snapshot = contract_to_resp(contract)

    other = session_factory()
    try:
        reloaded = svc.get_contract(other, contract.id)
        assert contract_to_resp(reloaded) == snapshot
        assert [e.seq for e in reloaded.audit_entries] == list(range(1, len(reloaded.audit_entries) + 1))
    finally:
        other.close()
