import hashlib
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from heart_avtal.core.errors import ContractNotFound, InvalidTransition, ValidationError
from heart_avtal.models.enums import ContractStatus, EscrowStatus
from heart_avtal.services.audit_service import AuditAction
from heart_avtal.services.contract_inputs import ContractUpdate, DocumentInput, PartySeat
from heart_avtal.services.signature_service import contract_content_hash
from heart_avtal.tests.contract_factory import (
    BUYER,
    SELLER,
    create_verified_contract,
    in_days,
    make_draft,
    signature_for,
)


def test_create_contract_defaults(svc, db):
    contract = svc.create_contract(db, make_draft(due_date=in_days(30)), BUYER)

    assert contract.status == ContractStatus.DRAFT.value
    assert contract.version == 1
    assert contract.currency == "SEK"
    assert contract.created_by == BUYER.user_id
    assert [p.role for p in contract.parties] == ["buyer", "seller"]
    assert contract.parties[0].user_id == BUYER.user_id
    assert contract.parties[1].user_id is None
    assert all(not p.signed for p in contract.parties)
    assert contract.escrow.status == EscrowStatus.NONE.value
    assert contract.platform_approval.required is True
    assert contract.metadata_json["priorityLevel"] == "high"
    assert contract.legal_compliance_json["jurisdiction"] == "Sverige"


def test_create_contract_collects_every_problem(svc, db):
    draft = make_draft(
        amount="-5",
        title="ab",
        description="kort",
        contract_type="loan",
        currency="sek",
        due_date=datetime.now(timezone.utc) - timedelta(days=1),
    )

    with pytest.raises(ValidationError) as exc:
        svc.create_contract(db, draft, BUYER)

    errors = exc.value.errors
    assert "Title must be at least 3 characters" in errors
    assert "Description must be at least 10 characters" in errors
    assert "Unknown contract type: loan" in errors
    assert "Amount must be non-negative" in errors
    assert "Currency must be a 3-letter ISO code" in errors
    assert "Due date cannot be in the past" in errors
    assert svc.list_contracts_for_user(db, BUYER.user_id) == []


def test_create_contract_requires_two_parties(svc, db):
    with pytest.raises(ValidationError) as exc:
        svc.create_contract(db, make_draft(counterparty=None), BUYER)
    assert "At least 2 parties are required" in exc.value.errors


def test_create_contract_rejects_bad_party_email(svc, db):
    draft = make_draft(counterparty=PartySeat(email="inte-en-adress", role="seller"))
    with pytest.raises(ValidationError) as exc:
        svc.create_contract(db, draft, BUYER)
    assert "party[1]: valid email is required" in exc.value.errors


def test_delete_draft(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)

    svc.delete_contract(db, contract.id, BUYER)

    with pytest.raises(ContractNotFound):
        svc.get_contract(db, contract.id)


def test_only_drafts_can_be_deleted(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)
    svc.request_verification(db, contract.id, BUYER)

    with pytest.raises(InvalidTransition):
        svc.delete_contract(db, contract.id, BUYER)
    assert svc.get_contract(db, contract.id).status == ContractStatus.PENDING_VERIFICATION.value


def test_unknown_contract_id(svc, db):
    with pytest.raises(ContractNotFound):
        svc.get_contract(db, "not-a-uuid")
    with pytest.raises(ContractNotFound):
        svc.request_verification(db, "6f1f5f3e-2b1a-4c55-9d4e-0c6a1b2d3e4f", BUYER)


def test_add_party_rejects_duplicate_email(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)

    with pytest.raises(ValidationError):
        svc.add_party(db, contract.id, PartySeat(email="ERIK@seller.se", role="witness"), BUYER)


def test_add_party_only_in_draft(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)
    svc.request_verification(db, contract.id, BUYER)

    with pytest.raises(InvalidTransition):
        svc.add_party(db, contract.id, PartySeat(email="borgen@example.se", role="guarantor"), BUYER)


def test_claim_party_seat(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)
    seat_id = contract.parties[1].id

    contract = svc.claim_party(db, contract.id, seat_id, SELLER, name="Erik Säljare")
    assert contract.party(seat_id).user_id == SELLER.user_id
    assert contract.party(seat_id).name == "Erik Säljare"

    listed = svc.list_contracts_for_user(db, SELLER.user_id)
    assert [c.id for c in listed] == [contract.id]


def test_claimed_seat_cannot_be_taken(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)
    seat_id = contract.parties[1].id
    svc.claim_party(db, contract.id, seat_id, SELLER, name="Erik")

    # seat held by someone else
    with pytest.raises(InvalidTransition):
        svc.claim_party(db, contract.id, seat_id, BUYER, name="Anna")


def test_user_cannot_hold_two_seats(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)

    with pytest.raises(InvalidTransition):
        svc.claim_party(db, contract.id, contract.parties[1].id, BUYER, name="Anna")


def test_list_contracts_newest_first(svc, db):
    first = svc.create_contract(db, make_draft(title="Första avtalet"), BUYER)
    second = svc.create_contract(db, make_draft(title="Andra avtalet"), BUYER)

    listed = svc.list_contracts_for_user(db, BUYER.user_id)
    assert [c.id for c in listed] == [second.id, first.id]
    assert svc.list_contracts_for_user(db, "someone-else") == []


def test_attached_document_is_part_of_signed_content(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)
    before = contract_content_hash(contract)

    contract = svc.attach_document(
        db,
        contract.id,
        DocumentInput(name="Aktieöverlåtelse.pdf", document_type="contract", url="s3://docs/1", content=b"%PDF-1.7"),
        BUYER,
    )

    doc = contract.documents_json[0]
    assert doc["contentHash"] == hashlib.sha256(b"%PDF-1.7").hexdigest()
    assert doc["size"] == 8
    assert contract_content_hash(contract) != before


def test_documents_freeze_at_first_signature(svc, db):
    contract = create_verified_contract(svc, db)
    svc.sign_contract(db, contract.id, contract.parties[0].id, signature_for(BUYER), BUYER)

    with pytest.raises(InvalidTransition):
        svc.attach_document(
            db,
            contract.id,
            DocumentInput(name="Bilaga.pdf", document_type="addendum", url="", content=b"late"),
            BUYER,
        )


def test_empty_document_is_rejected(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)

    with pytest.raises(ValidationError):
        svc.attach_document(
            db, contract.id, DocumentInput(name="Tom.pdf", document_type="contract", url="", content=b""), BUYER
        )


def test_cancel_draft_and_reason_required(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)

    with pytest.raises(ValidationError):
        svc.cancel_contract(db, contract.id, "  ", BUYER)

    contract = svc.cancel_contract(db, contract.id, "Affären blev inte av", BUYER)
    assert contract.status == ContractStatus.CANCELLED.value
    assert contract.escrow.status == EscrowStatus.NONE.value


@pytest.mark.parametrize("amount", ["1e27", "1000000000000000000"])
def test_create_contract_rejects_unstorable_amount(svc, db, amount):
    with pytest.raises(ValidationError) as exc:
        svc.create_contract(db, make_draft(amount=amount), BUYER)

    assert exc.value.errors == ["Amount must be a finite number with at most 18 integer digits"]
    assert svc.list_contracts_for_user(db, BUYER.user_id) == []


def test_update_draft_terms(svc, db, notifier):
    contract = svc.create_contract(db, make_draft(), BUYER)
    due = in_days(30)

    contract = svc.update_contract(
        db,
        contract.id,
        ContractUpdate(title="Försäljning av Café Linnea HB", amount=Decimal("3000000"), due_date=due, tags=["cafe"]),
        BUYER,
        expected_version=contract.version,
    )

    assert contract.version == 2
    assert contract.title == "Försäljning av Café Linnea HB"
    assert contract.amount == Decimal("3000000.00")
    assert contract.escrow.amount == Decimal("3000000.00")
    assert contract.metadata_json["tags"] == ["cafe"]
    assert contract.description.startswith("Överlåtelse")

    entry = svc.get_audit_trail(db, contract.id)[-1]
    assert entry.action == AuditAction.CONTRACT_UPDATED
    assert entry.details == "Contract updated: title, amount, due_date, tags"
    assert notifier.of_kind("reminder")[-1][2] == (due - timedelta(days=3)).isoformat()


def test_update_reruns_validation(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)

    with pytest.raises(ValidationError) as exc:
        svc.update_contract(db, contract.id, ContractUpdate(title="ab", amount=Decimal("-5")), BUYER)
    assert exc.value.errors == ["Title must be at least 3 characters", "Amount must be non-negative"]

    with pytest.raises(ValidationError) as exc:
        svc.update_contract(db, contract.id, ContractUpdate(), BUYER)
    assert exc.value.errors == ["Nothing to update"]

    assert svc.get_contract(db, contract.id).version == 1


def test_only_drafts_can_be_edited(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)
    contract = svc.request_verification(db, contract.id, BUYER)

    with pytest.raises(InvalidTransition) as exc:
        svc.update_contract(db, contract.id, ContractUpdate(amount=Decimal("1")), BUYER)
    assert exc.value.current_status == ContractStatus.PENDING_VERIFICATION.value

    assert svc.get_contract(db, contract.id).amount == Decimal("2500000.00")
