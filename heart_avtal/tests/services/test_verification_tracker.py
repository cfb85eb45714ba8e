import time

import pytest

from heart_avtal.core.contract_locks import ContractLockRegistry
from heart_avtal.core.errors import CollaboratorFailure, InvalidTransition, PartyNotFound
from heart_avtal.integrations.identity_verifier import SandboxIdentityVerifier
from heart_avtal.models.enums import ContractStatus, KycStatus, VerificationLevel
from heart_avtal.schemas.verification import (
    BankAccountCheck,
    BankAccountDetails,
    IdentityDocumentsCheck,
    VerificationCodeCheck,
)
from heart_avtal.services.audit_service import AuditAction
from heart_avtal.services.contract_inputs import PartySeat
from heart_avtal.services.heart_avtal_service import HeartAvtalService
from heart_avtal.tests.contract_factory import BUYER, REVIEWER, make_draft


class SlowVerifier(SandboxIdentityVerifier):
    def send_verification_code(self, email, phone):
        time.sleep(0.5)
        return super().send_verification_code(email, phone)


class SlowCodeCheck(SandboxIdentityVerifier):
    def verify_code(self, code, reference):
        time.sleep(0.5)
        return super().verify_code(code, reference)


def pending_contract(svc, db, **overrides):
    contract = svc.create_contract(db, make_draft(**overrides), BUYER)
    return svc.request_verification(db, contract.id, BUYER)


def test_request_verification_requires_draft(svc, db):
    contract = pending_contract(svc, db)
    assert contract.status == ContractStatus.PENDING_VERIFICATION.value

    with pytest.raises(InvalidTransition):
        svc.request_verification(db, contract.id, BUYER)


def test_verified_party_gets_every_flag(svc, db):
    contract = pending_contract(svc, db)
    party_id = contract.parties[0].id

    contract, results = svc.verify_party(
        db,
        contract.id,
        party_id,
        REVIEWER,
        checks=[
            IdentityDocumentsCheck(documents=["passport-1234"]),
            BankAccountCheck(
                details=BankAccountDetails(accountHolder="Anna Buyer", clearingNumber="8327", accountNumber="9123456")
            ),
        ],
    )

    assert [r.passed for r in results] == [True, True]
    party = contract.party(party_id)
    assert party.kyc_status == KycStatus.VERIFIED.value
    assert party.verification_level == VerificationLevel.ENHANCED.value
    assert party.id_verified and party.email_verified and party.phone_verified and party.bank_account_verified
    assert party.verified_at is not None
    assert party.verification_documents_json == ["passport-1234"]


def test_verify_party_twice_is_a_noop(svc, db):
    contract = pending_contract(svc, db)
    party_id = contract.parties[0].id

    contract, _ = svc.verify_party(db, contract.id, party_id, REVIEWER)
    version = contract.version
    entries = len(contract.audit_entries)

    contract, results = svc.verify_party(db, contract.id, party_id, REVIEWER)

    assert results == []
    assert contract.version == version
    assert len(contract.audit_entries) == entries
    verified = [e for e in contract.audit_entries if e.action == AuditAction.PARTY_VERIFIED]
    assert len(verified) == 1


def test_code_roundtrip_verifies_party(svc, db, verifier):
    contract = pending_contract(svc, db)
    party_id = contract.parties[1].id

    contract, reference = svc.send_verification_code(db, contract.id, party_id, BUYER)
    assert contract.party(party_id).kyc_status == KycStatus.IN_PROGRESS.value

    code = verifier.issued_code(reference)
    contract, results = svc.verify_party(
        db, contract.id, party_id, REVIEWER, checks=[VerificationCodeCheck(code=code, reference=reference)]
    )
    assert results[0].passed is True
    assert contract.party(party_id).is_verified


def test_wrong_code_fails_party_and_allows_retry(svc, db, verifier):
    contract = pending_contract(svc, db)
    party_id = contract.parties[1].id
    contract, reference = svc.send_verification_code(db, contract.id, party_id, BUYER)

    code = verifier.issued_code(reference)
    wrong = f"{(int(code) + 1) % 10**6:06d}"
    contract, results = svc.verify_party(
        db, contract.id, party_id, REVIEWER, checks=[VerificationCodeCheck(code=wrong, reference=reference)]
    )

    assert results[0].passed is False
    assert contract.party(party_id).kyc_status == KycStatus.FAILED.value
    assert contract.status == ContractStatus.PENDING_VERIFICATION.value
    assert contract.audit_entries[-1].action == AuditAction.PARTY_VERIFICATION_FAILED

    contract, results = svc.verify_party(
        db, contract.id, party_id, REVIEWER, checks=[VerificationCodeCheck(code=code, reference=reference)]
    )
    assert results[0].passed is True
    assert contract.party(party_id).is_verified


def test_last_verification_completes_contract(svc, db):
    contract = pending_contract(svc, db)
    for party_id in [p.id for p in contract.parties]:
        contract, _ = svc.verify_party(db, contract.id, party_id, REVIEWER)

    assert contract.status == ContractStatus.VERIFICATION_COMPLETE.value


def test_third_party_keeps_contract_pending(svc, db):
    contract = svc.create_contract(db, make_draft(), BUYER)
    contract = svc.add_party(db, contract.id, PartySeat(email="vittne@example.se", role="witness"), BUYER)
    contract = svc.request_verification(db, contract.id, BUYER)

    for party in contract.parties[:2]:
        contract, _ = svc.verify_party(db, contract.id, party.id, REVIEWER)
    assert contract.status == ContractStatus.PENDING_VERIFICATION.value

    contract, _ = svc.verify_party(db, contract.id, contract.parties[2].id, REVIEWER)
    assert contract.status == ContractStatus.VERIFICATION_COMPLETE.value


def test_unknown_party_is_not_found(svc, db):
    contract = pending_contract(svc, db)
    with pytest.raises(PartyNotFound):
        svc.verify_party(db, contract.id, "00000000-0000-0000-0000-000000000000", REVIEWER)


def test_verifier_timeout_leaves_party_untouched(settings, notifier, db):
    svc = HeartAvtalService(
        settings=settings,
        notifier=notifier,
        identity_verifier=SlowVerifier(),
        locks=ContractLockRegistry(),
    )
    contract = pending_contract(svc, db)
    party_id = contract.parties[0].id
    version = contract.version

    with pytest.raises(CollaboratorFailure) as exc:
        svc.send_verification_code(db, contract.id, party_id, BUYER, timeout=0.05)
    assert exc.value.timed_out is True
    assert exc.value.status_code == 504

    contract = svc.get_contract(db, contract.id)
    assert contract.party(party_id).kyc_status == KycStatus.PENDING.value
    assert contract.version == version


def test_code_check_timeout_keeps_party_in_progress(settings, notifier, db):
    verifier = SlowCodeCheck()
    svc = HeartAvtalService(
        settings=settings,
        notifier=notifier,
        identity_verifier=verifier,
        locks=ContractLockRegistry(),
    )
    contract = pending_contract(svc, db)
    party_id = contract.parties[1].id
    contract, reference = svc.send_verification_code(db, contract.id, party_id, BUYER)
    assert contract.party(party_id).kyc_status == KycStatus.IN_PROGRESS.value
    version = contract.version

    with pytest.raises(CollaboratorFailure) as exc:
        svc.verify_party(
            db,
            contract.id,
            party_id,
            REVIEWER,
            checks=[VerificationCodeCheck(code=verifier.issued_code(reference), reference=reference)],
            timeout=0.05,
        )
    assert exc.value.timed_out is True

    contract = svc.get_contract(db, contract.id)
    assert contract.party(party_id).kyc_status == KycStatus.IN_PROGRESS.value
    assert contract.version == version
