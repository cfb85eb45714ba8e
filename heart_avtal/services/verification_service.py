from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from heart_avtal.core.errors import InvalidTransition, ValidationError
from heart_avtal.integrations.base import call_collaborator
from heart_avtal.integrations.identity_verifier import IdentityVerifier
from heart_avtal.models.contract_party import ContractParty
from heart_avtal.models.enums import ContractStatus, KycStatus, VerificationLevel
from heart_avtal.schemas.verification import (
    BankAccountCheck,
    IdentityDocumentsCheck,
    VerificationCheck,
    VerificationCheckResult,
    VerificationCodeCheck,
)
from heart_avtal.services.audit_service import AuditAction, AuditTrail
from heart_avtal.services.context import ContractContext
from heart_avtal.services.state_machine import ContractStateMachine

logger = logging.getLogger(__name__)

COLLABORATOR = "identity_verifier"


class VerificationTracker:
    """Per-party KYC state inside one contract."""

    def __init__(
        self,
        state_machine: ContractStateMachine,
        audit: AuditTrail,
        verifier: IdentityVerifier,
        *,
        timeout_seconds: float,
    ):
        self.sm = state_machine
        self.audit = audit
        self.verifier = verifier
        self.timeout_seconds = timeout_seconds

    def request_verification(self, ctx: ContractContext) -> None:
        contract = ctx.contract
        self.sm.require_status(
            contract, ContractStatus.DRAFT, condition="verification can only be requested from draft"
        )

        if len(contract.parties) < 2:
            raise InvalidTransition(
                contract.status,
                f"contract has {len(contract.parties)} parties; at least 2 are required",
                ContractStatus.PENDING_VERIFICATION.value,
            )
        missing = [p for p in contract.parties if not (p.email or "").strip()]
        if missing:
            raise InvalidTransition(
                contract.status,
                f"{len(missing)} of {len(contract.parties)} parties have no email",
                ContractStatus.PENDING_VERIFICATION.value,
            )

        self.sm.transition(ctx, ContractStatus.PENDING_VERIFICATION, reason="verification requested")
        ctx.outbox.contract_event(contract.id, "verification_requested", ctx.party_emails())

    def send_verification_code(self, ctx: ContractContext, party: ContractParty, *, timeout: Optional[float] = None) -> str:
        self.sm.require_status(
            ctx.contract,
            ContractStatus.PENDING_VERIFICATION,
            condition="verification codes are only sent while verification is pending",
        )
        if party.is_verified:
            raise InvalidTransition(ctx.contract.status, f"party {party.id} is already verified")

        reference = call_collaborator(
            COLLABORATOR,
            "send_verification_code",
            self.verifier.send_verification_code,
            party.email,
            party.phone,
            timeout=timeout or self.timeout_seconds,
        )

        party.kyc_status = KycStatus.IN_PROGRESS.value
        ctx.touch()
        self.audit.record(
            ctx,
            AuditAction.VERIFICATION_CODE_SENT,
            f"Verification code sent to {party.email}",
            payload={"party_id": str(party.id), "reference": reference},
        )
        ctx.flush()
        return reference

    def verify_party(
        self,
        ctx: ContractContext,
        party: ContractParty,
        checks: Sequence[VerificationCheck] = (),
        *,
        timeout: Optional[float] = None,
    ) -> List[VerificationCheckResult]:
        """
        Run the requested checks against the identity verifier and record the outcome.

        - already verified: no-op, nothing recorded
        - every check passes (or none given): party verified
        - any check fails: kycStatus=failed, caller may retry
        - verifier error / timeout: CollaboratorFailure, party untouched
        """
        if party.is_verified:
            return []

        self.sm.require_status(
            ctx.contract,
            ContractStatus.PENDING_VERIFICATION,
            condition="parties can only be verified while verification is pending",
        )

        results = [self._run_check(party, check, timeout or self.timeout_seconds) for check in checks]
        failed = [r for r in results if not r.passed]

        if failed:
            party.kyc_status = KycStatus.FAILED.value
            ctx.touch()
            self.audit.record(
                ctx,
                AuditAction.PARTY_VERIFICATION_FAILED,
                f"Verification failed for {party.email}: {', '.join(r.kind for r in failed)}",
                payload={"party_id": str(party.id), "results": [r.model_dump() for r in results]},
            )
            ctx.flush()
            logger.info(
                "party verification failed",
                extra={"contract_id": str(ctx.contract.id), "party_id": str(party.id)},
            )
            return results

        documents = list(party.verification_documents_json or [])
        for check in checks:
            if isinstance(check, IdentityDocumentsCheck):
                documents.extend(d for d in check.documents if d not in documents)

        party.id_verified = True
        party.email_verified = True
        party.phone_verified = True
        party.bank_account_verified = True
        party.kyc_status = KycStatus.VERIFIED.value
        party.verification_level = VerificationLevel.ENHANCED.value
        party.verified_at = ctx.now()
        party.verification_documents_json = documents
        ctx.touch()

        self.audit.record(
            ctx,
            AuditAction.PARTY_VERIFIED,
            f"Party {party.email} verified",
            payload={"party_id": str(party.id), "checks": [r.kind for r in results]},
        )
        ctx.flush()
        return results

    def _run_check(self, party: ContractParty, check: VerificationCheck, timeout: float) -> VerificationCheckResult:
        pid = str(party.id)

        if isinstance(check, IdentityDocumentsCheck):
            status = call_collaborator(
                COLLABORATOR, "verify_identity", self.verifier.verify_identity,
                pid, list(check.documents), timeout=timeout,
            )
            status = KycStatus(status)
            return VerificationCheckResult(
                kind=check.kind, passed=status == KycStatus.VERIFIED, detail=status.value
            )

        if isinstance(check, BankAccountCheck):
            ok = call_collaborator(
                COLLABORATOR, "verify_bank_account", self.verifier.verify_bank_account,
                pid, check.details, timeout=timeout,
            )
            return VerificationCheckResult(kind=check.kind, passed=bool(ok))

        if isinstance(check, VerificationCodeCheck):
            ok = call_collaborator(
                COLLABORATOR, "verify_code", self.verifier.verify_code,
                check.code, check.reference, timeout=timeout,
            )
            return VerificationCheckResult(
                kind=check.kind, passed=bool(ok), detail=None if ok else "code rejected"
            )

        raise ValidationError([f"Unsupported verification check: {type(check).__name__}"])

    def complete_if_all_verified(self, ctx: ContractContext) -> None:
        contract = ctx.contract
        if any(p.kyc_status != KycStatus.VERIFIED.value for p in contract.parties):
            raise InvalidTransition(
                contract.status,
                self.sm.unverified_parties_condition(contract),
                ContractStatus.VERIFICATION_COMPLETE.value,
            )
        self.sm.transition(ctx, ContractStatus.VERIFICATION_COMPLETE, reason="all parties verified")
        ctx.outbox.contract_event(contract.id, "verification_complete", ctx.party_emails())
