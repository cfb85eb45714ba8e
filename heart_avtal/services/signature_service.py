from __future__ import annotations

from typing import Any, Dict

from heart_avtal.core.errors import InvalidTransition, ValidationError
from heart_avtal.core.hashing import canonical_dumps, sha256_hex
from heart_avtal.models.contract_party import ContractParty
from heart_avtal.models.enums import ContractStatus, SignatureMethod
from heart_avtal.models.heart_contract import HeartContract
from heart_avtal.services.audit_service import AuditAction, AuditTrail
from heart_avtal.services.context import ContractContext, as_aware
from heart_avtal.services.contract_inputs import SignatureInput
from heart_avtal.services.state_machine import ContractStateMachine

SIGNABLE_STATUSES = (
    ContractStatus.VERIFICATION_COMPLETE,
    ContractStatus.PENDING_SIGNATURES,
    ContractStatus.PARTIALLY_SIGNED,
)


def signed_content(contract: HeartContract) -> Dict[str, Any]:
    """The part of a contract a signature binds to."""
    due = as_aware(contract.due_date)
    return {
        "contract_id": str(contract.id),
        "title": contract.title,
        "description": contract.description,
        "type": contract.contract_type,
        "amount": None if contract.amount is None else str(contract.amount),
        "currency": contract.currency,
        "payment_terms": contract.payment_terms,
        "due_date": due.isoformat() if due else None,
        "parties": [
            {"id": str(p.id), "role": p.role, "email": p.email, "name": p.name}
            for p in contract.parties
        ],
        "documents": [d.get("contentHash") for d in (contract.documents_json or [])],
    }


def contract_content_hash(contract: HeartContract) -> str:
    return sha256_hex(canonical_dumps(signed_content(contract)))


class SignatureLedger:
    """One immutable signature per party."""

    def __init__(self, state_machine: ContractStateMachine, audit: AuditTrail):
        self.sm = state_machine
        self.audit = audit

    def request_signatures(self, ctx: ContractContext) -> None:
        self.sm.require_status(
            ctx.contract,
            ContractStatus.VERIFICATION_COMPLETE,
            condition="signatures can be requested once every party is verified",
        )
        self.sm.transition(ctx, ContractStatus.PENDING_SIGNATURES, reason="signatures requested")
        ctx.outbox.contract_event(ctx.contract.id, "signature_requested", ctx.party_emails())

    def sign(self, ctx: ContractContext, party: ContractParty, signature: SignatureInput) -> bool:
        """
        Record `party`'s signature. Returns True when this was the last one
        and the contract moved to fully_signed.
        """
        contract = ctx.contract
        current = self.sm.status_of(contract)

        if current not in SIGNABLE_STATUSES:
            if current == ContractStatus.PENDING_VERIFICATION:
                condition = self.sm.unverified_parties_condition(contract)
            else:
                condition = "contract is not open for signing"
            raise InvalidTransition(current.value, condition)
        if not party.is_verified:
            raise InvalidTransition(current.value, f"party {party.id} is not verified")
        if party.signed:
            raise InvalidTransition(current.value, f"party {party.id} has already signed")
        if signature.method not in [m.value for m in SignatureMethod]:
            raise ValidationError([f"Unknown signature method: {signature.method}"])

        signed_at = ctx.now()
        content_hash = contract_content_hash(contract)
        signature_hash = sha256_hex(
            canonical_dumps(
                {
                    "content_hash": content_hash,
                    "party_id": str(party.id),
                    "signed_at": signed_at.isoformat(),
                    "method": signature.method,
                    "ip_address": signature.ip_address,
                }
            )
        )

        # all signature columns are written together with `signed`
        party.signed_at = signed_at
        party.signature_ip = signature.ip_address
        party.signature_user_agent = signature.user_agent
        party.signature_content_hash = content_hash
        party.signature_hash = signature_hash
        party.signature_method = signature.method
        party.signature_certificate_id = signature.certificate_id
        party.signed = True
        ctx.touch()

        self.audit.record(
            ctx,
            AuditAction.CONTRACT_SIGNED,
            f"Contract signed by {party.name or party.email}",
            payload={"party_id": str(party.id), "signature_hash": signature_hash, "method": signature.method},
        )
        ctx.flush()
        ctx.outbox.contract_event(contract.id, "contract_signed", ctx.party_emails())

        if current != ContractStatus.PARTIALLY_SIGNED:
            self.sm.transition(ctx, ContractStatus.PARTIALLY_SIGNED, reason="first signature received")

        if all(p.signed for p in contract.parties):
            self.sm.transition(ctx, ContractStatus.FULLY_SIGNED, reason="all parties signed")
            ctx.outbox.contract_event(contract.id, "contract_fully_signed", ctx.party_emails())
            return True
        return False
