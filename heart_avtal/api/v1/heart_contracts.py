# heart_avtal/api/v1/heart_contracts.py
from __future__ import annotations

import base64
import binascii
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from heart_avtal.core.deps import get_actor, get_heart_avtal_service, to_http
from heart_avtal.core.errors import HeartAvtalError, ValidationError
from heart_avtal.db.session import get_db
from heart_avtal.models.enums import RejectionOutcome
from heart_avtal.schemas.heart_contracts import (
    AddPartyRequest,
    ApproveContractRequest,
    AttachDocumentRequest,
    AuditTrailResponse,
    ClaimPartyRequest,
    ContractListResponse,
    ContractResponse,
    CreateContractRequest,
    InitiateEscrowRequest,
    PartySeatRequest,
    ReasonRequest,
    RejectContractRequest,
    ReleaseEscrowRequest,
    SignContractRequest,
    UpdateContractRequest,
    VersionedRequest,
    VerifyPartyResponse,
)
from heart_avtal.schemas.serializers import audit_entry_to_resp, contract_to_resp
from heart_avtal.schemas.verification import VerificationCodeResponse, VerifyPartyRequest
from heart_avtal.services.context import Actor
from heart_avtal.services.contract_inputs import ContractDraft, ContractUpdate, DocumentInput, PartySeat, SignatureInput
from heart_avtal.services.heart_avtal_service import HeartAvtalService

router = APIRouter(prefix="/heart/contracts")


def _seat(p: PartySeatRequest) -> PartySeat:
    return PartySeat(
        email=p.email,
        name=p.name,
        role=p.role,
        user_id=p.userId,
        phone=p.phone,
        organization=p.organization,
        organization_number=p.organizationNumber,
    )


def _parse_iso(value: Optional[str], field: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise to_http(ValidationError([f"{field} must be an ISO-8601 timestamp"]))


def _version(body: Optional[VersionedRequest]) -> Optional[int]:
    return body.expectedVersion if body is not None else None


# ─────────────────────────────────────────────
# CONTRACTS
# ─────────────────────────────────────────────


@router.post("", response_model=ContractResponse, status_code=201)
def create_contract(
    body: CreateContractRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    draft = ContractDraft(
        title=body.title,
        description=body.description,
        contract_type=body.type,
        initiator=PartySeat(
            email=body.initiatorEmail,
            name=body.initiatorName,
            role=body.initiatorRole,
            user_id=actor.user_id,
            phone=body.initiatorPhone,
        ),
        counterparty=PartySeat(
            email=body.counterpartyEmail,
            name=body.counterpartyName,
            role=body.counterpartyRole,
        ),
        additional_parties=[_seat(p) for p in body.additionalParties],
        amount=body.amount,
        currency=body.currency,
        payment_terms=body.paymentTerms,
        due_date=_parse_iso(body.dueDateIso, "dueDateIso"),
        requires_platform_approval=body.requiresPlatformApproval,
        listing_id=body.listingId,
        auto_created=body.autoCreated,
        priority_level=body.priorityLevel,
        tags=body.tags,
        notes=body.notes,
        internal_reference=body.internalReference,
    )
    try:
        contract = svc.create_contract(db, draft, actor)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.get("", response_model=ContractListResponse)
def list_contracts(
    userId: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    uid = userId or actor.user_id
    rows = svc.list_contracts_for_user(db, uid)
    return {"userId": uid, "contracts": [contract_to_resp(c) for c in rows]}


@router.get("/{contractId}", response_model=ContractResponse)
def get_contract(
    contractId: str,
    db: Session = Depends(get_db),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.get_contract(db, contractId)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.patch("/{contractId}", response_model=ContractResponse)
def update_contract(
    contractId: str,
    body: UpdateContractRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    """Edit a draft; omitted fields keep their value."""
    update = ContractUpdate(
        title=body.title,
        description=body.description,
        amount=body.amount,
        currency=body.currency,
        payment_terms=body.paymentTerms,
        due_date=_parse_iso(body.dueDateIso, "dueDateIso"),
        priority_level=body.priorityLevel,
        tags=body.tags,
        notes=body.notes,
        internal_reference=body.internalReference,
    )
    try:
        contract = svc.update_contract(db, contractId, update, actor, expected_version=body.expectedVersion)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.delete("/{contractId}", status_code=204)
def delete_contract(
    contractId: str,
    expectedVersion: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        svc.delete_contract(db, contractId, actor, expected_version=expectedVersion)
    except HeartAvtalError as e:
        raise to_http(e)
    return Response(status_code=204)


@router.get("/{contractId}/audit", response_model=AuditTrailResponse)
def get_audit_trail(
    contractId: str,
    db: Session = Depends(get_db),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        entries = svc.get_audit_trail(db, contractId)
        valid = svc.verify_audit_chain(db, contractId)
    except HeartAvtalError as e:
        raise to_http(e)
    return {
        "contractId": contractId,
        "chainValid": valid,
        "entries": [audit_entry_to_resp(e) for e in entries],
    }


# ─────────────────────────────────────────────
# PARTIES & DOCUMENTS
# ─────────────────────────────────────────────


@router.post("/{contractId}/parties", response_model=ContractResponse)
def add_party(
    contractId: str,
    body: AddPartyRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.add_party(db, contractId, _seat(body.party), actor, expected_version=body.expectedVersion)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/parties/{partyId}/claim", response_model=ContractResponse)
def claim_party(
    contractId: str,
    partyId: str,
    body: ClaimPartyRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.claim_party(
            db, contractId, partyId, actor, name=body.name, expected_version=body.expectedVersion
        )
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/documents", response_model=ContractResponse)
def attach_document(
    contractId: str,
    body: AttachDocumentRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        content = base64.b64decode(body.contentBase64, validate=True)
    except (binascii.Error, ValueError):
        raise to_http(ValidationError(["contentBase64 is not valid base64"]))

    doc = DocumentInput(name=body.name, document_type=body.type, url=body.url, content=content)
    try:
        contract = svc.attach_document(db, contractId, doc, actor, expected_version=body.expectedVersion)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


# ─────────────────────────────────────────────
# VERIFICATION
# ─────────────────────────────────────────────


@router.post("/{contractId}/verification/request", response_model=ContractResponse)
def request_verification(
    contractId: str,
    body: Optional[VersionedRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.request_verification(db, contractId, actor, expected_version=_version(body))
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/parties/{partyId}/verification-code", response_model=VerificationCodeResponse)
def send_verification_code(
    contractId: str,
    partyId: str,
    body: Optional[VersionedRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract, reference = svc.send_verification_code(
            db, contractId, partyId, actor, expected_version=_version(body)
        )
    except HeartAvtalError as e:
        raise to_http(e)
    return {
        "contractId": str(contract.id),
        "partyId": partyId,
        "reference": reference,
        "version": contract.version,
    }


@router.post("/{contractId}/parties/{partyId}/verify", response_model=VerifyPartyResponse)
def verify_party(
    contractId: str,
    partyId: str,
    body: Optional[VerifyPartyRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    body = body or VerifyPartyRequest()
    try:
        contract, results = svc.verify_party(
            db, contractId, partyId, actor, checks=body.checks, expected_version=body.expectedVersion
        )
    except HeartAvtalError as e:
        raise to_http(e)
    return {"contract": contract_to_resp(contract), "results": [r.model_dump() for r in results]}


# ─────────────────────────────────────────────
# SIGNING
# ─────────────────────────────────────────────


@router.post("/{contractId}/signatures/request", response_model=ContractResponse)
def request_signatures(
    contractId: str,
    body: Optional[VersionedRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.request_signatures(db, contractId, actor, expected_version=_version(body))
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/parties/{partyId}/sign", response_model=ContractResponse)
def sign_contract(
    contractId: str,
    partyId: str,
    body: SignContractRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    signature = SignatureInput(
        ip_address=actor.ip_address,
        user_agent=body.userAgent,
        method=body.method,
        certificate_id=body.certificateId,
    )
    try:
        contract = svc.sign_contract(
            db, contractId, partyId, signature, actor, expected_version=body.expectedVersion
        )
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


# ─────────────────────────────────────────────
# ESCROW
# ─────────────────────────────────────────────


@router.post("/{contractId}/escrow/initiate", response_model=ContractResponse)
def initiate_escrow(
    contractId: str,
    body: Optional[InitiateEscrowRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    body = body or InitiateEscrowRequest()
    try:
        contract = svc.initiate_escrow(
            db, contractId, actor, payment_method=body.paymentMethod, expected_version=body.expectedVersion
        )
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/escrow/release", response_model=ContractResponse)
def release_escrow(
    contractId: str,
    body: ReleaseEscrowRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.release_escrow(
            db, contractId, body.approvals, actor, expected_version=body.expectedVersion
        )
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/escrow/refund", response_model=ContractResponse)
def refund_escrow(
    contractId: str,
    body: ReasonRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.refund_escrow(db, contractId, body.reason, actor, expected_version=body.expectedVersion)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


# ─────────────────────────────────────────────
# PLATFORM APPROVAL
# ─────────────────────────────────────────────


@router.post("/{contractId}/approval/review", response_model=ContractResponse)
def start_review(
    contractId: str,
    body: Optional[VersionedRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.start_review(db, contractId, actor, expected_version=_version(body))
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/approval/approve", response_model=ContractResponse)
def approve_contract(
    contractId: str,
    body: Optional[ApproveContractRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    body = body or ApproveContractRequest()
    try:
        contract = svc.approve_contract(
            db,
            contractId,
            actor,
            comments=body.comments,
            conditions=body.conditions,
            expected_version=body.expectedVersion,
        )
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/approval/reject", response_model=ContractResponse)
def reject_contract(
    contractId: str,
    body: RejectContractRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.reject_contract(
            db,
            contractId,
            body.comments,
            actor,
            outcome=RejectionOutcome(body.outcome),
            expected_version=body.expectedVersion,
        )
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/approval/escalate", response_model=ContractResponse)
def escalate_contract(
    contractId: str,
    body: ReasonRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.escalate_contract(db, contractId, body.reason, actor, expected_version=body.expectedVersion)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


# ─────────────────────────────────────────────
# ESCAPE HATCHES
# ─────────────────────────────────────────────


@router.post("/{contractId}/cancel", response_model=ContractResponse)
def cancel_contract(
    contractId: str,
    body: ReasonRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.cancel_contract(db, contractId, body.reason, actor, expected_version=body.expectedVersion)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)


@router.post("/{contractId}/dispute", response_model=ContractResponse)
def open_dispute(
    contractId: str,
    body: ReasonRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    try:
        contract = svc.open_dispute(db, contractId, body.reason, actor, expected_version=body.expectedVersion)
    except HeartAvtalError as e:
        raise to_http(e)
    return contract_to_resp(contract)
