from __future__ import annotations

from typing import Any, Dict, Optional

from heart_avtal.models.contract_audit_entry import ContractAuditEntry
from heart_avtal.models.contract_escrow import ContractEscrow
from heart_avtal.models.contract_party import ContractParty
from heart_avtal.models.heart_contract import HeartContract
from heart_avtal.models.platform_approval import PlatformApproval
from heart_avtal.services.context import as_aware


def _iso(dt) -> Optional[str]:
    dt = as_aware(dt)
    return dt.isoformat() if dt else None


def _money(x) -> Optional[str]:
    return str(x) if x is not None else None


def party_to_resp(p: ContractParty) -> Dict[str, Any]:
    signature = None
    if p.signed:
        signature = {
            "signedAtIso": _iso(p.signed_at),
            "ipAddress": p.signature_ip,
            "userAgent": p.signature_user_agent,
            "contentHash": p.signature_content_hash,
            "signatureHash": p.signature_hash,
            "method": p.signature_method,
            "certificateId": p.signature_certificate_id,
        }
    return {
        "partyId": str(p.id),
        "userId": p.user_id,
        "name": p.name,
        "email": p.email,
        "phone": p.phone,
        "organization": p.organization,
        "organizationNumber": p.organization_number,
        "role": p.role,
        "signed": p.signed,
        "signature": signature,
        "verification": {
            "idVerified": p.id_verified,
            "emailVerified": p.email_verified,
            "phoneVerified": p.phone_verified,
            "bankAccountVerified": p.bank_account_verified,
            "kycStatus": p.kyc_status,
            "verificationLevel": p.verification_level,
            "verifiedAtIso": _iso(p.verified_at),
            "verificationDocuments": list(p.verification_documents_json or []),
        },
        "notifications": dict(p.notifications_json or {}),
    }


def escrow_to_resp(e: ContractEscrow) -> Dict[str, Any]:
    fees = None
    if e.platform_fee is not None:
        fees = {
            "platformFee": _money(e.platform_fee),
            "escrowFee": _money(e.escrow_fee),
            "paymentProcessingFee": _money(e.payment_processing_fee),
            "totalFees": _money(e.total_fees),
            "netAmount": _money(e.net_amount),
            "platformFeeRate": _money(e.platform_fee_rate),
            "escrowFeeRate": _money(e.escrow_fee_rate),
            "paymentProcessingFeeRate": _money(e.payment_processing_fee_rate),
        }
    return {
        "status": e.status,
        "amount": _money(e.amount),
        "currency": e.currency,
        "accountId": e.account_id,
        "securedAtIso": _iso(e.secured_at),
        "releaseConditions": list(e.release_conditions_json or []),
        "releaseApprovals": dict(e.release_approvals_json or {}),
        "fees": fees,
        "transactionId": e.transaction_id,
        "releasedAtIso": _iso(e.released_at),
        "refundId": e.refund_id,
        "refundedAtIso": _iso(e.refunded_at),
        "refundReason": e.refund_reason,
    }


def approval_to_resp(a: PlatformApproval) -> Dict[str, Any]:
    return {
        "required": a.required,
        "status": a.status,
        "reviewedBy": a.reviewed_by,
        "reviewedAtIso": _iso(a.reviewed_at),
        "approvedBy": a.approved_by,
        "approvedAtIso": _iso(a.approved_at),
        "comments": a.comments,
        "conditions": list(a.conditions_json or []),
        "escalationReason": a.escalation_reason,
        "riskAssessment": a.risk_assessment_json,
    }


def audit_entry_to_resp(e: ContractAuditEntry) -> Dict[str, Any]:
    return {
        "seq": e.seq,
        "timestampIso": _iso(e.created_at),
        "action": e.action,
        "userId": e.user_id,
        "details": e.details,
        "ipAddress": e.ip_address,
        "requestId": e.request_id,
        "prevHash": e.prev_hash,
        "entryHash": e.entry_hash,
    }


def contract_to_resp(c: HeartContract) -> Dict[str, Any]:
    return {
        "contractId": str(c.id),
        "version": c.version,
        "title": c.title,
        "description": c.description,
        "type": c.contract_type,
        "status": c.status,
        "amount": _money(c.amount),
        "currency": c.currency,
        "paymentTerms": c.payment_terms,
        "createdBy": c.created_by,
        "listingId": c.listing_id,
        "autoCreated": c.auto_created,
        "createdAtIso": _iso(c.created_at),
        "updatedAtIso": _iso(c.updated_at),
        "dueDateIso": _iso(c.due_date),
        "completedAtIso": _iso(c.completed_at),
        "parties": [party_to_resp(p) for p in c.parties],
        "escrow": escrow_to_resp(c.escrow),
        "platformApproval": approval_to_resp(c.platform_approval),
        "legalCompliance": dict(c.legal_compliance_json or {}),
        "documents": list(c.documents_json or []),
        "metadata": dict(c.metadata_json or {}),
        "auditTrail": [audit_entry_to_resp(e) for e in c.audit_entries],
    }
