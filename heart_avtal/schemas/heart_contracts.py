from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from heart_avtal.schemas.verification import VerificationCheckResult


# ─────────────────────────────────────────────
# REQUESTS
# ─────────────────────────────────────────────


class PartySeatRequest(BaseModel):
    email: str
    name: str = ""
    role: str = "seller"
    userId: Optional[str] = None
    phone: Optional[str] = None
    organization: Optional[str] = None
    organizationNumber: Optional[str] = None


class CreateContractRequest(BaseModel):
    title: str
    description: str
    type: str
    initiatorName: str = ""
    initiatorEmail: str
    initiatorRole: str = "buyer"
    initiatorPhone: Optional[str] = None
    counterpartyEmail: str
    counterpartyName: str = ""
    counterpartyRole: str = "seller"
    additionalParties: List[PartySeatRequest] = Field(default_factory=list)

    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    paymentTerms: str = ""
    dueDateIso: Optional[str] = None
    requiresPlatformApproval: Optional[bool] = None

    listingId: Optional[str] = None
    autoCreated: bool = False
    priorityLevel: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    notes: str = ""
    internalReference: Optional[str] = None


class VersionedRequest(BaseModel):
    expectedVersion: Optional[int] = None


class UpdateContractRequest(VersionedRequest):
    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    paymentTerms: Optional[str] = None
    dueDateIso: Optional[str] = None
    priorityLevel: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    internalReference: Optional[str] = None


class AddPartyRequest(VersionedRequest):
    party: PartySeatRequest


class ClaimPartyRequest(VersionedRequest):
    name: str


class AttachDocumentRequest(VersionedRequest):
    name: str
    type: str = "supporting_document"
    url: str = ""
    contentBase64: str


class ReasonRequest(VersionedRequest):
    reason: str


class SignContractRequest(VersionedRequest):
    userAgent: str = "unknown"
    method: str = "digital"
    certificateId: Optional[str] = None


class InitiateEscrowRequest(VersionedRequest):
    paymentMethod: Optional[Dict[str, Any]] = None


class ReleaseEscrowRequest(VersionedRequest):
    approvals: Dict[str, bool]


class ApproveContractRequest(VersionedRequest):
    comments: Optional[str] = None
    conditions: List[str] = Field(default_factory=list)


class RejectContractRequest(VersionedRequest):
    comments: str
    outcome: Literal["disputed", "cancelled"] = "disputed"


# ─────────────────────────────────────────────
# RESPONSES
# ─────────────────────────────────────────────


class SignatureResponse(BaseModel):
    signedAtIso: str
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
    contentHash: str
    signatureHash: str
    method: str
    certificateId: Optional[str] = None


class PartyVerificationResponse(BaseModel):
    idVerified: bool
    emailVerified: bool
    phoneVerified: bool
    bankAccountVerified: bool
    kycStatus: str
    verificationLevel: str
    verifiedAtIso: Optional[str] = None
    verificationDocuments: List[str]


class PartyResponse(BaseModel):
    partyId: str
    userId: Optional[str] = None
    name: str
    email: str
    phone: Optional[str] = None
    organization: Optional[str] = None
    organizationNumber: Optional[str] = None
    role: str
    signed: bool
    signature: Optional[SignatureResponse] = None
    verification: PartyVerificationResponse
    notifications: Dict[str, Any]


class EscrowFeesResponse(BaseModel):
    platformFee: str
    escrowFee: str
    paymentProcessingFee: str
    totalFees: str
    netAmount: str
    platformFeeRate: str
    escrowFeeRate: str
    paymentProcessingFeeRate: str


class EscrowResponse(BaseModel):
    status: str
    amount: str
    currency: str
    accountId: Optional[str] = None
    securedAtIso: Optional[str] = None
    releaseConditions: List[str]
    releaseApprovals: Dict[str, Any]
    fees: Optional[EscrowFeesResponse] = None
    transactionId: Optional[str] = None
    releasedAtIso: Optional[str] = None
    refundId: Optional[str] = None
    refundedAtIso: Optional[str] = None
    refundReason: Optional[str] = None


class PlatformApprovalResponse(BaseModel):
    required: bool
    status: str
    reviewedBy: Optional[str] = None
    reviewedAtIso: Optional[str] = None
    approvedBy: Optional[str] = None
    approvedAtIso: Optional[str] = None
    comments: Optional[str] = None
    conditions: List[str]
    escalationReason: Optional[str] = None
    riskAssessment: Optional[Dict[str, Any]] = None


class AuditEntryResponse(BaseModel):
    seq: int
    timestampIso: str
    action: str
    userId: str
    details: str
    ipAddress: str
    requestId: Optional[str] = None
    prevHash: str
    entryHash: str


class ContractResponse(BaseModel):
    contractId: str
    version: int
    title: str
    description: str
    type: str
    status: str
    amount: Optional[str] = None
    currency: str
    paymentTerms: str
    createdBy: str
    listingId: Optional[str] = None
    autoCreated: bool
    createdAtIso: str
    updatedAtIso: str
    dueDateIso: Optional[str] = None
    completedAtIso: Optional[str] = None

    parties: List[PartyResponse]
    escrow: EscrowResponse
    platformApproval: PlatformApprovalResponse
    legalCompliance: Dict[str, Any]
    documents: List[Dict[str, Any]]
    metadata: Dict[str, Any]
    auditTrail: List[AuditEntryResponse]


class ContractListResponse(BaseModel):
    userId: str
    contracts: List[ContractResponse]


class VerifyPartyResponse(BaseModel):
    contract: ContractResponse
    results: List[VerificationCheckResult]


class AuditTrailResponse(BaseModel):
    contractId: str
    chainValid: bool
    entries: List[AuditEntryResponse]


class FeePreviewResponse(BaseModel):
    amount: str
    platformFee: str
    escrowFee: str
    paymentProcessingFee: str
    totalFees: str
    netAmount: str
    platformFeeRate: str
    escrowFeeRate: str
    paymentProcessingFeeRate: str
