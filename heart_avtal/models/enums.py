#heart_avtal/models/enums.py
from __future__ import annotations
from enum import Enum


class ContractStatus(str, Enum):
    DRAFT = "draft"
    PENDING_VERIFICATION = "pending_verification"
    VERIFICATION_COMPLETE = "verification_complete"
    PENDING_SIGNATURES = "pending_signatures"
    PARTIALLY_SIGNED = "partially_signed"
    FULLY_SIGNED = "fully_signed"
    ESCROW_SECURED = "escrow_secured"
    PENDING_PLATFORM_APPROVAL = "pending_platform_approval"
    PLATFORM_APPROVED = "platform_approved"
    FUNDS_RELEASED = "funds_released"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class ContractType(str, Enum):
    BUSINESS_PURCHASE = "business_purchase"
    BUSINESS_SALE = "business_sale"
    ASSET_TRANSFER = "asset_transfer"
    PARTNERSHIP = "partnership"
    NDA = "nda"
    INVESTMENT = "investment"
    SERVICE_AGREEMENT = "service_agreement"
    LICENSING = "licensing"


class EscrowStatus(str, Enum):
    NONE = "none"
    INITIATING = "initiating"
    SECURED = "secured"
    PENDING_RELEASE = "pending_release"
    RELEASED = "released"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class KycStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    VERIFIED = "verified"
    FAILED = "failed"
    EXPIRED = "expired"


class VerificationLevel(str, Enum):
    BASIC = "basic"
    ENHANCED = "enhanced"
    PREMIUM = "premium"


class PartyRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    WITNESS = "witness"
    GUARANTOR = "guarantor"


class SignatureMethod(str, Enum):
    DIGITAL = "digital"
    BIOMETRIC = "biometric"
    SMS = "sms"
    BANKID = "bankid"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"
    ESCALATED = "escalated"


class RejectionOutcome(str, Enum):
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DocumentType(str, Enum):
    CONTRACT = "contract"
    ADDENDUM = "addendum"
    SCHEDULE = "schedule"
    SUPPORTING_DOCUMENT = "supporting_document"
