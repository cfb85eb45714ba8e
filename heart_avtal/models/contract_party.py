#heart_avtal/models/contract_party.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heart_avtal.db.base import Base, JSONType
from heart_avtal.models.enums import KycStatus, VerificationLevel


class ContractParty(Base):
    """
    One signatory of a contract. Exists only inside its contract.

    The signature columns are written once, together with `signed=true`,
    and never cleared.
    """

    __tablename__ = "heart_contract_parties"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("heart_contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    # Identity
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    organization: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    organization_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)

    # Signature (immutable once set)
    signed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signature_ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    signature_user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    signature_content_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    signature_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    signature_method: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    signature_certificate_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # KYC
    id_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    phone_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bank_account_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    kyc_status: Mapped[str] = mapped_column(String(16), nullable=False, default=KycStatus.PENDING.value)
    verification_level: Mapped[str] = mapped_column(
        String(16), nullable=False, default=VerificationLevel.BASIC.value
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    verification_documents_json: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)

    notifications_json: Mapped[Dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=lambda: {"email": True, "sms": True, "push": True}
    )

    contract = relationship("HeartContract", back_populates="parties")

    __table_args__ = (
        UniqueConstraint("contract_id", "position", name="uq_heart_party_position"),
        CheckConstraint(
            "NOT signed OR (signed_at IS NOT NULL AND signature_hash IS NOT NULL)",
            name="ck_heart_party_signed_has_signature",
        ),
        Index("ix_heart_party_user", "user_id"),
        Index("ix_heart_party_contract", "contract_id"),
    )

    @property
    def is_verified(self) -> bool:
        return self.kyc_status == KycStatus.VERIFIED.value
