#heart_avtal/models/heart_contract.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heart_avtal.db.base import Base, JSONType
from heart_avtal.models.enums import ContractStatus


def _now():
    return datetime.now(timezone.utc)


class HeartContract(Base):
    """
    Aggregate root of a Heart Avtal.

    Owns its parties, escrow, platform approval and audit trail.
    `version` is the optimistic-lock column. The service bumps it on every
    mutation and SQLAlchemy issues the UPDATE as `... WHERE version = :old`.
    """

    __tablename__ = "heart_contracts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    contract_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(40), nullable=False, default=ContractStatus.DRAFT.value
    )

    # Financials
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="SEK")
    payment_terms: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Origin
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    listing_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    auto_created: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Legal compliance block (jurisdiction, law, dispute resolution, data protection)
    legal_compliance_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    documents_json: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    metadata_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    parties = relationship(
        "ContractParty",
        back_populates="contract",
        order_by="ContractParty.position",
        cascade="all, delete-orphan",
    )
    escrow = relationship(
        "ContractEscrow",
        back_populates="contract",
        uselist=False,
        cascade="all, delete-orphan",
    )
    platform_approval = relationship(
        "PlatformApproval",
        back_populates="contract",
        uselist=False,
        cascade="all, delete-orphan",
    )
    audit_entries = relationship(
        "ContractAuditEntry",
        back_populates="contract",
        order_by="ContractAuditEntry.seq",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    __table_args__ = (
        Index("ix_heart_contracts_created_by", "created_by"),
        Index("ix_heart_contracts_status", "status"),
    )

    def party(self, party_id) -> Optional["ContractParty"]:
        pid = str(party_id)
        for p in self.parties:
            if str(p.id) == pid:
                return p
        return None

    def parties_with_role(self, role: str) -> list:
        return [p for p in self.parties if p.role == role]
