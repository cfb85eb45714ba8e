from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heart_avtal.db.base import Base, JSONType


class ContractAuditEntry(Base):
    """
    Append-only, hash-chained audit trail entry of one contract.
    - Never UPDATE, never DELETE (drafts excepted, with their contract)
    - seq is monotonic per contract, starting at 1
    - entry_hash = SHA256(prev_hash + canonical(payload_json))
    """
    __tablename__ = "heart_contract_audit_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("heart_contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # What happened, and who did it
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False, default="unknown")
    request_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Chain
    prev_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    entry_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    payload_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    contract = relationship("HeartContract", back_populates="audit_entries")

    __table_args__ = (
        UniqueConstraint("contract_id", "seq", name="uq_heart_audit_seq"),
        Index("ix_heart_audit_contract", "contract_id"),
        Index("ix_heart_audit_action", "action"),
    )
