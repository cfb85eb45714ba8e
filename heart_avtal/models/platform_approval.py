#heart_avtal/models/platform_approval.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heart_avtal.db.base import Base, JSONType
from heart_avtal.models.enums import ApprovalStatus


class PlatformApproval(Base):
    __tablename__ = "heart_contract_approvals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("heart_contracts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ApprovalStatus.PENDING.value)

    reviewed_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    conditions_json: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    escalation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Rule-based assessment computed when the contract is queued for review
    risk_assessment_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    contract = relationship("HeartContract", back_populates="platform_approval")
