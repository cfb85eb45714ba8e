#heart_avtal/models/contract_escrow.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heart_avtal.db.base import Base, JSONType
from heart_avtal.models.enums import EscrowStatus


class ContractEscrow(Base):
    """
    Singleton escrow record of a contract (present from creation, status 'none').

    Fee amounts and the rates that produced them are fixed when the escrow is
    initiated and never recomputed.
    """

    __tablename__ = "heart_contract_escrows"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("heart_contracts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=EscrowStatus.NONE.value)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Opaque handle from the escrow backend
    account_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    secured_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    release_conditions_json: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    release_approvals_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    # Fees
    platform_fee_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 5), nullable=True)
    escrow_fee_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 5), nullable=True)
    payment_processing_fee_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 5), nullable=True)
    platform_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)
    escrow_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)
    payment_processing_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)
    net_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)

    # Release
    transaction_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Refund
    refund_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    contract = relationship("HeartContract", back_populates="escrow")

    @property
    def total_fees(self) -> Optional[Decimal]:
        if self.platform_fee is None:
            return None
        return self.platform_fee + self.escrow_fee + self.payment_processing_fee
