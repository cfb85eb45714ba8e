from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict

from heart_avtal.core.config import Settings

CENT = Decimal("0.01")

# Numeric(20, 2) columns leave room for 18 integer digits.
MAX_INTEGER_DIGITS = 18
AMOUNT_BOUND = Decimal(10) ** MAX_INTEGER_DIGITS


def _d(x: Any) -> Decimal:
    if x is None:
        raise ValueError("Missing required numeric input.")
    try:
        d = Decimal(str(x))
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid numeric input: {x}")
    if not d.is_finite():
        raise ValueError(f"Invalid numeric input: {x}")
    return d


def _money(x: Decimal) -> Decimal:
    try:
        m = x.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Invalid numeric input: {x}")
    if abs(m) >= AMOUNT_BOUND:
        raise ValueError(f"Amount exceeds {MAX_INTEGER_DIGITS} integer digits.")
    return m


def to_money(x: Any) -> Decimal:
    """Parse an amount and round it half-up to cents; ValueError if it cannot be stored."""
    return _money(_d(x))


@dataclass(frozen=True)
class FeeSchedule:
    platform_rate: Decimal = Decimal("0.03")
    escrow_rate: Decimal = Decimal("0.005")
    payment_processing_rate: Decimal = Decimal("0.015")

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeeSchedule":
        return cls(
            platform_rate=_d(settings.fee_platform_rate),
            escrow_rate=_d(settings.fee_escrow_rate),
            payment_processing_rate=_d(settings.fee_payment_processing_rate),
        )


@dataclass(frozen=True)
class FeeBreakdown:
    amount: Decimal
    platform_fee: Decimal
    escrow_fee: Decimal
    payment_processing_fee: Decimal
    net_amount: Decimal
    schedule: FeeSchedule

    @property
    def total_fees(self) -> Decimal:
        return self.platform_fee + self.escrow_fee + self.payment_processing_fee

    def to_dict(self) -> Dict[str, str]:
        return {
            "amount": str(self.amount),
            "platformFee": str(self.platform_fee),
            "escrowFee": str(self.escrow_fee),
            "paymentProcessingFee": str(self.payment_processing_fee),
            "totalFees": str(self.total_fees),
            "netAmount": str(self.net_amount),
            "platformFeeRate": str(self.schedule.platform_rate),
            "escrowFeeRate": str(self.schedule.escrow_rate),
            "paymentProcessingFeeRate": str(self.schedule.payment_processing_rate),
        }


def compute_contract_fees(amount: Any, schedule: FeeSchedule) -> FeeBreakdown:
    """
    fee_i  = round_half_up(amount · rate_i, 0.01)
    net    = amount − Σ fee_i

    Net is derived from the rounded fees so the three fees and the net always
    add back up to the amount exactly.
    """
    a = to_money(amount)
    if a < 0:
        raise ValueError("Amount must be non-negative.")

    platform = _money(a * schedule.platform_rate)
    escrow = _money(a * schedule.escrow_rate)
    processing = _money(a * schedule.payment_processing_rate)

    return FeeBreakdown(
        amount=a,
        platform_fee=platform,
        escrow_fee=escrow,
        payment_processing_fee=processing,
        net_amount=a - (platform + escrow + processing),
        schedule=schedule,
    )
