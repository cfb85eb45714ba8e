from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from heart_avtal.core.config import Settings
from heart_avtal.core.contract_status_graph import TERMINAL_STATUSES, is_allowed
from heart_avtal.core.errors import InvalidTransition
from heart_avtal.models.enums import ContractStatus, EscrowStatus, KycStatus
from heart_avtal.models.heart_contract import HeartContract
from heart_avtal.services.audit_service import AuditAction, AuditTrail
from heart_avtal.services.context import ContractContext

logger = logging.getLogger(__name__)


def has_escrow_amount(contract: HeartContract) -> bool:
    return contract.amount is not None and contract.amount > 0


@dataclass(frozen=True)
class ApprovalPolicy:
    """When the platform gate approves on its own."""

    auto_approval_threshold: Decimal = Decimal("500000")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApprovalPolicy":
        return cls(auto_approval_threshold=Decimal(str(settings.auto_approval_threshold)))

    def approves_automatically(self, contract: HeartContract) -> bool:
        approval = contract.platform_approval
        if approval is None or not approval.required:
            return True
        amount = contract.amount if contract.amount is not None else Decimal("0")
        return amount < self.auto_approval_threshold


class AutoStep(str, Enum):
    NONE = "none"
    COMPLETE_VERIFICATION = "complete_verification"
    INITIATE_ESCROW = "initiate_escrow"
    QUEUE_FOR_APPROVAL = "queue_for_approval"
    AUTO_APPROVE = "auto_approve"
    COMPLETE = "complete"


class ContractStateMachine:
    """
    Single writer of `HeartContract.status`.

    Responsibilities:
    - Enforce the transition graph
    - Stamp version / updatedAt / completedAt
    - Record one status_changed audit entry per transition
    - Queue one status notification per transition
    - Decide the next automatic step (executed by the service)
    """

    def __init__(self, audit: AuditTrail, policy: ApprovalPolicy):
        self.audit = audit
        self.policy = policy

    # ─────────────────────────────────────────────
    # GUARDS
    # ─────────────────────────────────────────────

    @staticmethod
    def status_of(contract: HeartContract) -> ContractStatus:
        return ContractStatus(contract.status)

    def require_status(self, contract: HeartContract, *allowed: ContractStatus, condition: str) -> None:
        current = self.status_of(contract)
        if current not in allowed:
            raise InvalidTransition(current.value, condition)

    def require_not_terminal(self, contract: HeartContract) -> None:
        current = self.status_of(contract)
        if current in TERMINAL_STATUSES:
            raise InvalidTransition(current.value, f"contract is {current.value}")

    # ─────────────────────────────────────────────
    # TRANSITION
    # ─────────────────────────────────────────────

    def transition(self, ctx: ContractContext, target: ContractStatus, *, reason: str) -> None:
        contract = ctx.contract
        current = self.status_of(contract)

        if not is_allowed(current, target):
            raise InvalidTransition(current.value, "transition not permitted", target.value)

        contract.status = target.value
        ctx.touch()
        if target == ContractStatus.COMPLETED and contract.completed_at is None:
            contract.completed_at = ctx.now()

        self.audit.record(
            ctx,
            AuditAction.STATUS_CHANGED,
            f"Status changed from {current.value} to {target.value}: {reason}",
            payload={"from": current.value, "to": target.value, "reason": reason},
        )
        ctx.outbox.status_update(contract.id, target.value)
        ctx.flush()

        logger.info(
            "contract status changed",
            extra={
                "contract_id": str(contract.id),
                "from_status": current.value,
                "to_status": target.value,
                "version": contract.version,
            },
        )

    # ─────────────────────────────────────────────
    # AUTOMATIC PROGRESSION
    # ─────────────────────────────────────────────

    def next_automatic_step(self, contract: HeartContract) -> AutoStep:
        status = self.status_of(contract)
        escrow_status: Optional[str] = contract.escrow.status if contract.escrow is not None else None

        if status == ContractStatus.PENDING_VERIFICATION:
            if contract.parties and all(p.kyc_status == KycStatus.VERIFIED.value for p in contract.parties):
                return AutoStep.COMPLETE_VERIFICATION
            return AutoStep.NONE

        if status == ContractStatus.FULLY_SIGNED:
            if has_escrow_amount(contract):
                if escrow_status == EscrowStatus.NONE.value:
                    return AutoStep.INITIATE_ESCROW
                return AutoStep.NONE
            return self._approval_step(contract)

        if status == ContractStatus.ESCROW_SECURED:
            return self._approval_step(contract)

        if status == ContractStatus.PLATFORM_APPROVED:
            if not has_escrow_amount(contract):
                return AutoStep.COMPLETE
            return AutoStep.NONE

        if status == ContractStatus.FUNDS_RELEASED:
            return AutoStep.COMPLETE

        return AutoStep.NONE

    def _approval_step(self, contract: HeartContract) -> AutoStep:
        if self.policy.approves_automatically(contract):
            return AutoStep.AUTO_APPROVE
        return AutoStep.QUEUE_FOR_APPROVAL

    def unverified_parties_condition(self, contract: HeartContract) -> str:
        unverified = [p for p in contract.parties if p.kyc_status != KycStatus.VERIFIED.value]
        return f"{len(unverified)} of {len(contract.parties)} parties unverified"
