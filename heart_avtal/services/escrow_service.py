from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from heart_avtal.core.errors import InvalidTransition, MissingApprovals, NoAmountSpecified
from heart_avtal.integrations.base import call_collaborator
from heart_avtal.integrations.escrow_backend import EscrowBackend
from heart_avtal.models.enums import ContractStatus, EscrowStatus, PartyRole
from heart_avtal.models.heart_contract import HeartContract
from heart_avtal.services.audit_service import AuditAction, AuditTrail
from heart_avtal.services.context import ContractContext
from heart_avtal.services.fees import FeeSchedule, compute_contract_fees
from heart_avtal.services.state_machine import ContractStateMachine, has_escrow_amount

logger = logging.getLogger(__name__)

COLLABORATOR = "escrow_backend"

DEFAULT_RELEASE_CONDITIONS = [
    "Alla parter har signerat avtalet",
    "Plattformen har godkänt avtalet",
    "Inga tvister har rapporterats",
]

REFUNDABLE = (EscrowStatus.SECURED.value, EscrowStatus.DISPUTED.value)


def required_release_roles(contract: HeartContract) -> List[str]:
    roles = [PartyRole.BUYER.value, PartyRole.SELLER.value, "platform"]
    if contract.parties_with_role(PartyRole.WITNESS.value):
        roles.append(PartyRole.WITNESS.value)
    return roles


class EscrowLedger:
    """
    Escrow custody of one contract.

    - initiate: fully_signed -> escrow_secured (fees fixed here)
    - release:  platform_approved -> funds_released, paid to the seller
    - refund:   secured|disputed escrow -> refunded, contract cancelled
    """

    def __init__(
        self,
        state_machine: ContractStateMachine,
        audit: AuditTrail,
        backend: EscrowBackend,
        fees: FeeSchedule,
        *,
        timeout_seconds: float,
    ):
        self.sm = state_machine
        self.audit = audit
        self.backend = backend
        self.fees = fees
        self.timeout_seconds = timeout_seconds

    def initiate(
        self,
        ctx: ContractContext,
        *,
        payment_method: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        contract = ctx.contract
        escrow = contract.escrow

        if not has_escrow_amount(contract):
            raise NoAmountSpecified(contract.id)
        self.sm.require_status(
            contract, ContractStatus.FULLY_SIGNED, condition="escrow is initiated once every party has signed"
        )
        if escrow.status != EscrowStatus.NONE.value:
            raise InvalidTransition(contract.status, f"escrow is already {escrow.status}")

        breakdown = compute_contract_fees(contract.amount, self.fees)
        deadline = timeout or self.timeout_seconds

        account_id = call_collaborator(
            COLLABORATOR, "create_account", self.backend.create_account,
            str(contract.id), breakdown.amount, contract.currency, timeout=deadline,
        )
        call_collaborator(
            COLLABORATOR, "secure", self.backend.secure,
            account_id, payment_method, timeout=deadline,
        )

        approvals = {role: False for role in required_release_roles(contract)}

        escrow.status = EscrowStatus.SECURED.value
        escrow.amount = breakdown.amount
        escrow.currency = contract.currency
        escrow.account_id = account_id
        escrow.secured_at = ctx.now()
        escrow.release_approvals_json = approvals
        escrow.platform_fee_rate = breakdown.schedule.platform_rate
        escrow.escrow_fee_rate = breakdown.schedule.escrow_rate
        escrow.payment_processing_fee_rate = breakdown.schedule.payment_processing_rate
        escrow.platform_fee = breakdown.platform_fee
        escrow.escrow_fee = breakdown.escrow_fee
        escrow.payment_processing_fee = breakdown.payment_processing_fee
        escrow.net_amount = breakdown.net_amount
        ctx.touch()

        self.audit.record(
            ctx,
            AuditAction.ESCROW_SECURED,
            f"Escrow secured: {breakdown.amount} {contract.currency} (account {account_id})",
            payload={"account_id": account_id, "fees": breakdown.to_dict()},
        )
        ctx.flush()

        self.sm.transition(ctx, ContractStatus.ESCROW_SECURED, reason="escrow secured")
        ctx.outbox.contract_event(contract.id, "escrow_secured", ctx.party_emails())

    def release(
        self,
        ctx: ContractContext,
        approvals: Mapping[str, bool],
        *,
        timeout: Optional[float] = None,
    ) -> None:
        contract = ctx.contract
        escrow = contract.escrow

        if not has_escrow_amount(contract):
            raise NoAmountSpecified(contract.id)
        self.sm.require_status(
            contract,
            ContractStatus.PLATFORM_APPROVED,
            condition="funds are released only after platform approval",
        )
        if escrow.status != EscrowStatus.SECURED.value:
            raise InvalidTransition(contract.status, f"escrow is {escrow.status}, not secured")

        required = required_release_roles(contract)
        missing = [role for role in required if not approvals.get(role)]
        if missing:
            raise MissingApprovals(missing)

        sellers = contract.parties_with_role(PartyRole.SELLER.value)
        if not sellers:
            raise InvalidTransition(contract.status, "contract has no seller to receive the funds")
        recipient = sellers[0]

        deadline = timeout or self.timeout_seconds
        confirmed = self._already_at(ctx, EscrowStatus.RELEASED, deadline)
        transaction_id = None
        if not confirmed:
            transaction_id = call_collaborator(
                COLLABORATOR, "release", self.backend.release,
                escrow.account_id, str(recipient.id), timeout=deadline,
            )

        escrow.status = EscrowStatus.RELEASED.value
        escrow.transaction_id = transaction_id
        escrow.released_at = ctx.now()
        escrow.release_approvals_json = {role: bool(approvals.get(role)) for role in required}
        ctx.touch()

        self.audit.record(
            ctx,
            AuditAction.ESCROW_RELEASED,
            f"Escrow released to {recipient.email}: {escrow.net_amount} {escrow.currency}",
            payload={
                "transaction_id": transaction_id,
                "recipient_party_id": str(recipient.id),
                "confirmed_by_custodian": confirmed,
            },
        )
        ctx.flush()

        self.sm.transition(ctx, ContractStatus.FUNDS_RELEASED, reason="escrow released")
        ctx.outbox.contract_event(contract.id, "funds_released", ctx.party_emails())

    def refund(self, ctx: ContractContext, reason: str, *, timeout: Optional[float] = None) -> None:
        contract = ctx.contract
        escrow = contract.escrow

        if escrow.status not in REFUNDABLE:
            raise InvalidTransition(
                contract.status, f"escrow is {escrow.status}; refunds need secured or disputed escrow"
            )

        deadline = timeout or self.timeout_seconds
        confirmed = self._already_at(ctx, EscrowStatus.REFUNDED, deadline)
        refund_id = None
        if not confirmed:
            refund_id = call_collaborator(
                COLLABORATOR, "refund", self.backend.refund,
                escrow.account_id, reason, timeout=deadline,
            )

        escrow.status = EscrowStatus.REFUNDED.value
        escrow.refund_id = refund_id
        escrow.refunded_at = ctx.now()
        escrow.refund_reason = reason
        ctx.touch()

        self.audit.record(
            ctx,
            AuditAction.ESCROW_REFUNDED,
            f"Escrow refunded: {reason}",
            payload={"refund_id": refund_id, "confirmed_by_custodian": confirmed},
        )
        ctx.flush()

        self.sm.transition(ctx, ContractStatus.CANCELLED, reason=f"escrow refunded: {reason}")
        ctx.outbox.contract_event(contract.id, "escrow_refunded", ctx.party_emails())

    def _already_at(self, ctx: ContractContext, target: EscrowStatus, deadline: float) -> bool:
        """
        True when the custodian already reports `target` for this account.

        A release or refund that timed out may still have completed at the
        custodian after our unit of work rolled back. The retry then records
        the custodian's outcome instead of moving the funds a second time.
        """
        escrow = ctx.contract.escrow
        reported = call_collaborator(
            COLLABORATOR, "get_status", self.backend.get_status, escrow.account_id, timeout=deadline
        )
        if EscrowStatus(reported) != target:
            return False
        logger.warning(
            "custodian already settled escrow, recording its outcome",
            extra={
                "contract_id": str(ctx.contract.id),
                "account_id": escrow.account_id,
                "custodian_status": target.value,
            },
        )
        return True

    def mark_disputed(self, ctx: ContractContext, reason: str) -> None:
        escrow = ctx.contract.escrow
        if escrow.status != EscrowStatus.SECURED.value:
            return
        escrow.status = EscrowStatus.DISPUTED.value
        ctx.touch()
        self.audit.record(ctx, AuditAction.ESCROW_DISPUTED, f"Escrow frozen: {reason}")
        ctx.flush()

    def restore_secured(self, ctx: ContractContext) -> None:
        escrow = ctx.contract.escrow
        if escrow.status != EscrowStatus.DISPUTED.value:
            return
        escrow.status = EscrowStatus.SECURED.value
        ctx.touch()
        self.audit.record(ctx, AuditAction.ESCROW_RESTORED, "Escrow dispute resolved, funds secured again")
        ctx.flush()
