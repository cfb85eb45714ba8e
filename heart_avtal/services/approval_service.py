from __future__ import annotations

from typing import List, Optional

from heart_avtal.core.errors import InvalidTransition
from heart_avtal.models.enums import ApprovalStatus, ContractStatus, EscrowStatus, RejectionOutcome
from heart_avtal.services.audit_service import AuditAction, AuditTrail
from heart_avtal.services.context import ContractContext
from heart_avtal.services.escrow_service import EscrowLedger
from heart_avtal.services.risk_assessment import assess_contract_risk
from heart_avtal.services.state_machine import ContractStateMachine

SYSTEM_APPROVER = "system"
AUTO_APPROVAL_COMMENT = "Automatiskt godkänt - lågt riskavtal"

REVIEWABLE = (ApprovalStatus.PENDING.value, ApprovalStatus.REVIEWING.value, ApprovalStatus.ESCALATED.value)


class ApprovalGate:
    """Manual or automatic platform review before funds move."""

    def __init__(self, state_machine: ContractStateMachine, audit: AuditTrail, escrow: EscrowLedger):
        self.sm = state_machine
        self.audit = audit
        self.escrow = escrow

    def _require_pending(self, ctx: ContractContext) -> None:
        self.sm.require_status(
            ctx.contract,
            ContractStatus.PENDING_PLATFORM_APPROVAL,
            condition="contract is not awaiting platform approval",
        )
        approval = ctx.contract.platform_approval
        if approval.status not in REVIEWABLE:
            raise InvalidTransition(ctx.contract.status, f"approval is already {approval.status}")

    # ─────────────────────────────────────────────
    # AUTOMATIC PATH
    # ─────────────────────────────────────────────

    def queue_for_review(self, ctx: ContractContext) -> None:
        approval = ctx.contract.platform_approval
        approval.status = ApprovalStatus.PENDING.value
        approval.risk_assessment_json = assess_contract_risk(ctx.contract, ctx.now())
        self.sm.transition(ctx, ContractStatus.PENDING_PLATFORM_APPROVAL, reason="queued for platform review")
        ctx.outbox.contract_event(ctx.contract.id, "platform_approval_required", ctx.party_emails())

    def auto_approve(self, ctx: ContractContext) -> None:
        approval = ctx.contract.platform_approval
        now = ctx.now()
        approval.status = ApprovalStatus.APPROVED.value
        approval.approved_by = SYSTEM_APPROVER
        approval.approved_at = now
        approval.comments = AUTO_APPROVAL_COMMENT
        ctx.touch()

        self.audit.record(ctx, AuditAction.CONTRACT_APPROVED, AUTO_APPROVAL_COMMENT, user_id=SYSTEM_APPROVER)
        ctx.flush()
        self.sm.transition(ctx, ContractStatus.PLATFORM_APPROVED, reason="approved automatically")
        ctx.outbox.contract_event(ctx.contract.id, "platform_approved", ctx.party_emails())

    # ─────────────────────────────────────────────
    # REVIEWER ACTIONS
    # ─────────────────────────────────────────────

    def start_review(self, ctx: ContractContext, reviewer: str) -> None:
        self._require_pending(ctx)
        approval = ctx.contract.platform_approval
        approval.status = ApprovalStatus.REVIEWING.value
        approval.reviewed_by = reviewer
        approval.reviewed_at = ctx.now()
        ctx.touch()
        self.audit.record(ctx, AuditAction.APPROVAL_REVIEW_STARTED, f"Review started by {reviewer}")
        ctx.flush()

    def approve(
        self,
        ctx: ContractContext,
        approved_by: str,
        *,
        comments: Optional[str] = None,
        conditions: Optional[List[str]] = None,
    ) -> None:
        contract = ctx.contract
        approval = contract.platform_approval
        current = self.sm.status_of(contract)

        if current == ContractStatus.DISPUTED:
            # re-approval of a rejected contract
            if approval.status != ApprovalStatus.REJECTED.value:
                raise InvalidTransition(current.value, "only a rejected contract can be re-approved from disputed")
            if contract.escrow.status == EscrowStatus.DISPUTED.value:
                self.escrow.restore_secured(ctx)
        else:
            self._require_pending(ctx)

        now = ctx.now()
        approval.status = ApprovalStatus.APPROVED.value
        approval.approved_by = approved_by
        approval.approved_at = now
        approval.reviewed_by = approval.reviewed_by or approved_by
        approval.reviewed_at = approval.reviewed_at or now
        approval.comments = comments
        approval.conditions_json = list(conditions or [])
        ctx.touch()

        self.audit.record(
            ctx,
            AuditAction.CONTRACT_APPROVED,
            f"Approved by {approved_by}" + (f": {comments}" if comments else ""),
            payload={"conditions": approval.conditions_json},
        )
        ctx.flush()
        self.sm.transition(ctx, ContractStatus.PLATFORM_APPROVED, reason=f"approved by {approved_by}")
        ctx.outbox.contract_event(contract.id, "platform_approved", ctx.party_emails())

    def reject(
        self,
        ctx: ContractContext,
        reviewer: str,
        comments: str,
        *,
        outcome: RejectionOutcome = RejectionOutcome.DISPUTED,
    ) -> None:
        """
        disputed (default): escrow frozen, awaiting re-approval or refund
        cancelled: secured escrow is refunded first
        """
        self._require_pending(ctx)
        contract = ctx.contract
        approval = contract.platform_approval

        approval.status = ApprovalStatus.REJECTED.value
        approval.reviewed_by = reviewer
        approval.reviewed_at = ctx.now()
        approval.comments = comments
        ctx.touch()

        self.audit.record(
            ctx,
            AuditAction.CONTRACT_REJECTED,
            f"Rejected by {reviewer}: {comments}",
            payload={"outcome": outcome.value},
        )
        ctx.flush()
        ctx.outbox.contract_event(contract.id, "platform_rejected", ctx.party_emails())

        if outcome == RejectionOutcome.CANCELLED:
            if contract.escrow.status == EscrowStatus.SECURED.value:
                self.escrow.refund(ctx, f"platform rejection: {comments}")
            else:
                self.sm.transition(ctx, ContractStatus.CANCELLED, reason=f"rejected by {reviewer}")
            return

        self.escrow.mark_disputed(ctx, f"platform rejection: {comments}")
        self.sm.transition(ctx, ContractStatus.DISPUTED, reason=f"rejected by {reviewer}")

    def escalate(self, ctx: ContractContext, reviewer: str, reason: str) -> None:
        self._require_pending(ctx)
        approval = ctx.contract.platform_approval
        approval.status = ApprovalStatus.ESCALATED.value
        approval.escalation_reason = reason
        approval.reviewed_by = reviewer
        approval.reviewed_at = ctx.now()
        ctx.touch()
        self.audit.record(ctx, AuditAction.CONTRACT_ESCALATED, f"Escalated by {reviewer}: {reason}")
        ctx.flush()
