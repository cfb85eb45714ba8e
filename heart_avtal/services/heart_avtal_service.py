from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from heart_avtal.core.config import Settings, get_settings
from heart_avtal.core.contract_locks import ContractLockRegistry, contract_locks
from heart_avtal.core.errors import (
    CollaboratorFailure,
    ConcurrentModification,
    ContractNotFound,
    InvalidTransition,
    PartyNotFound,
    ValidationError,
)
from heart_avtal.core.hashing import sha256_bytes_hex
from heart_avtal.integrations.escrow_backend import EscrowBackend, SandboxEscrowBackend
from heart_avtal.integrations.identity_verifier import IdentityVerifier, SandboxIdentityVerifier
from heart_avtal.integrations.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationOutbox,
)
from heart_avtal.models.contract_audit_entry import ContractAuditEntry
from heart_avtal.models.contract_escrow import ContractEscrow
from heart_avtal.models.contract_party import ContractParty
from heart_avtal.models.enums import (
    ContractStatus,
    EscrowStatus,
    PriorityLevel,
    RejectionOutcome,
)
from heart_avtal.models.heart_contract import HeartContract
from heart_avtal.models.platform_approval import PlatformApproval
from heart_avtal.schemas.verification import VerificationCheck, VerificationCheckResult
from heart_avtal.services.approval_service import ApprovalGate
from heart_avtal.services.audit_service import AuditAction, AuditTrail
from heart_avtal.services.context import SYSTEM_ACTOR, Actor, ContractContext, as_aware, utcnow
from heart_avtal.services.contract_inputs import ContractDraft, ContractUpdate, DocumentInput, PartySeat, SignatureInput
from heart_avtal.services.contract_validation import (
    validate_contract_draft,
    validate_contract_update,
    validate_document,
    validate_party_seat,
    validate_reason,
)
from heart_avtal.services.escrow_service import DEFAULT_RELEASE_CONDITIONS, REFUNDABLE, EscrowLedger
from heart_avtal.services.fees import FeeBreakdown, FeeSchedule, compute_contract_fees, to_money
from heart_avtal.services.signature_service import SignatureLedger
from heart_avtal.services.state_machine import ApprovalPolicy, AutoStep, ContractStateMachine
from heart_avtal.services.verification_service import VerificationTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")

HIGH_PRIORITY_AMOUNT = Decimal("1000000")

# Documents are part of the signed content, so they freeze at the first signature.
DOCUMENT_OPEN_STATUSES = (
    ContractStatus.DRAFT,
    ContractStatus.PENDING_VERIFICATION,
    ContractStatus.VERIFICATION_COMPLETE,
    ContractStatus.PENDING_SIGNATURES,
)

CLAIMABLE_STATUSES = (ContractStatus.DRAFT, ContractStatus.PENDING_VERIFICATION)


def _as_uuid(contract_id: Any) -> uuid.UUID:
    if isinstance(contract_id, uuid.UUID):
        return contract_id
    try:
        return uuid.UUID(str(contract_id))
    except ValueError:
        raise ContractNotFound(contract_id)


def _system_actor(actor: Actor) -> Actor:
    return dataclasses.replace(SYSTEM_ACTOR, ip_address=actor.ip_address, request_id=actor.request_id)


def default_legal_compliance(now: datetime) -> Dict[str, Any]:
    return {
        "jurisdiction": "Sverige",
        "applicableLaw": "Svensk rätt",
        "disputeResolution": {
            "method": "arbitration",
            "location": "Stockholm",
            "language": "svenska",
        },
        "dataProtection": {
            "gdprCompliant": True,
            "dataRetentionPeriod": 2555,
            "consentGiven": True,
            "consentDate": now.isoformat(),
        },
    }


class HeartAvtalService:
    """
    Entry point for every Heart Avtal operation.

    Each mutating call is one unit of work on one contract:
    per-contract lock -> SELECT ... FOR UPDATE -> expected version check ->
    component call -> automatic steps -> commit -> notifications.
    Any error rolls the whole unit back and drops its notifications.

    Escrow initiation after the last signature runs as a second unit so a
    failing escrow backend leaves the contract fully signed and retryable.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        notifier: Optional[NotificationDispatcher] = None,
        identity_verifier: Optional[IdentityVerifier] = None,
        escrow_backend: Optional[EscrowBackend] = None,
        locks: Optional[ContractLockRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.notifier = notifier or LoggingNotificationDispatcher()
        self.identity_verifier = identity_verifier or SandboxIdentityVerifier()
        self.escrow_backend = escrow_backend or SandboxEscrowBackend()
        self.locks = locks if locks is not None else contract_locks
        self.clock = clock

        timeout = self.settings.collaborator_timeout_seconds
        self.fee_schedule = FeeSchedule.from_settings(self.settings)
        self.audit = AuditTrail()
        self.state_machine = ContractStateMachine(self.audit, ApprovalPolicy.from_settings(self.settings))
        self.verification = VerificationTracker(
            self.state_machine, self.audit, self.identity_verifier, timeout_seconds=timeout
        )
        self.signatures = SignatureLedger(self.state_machine, self.audit)
        self.escrow = EscrowLedger(
            self.state_machine, self.audit, self.escrow_backend, self.fee_schedule, timeout_seconds=timeout
        )
        self.approvals = ApprovalGate(self.state_machine, self.audit, self.escrow)

    # ─────────────────────────────────────────────
    # LOADING
    # ─────────────────────────────────────────────

    def _load(self, db: Session, contract_id: uuid.UUID, *, for_update: bool = False) -> HeartContract:
        stmt = (
            select(HeartContract)
            .where(HeartContract.id == contract_id)
            .options(
                selectinload(HeartContract.parties),
                selectinload(HeartContract.escrow),
                selectinload(HeartContract.platform_approval),
                selectinload(HeartContract.audit_entries),
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()

        contract = db.execute(stmt).scalar_one_or_none()
        if contract is None:
            raise ContractNotFound(contract_id)
        return contract

    @staticmethod
    def _party(contract: HeartContract, party_id: Any) -> ContractParty:
        party = contract.party(party_id)
        if party is None:
            raise PartyNotFound(contract.id, party_id)
        return party

    # ─────────────────────────────────────────────
    # UNIT OF WORK
    # ─────────────────────────────────────────────

    def _mutate(
        self,
        db: Session,
        contract_id: Any,
        actor: Actor,
        expected_version: Optional[int],
        operation: str,
        fn: Callable[[ContractContext], T],
    ) -> Tuple[HeartContract, T]:
        cid = _as_uuid(contract_id)
        with self.locks.hold(cid):
            result, escrow_pending = self._run(db, cid, actor, expected_version, operation, fn)
            if escrow_pending:
                self._run_escrow_followup(db, cid, actor)
            return self._load(db, cid), result

    def _run(
        self,
        db: Session,
        cid: uuid.UUID,
        actor: Actor,
        expected_version: Optional[int],
        operation: str,
        fn: Callable[[ContractContext], T],
    ) -> Tuple[T, bool]:
        outbox = NotificationOutbox(self.notifier)
        try:
            contract = self._load(db, cid, for_update=True)
            if expected_version is not None and contract.version != expected_version:
                raise ConcurrentModification(cid, expected_version, contract.version)

            ctx = ContractContext(db, contract, actor, outbox, self.clock)
            result = fn(ctx)
            self._run_automatic_steps(ctx, include_escrow=False)
            escrow_pending = self.state_machine.next_automatic_step(contract) == AutoStep.INITIATE_ESCROW
            version = contract.version
            status = contract.status
            db.commit()
        except StaleDataError as e:
            db.rollback()
            outbox.discard()
            raise ConcurrentModification(cid, expected_version, None) from e
        except Exception:
            db.rollback()
            outbox.discard()
            raise

        outbox.flush()
        logger.info(
            "contract operation committed",
            extra={
                "operation": operation,
                "contract_id": str(cid),
                "status": status,
                "version": version,
                "actor": actor.user_id,
                "request_id": actor.request_id,
            },
        )
        return result, escrow_pending

    def _run_escrow_followup(self, db: Session, cid: uuid.UUID, actor: Actor) -> None:
        outbox = NotificationOutbox(self.notifier)
        try:
            contract = self._load(db, cid, for_update=True)
            ctx = ContractContext(db, contract, _system_actor(actor), outbox, self.clock)
            self._run_automatic_steps(ctx, include_escrow=True)
            db.commit()
        except CollaboratorFailure as e:
            db.rollback()
            outbox.discard()
            logger.warning(
                "automatic escrow initiation failed; contract stays fully_signed",
                extra={"contract_id": str(cid), "error": e.message, "request_id": actor.request_id},
            )
            return
        except Exception:
            db.rollback()
            outbox.discard()
            raise
        outbox.flush()

    def _run_automatic_steps(self, ctx: ContractContext, *, include_escrow: bool) -> None:
        auto_ctx = dataclasses.replace(ctx, actor=_system_actor(ctx.actor))
        while True:
            step = self.state_machine.next_automatic_step(ctx.contract)
            if step == AutoStep.NONE:
                return
            if step == AutoStep.INITIATE_ESCROW and not include_escrow:
                return
            self._perform_step(auto_ctx, step)

    def _perform_step(self, ctx: ContractContext, step: AutoStep) -> None:
        if step == AutoStep.COMPLETE_VERIFICATION:
            self.verification.complete_if_all_verified(ctx)
        elif step == AutoStep.INITIATE_ESCROW:
            self.escrow.initiate(ctx)
        elif step == AutoStep.QUEUE_FOR_APPROVAL:
            self.approvals.queue_for_review(ctx)
        elif step == AutoStep.AUTO_APPROVE:
            self.approvals.auto_approve(ctx)
        elif step == AutoStep.COMPLETE:
            self.state_machine.transition(ctx, ContractStatus.COMPLETED, reason="contract fulfilled")
            ctx.outbox.contract_event(ctx.contract.id, "contract_completed", ctx.party_emails())

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def get_contract(self, db: Session, contract_id: Any) -> HeartContract:
        return self._load(db, _as_uuid(contract_id))

    def list_contracts_for_user(self, db: Session, user_id: str) -> List[HeartContract]:
        seats = select(ContractParty.contract_id).where(ContractParty.user_id == user_id)
        return (
            db.execute(
                select(HeartContract)
                .where(or_(HeartContract.created_by == user_id, HeartContract.id.in_(seats)))
                .options(
                    selectinload(HeartContract.parties),
                    selectinload(HeartContract.escrow),
                    selectinload(HeartContract.platform_approval),
                    selectinload(HeartContract.audit_entries),
                )
                .order_by(HeartContract.created_at.desc())
            )
            .scalars()
            .all()
        )

    def get_audit_trail(self, db: Session, contract_id: Any) -> List[ContractAuditEntry]:
        contract = self.get_contract(db, contract_id)
        return self.audit.list_entries(db, contract_id=contract.id)

    def verify_audit_chain(self, db: Session, contract_id: Any) -> bool:
        contract = self.get_contract(db, contract_id)
        return self.audit.verify_chain(db, contract_id=contract.id)

    def calculate_contract_fees(self, amount: Any) -> FeeBreakdown:
        try:
            return compute_contract_fees(amount, self.fee_schedule)
        except ValueError as e:
            raise ValidationError([str(e)]) from e

    # ─────────────────────────────────────────────
    # CONTRACT MANAGEMENT
    # ─────────────────────────────────────────────

    def create_contract(self, db: Session, draft: ContractDraft, actor: Actor) -> HeartContract:
        now = self.clock()
        errors = validate_contract_draft(draft, now)
        if errors:
            raise ValidationError(errors)

        amount = None
        if draft.amount is not None:
            amount = to_money(draft.amount)
        currency = draft.currency or self.settings.default_currency
        due_date = as_aware(draft.due_date)
        if due_date is not None:
            due_date = due_date.astimezone(timezone.utc)

        priority = draft.priority_level
        if priority is None:
            high = amount is not None and amount > HIGH_PRIORITY_AMOUNT
            priority = PriorityLevel.HIGH.value if high else PriorityLevel.MEDIUM.value

        requires_approval = draft.requires_platform_approval
        if requires_approval is None:
            requires_approval = self.settings.requires_platform_approval_default

        contract = HeartContract(
            id=uuid.uuid4(),
            version=1,
            title=draft.title.strip(),
            description=draft.description.strip(),
            contract_type=draft.contract_type,
            status=ContractStatus.DRAFT.value,
            amount=amount,
            currency=currency,
            payment_terms=draft.payment_terms or "",
            created_by=actor.user_id,
            listing_id=draft.listing_id,
            auto_created=draft.auto_created,
            created_at=now,
            updated_at=now,
            due_date=due_date,
            legal_compliance_json=default_legal_compliance(now),
            documents_json=[],
            metadata_json={
                "priorityLevel": priority,
                "tags": list(draft.tags) or [draft.contract_type, "heart_avtal"],
                "notes": draft.notes,
                "internalReference": draft.internal_reference,
            },
        )

        for position, seat in enumerate(draft.seats()):
            user_id = seat.user_id
            if position == 0 and user_id is None:
                user_id = actor.user_id
            contract.parties.append(self._new_party(seat, position, user_id))

        contract.escrow = ContractEscrow(
            status=EscrowStatus.NONE.value,
            amount=amount or Decimal("0"),
            currency=currency,
            release_conditions_json=list(DEFAULT_RELEASE_CONDITIONS),
            release_approvals_json={"buyer": False, "seller": False, "platform": False},
        )
        contract.platform_approval = PlatformApproval(required=requires_approval)

        outbox = NotificationOutbox(self.notifier)
        ctx = ContractContext(db, contract, actor, outbox, self.clock)
        try:
            db.add(contract)
            self.audit.record(
                ctx,
                AuditAction.CONTRACT_CREATED,
                "Contract created",
                payload={
                    "title": contract.title,
                    "type": contract.contract_type,
                    "amount": None if amount is None else str(amount),
                    "currency": currency,
                },
            )
            outbox.contract_event(contract.id, "contract_created", ctx.party_emails())
            if due_date is not None:
                self._queue_due_reminder(outbox, contract, now)
            db.commit()
        except Exception:
            db.rollback()
            outbox.discard()
            raise

        outbox.flush()
        logger.info(
            "contract created",
            extra={"contract_id": str(contract.id), "actor": actor.user_id, "request_id": actor.request_id},
        )
        return self._load(db, contract.id)

    @staticmethod
    def _new_party(seat: PartySeat, position: int, user_id: Optional[str]) -> ContractParty:
        return ContractParty(
            id=uuid.uuid4(),
            position=position,
            user_id=user_id,
            name=(seat.name or "").strip(),
            email=seat.email.strip(),
            phone=seat.phone,
            organization=seat.organization,
            organization_number=seat.organization_number,
            role=seat.role,
        )

    def _queue_due_reminder(self, outbox: NotificationOutbox, contract: HeartContract, now: datetime) -> None:
        due_date = as_aware(contract.due_date)
        remind_at = max(due_date - timedelta(days=self.settings.reminder_days_before_due), now)
        outbox.reminder(
            contract.id,
            remind_at.isoformat(),
            f"Contract '{contract.title}' is due on {due_date.date().isoformat()}",
        )

    def update_contract(
        self,
        db: Session,
        contract_id: Any,
        update: ContractUpdate,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        errors = validate_contract_update(update, self.clock())
        if errors:
            raise ValidationError(errors)

        def op(ctx: ContractContext) -> None:
            contract = ctx.contract
            self.state_machine.require_status(
                contract, ContractStatus.DRAFT, condition="only draft contracts can be edited"
            )
            changed = update.changed_fields()

            if update.title is not None:
                contract.title = update.title.strip()
            if update.description is not None:
                contract.description = update.description.strip()
            if update.amount is not None:
                contract.amount = to_money(update.amount)
                contract.escrow.amount = contract.amount
            if update.currency is not None:
                contract.currency = update.currency
                contract.escrow.currency = update.currency
            if update.payment_terms is not None:
                contract.payment_terms = update.payment_terms
            if update.due_date is not None:
                contract.due_date = as_aware(update.due_date).astimezone(timezone.utc)

            metadata = dict(contract.metadata_json or {})
            if update.priority_level is not None:
                metadata["priorityLevel"] = update.priority_level
            if update.tags is not None:
                metadata["tags"] = list(update.tags)
            if update.notes is not None:
                metadata["notes"] = update.notes
            if update.internal_reference is not None:
                metadata["internalReference"] = update.internal_reference
            contract.metadata_json = metadata

            ctx.touch()
            self.audit.record(
                ctx,
                AuditAction.CONTRACT_UPDATED,
                f"Contract updated: {', '.join(changed)}",
                payload={"fields": changed},
            )
            ctx.flush()
            if update.due_date is not None:
                self._queue_due_reminder(ctx.outbox, contract, ctx.now())

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "update_contract", op)
        return contract

    def delete_contract(
        self, db: Session, contract_id: Any, actor: Actor, *, expected_version: Optional[int] = None
    ) -> None:
        cid = _as_uuid(contract_id)
        with self.locks.hold(cid):
            try:
                contract = self._load(db, cid, for_update=True)
                if expected_version is not None and contract.version != expected_version:
                    raise ConcurrentModification(cid, expected_version, contract.version)
                if contract.status != ContractStatus.DRAFT.value:
                    raise InvalidTransition(contract.status, "only draft contracts can be deleted")
                if any(p.signed for p in contract.parties):
                    raise InvalidTransition(contract.status, "a signed contract cannot be deleted")
                db.delete(contract)
                db.commit()
            except Exception:
                db.rollback()
                raise

        logger.info(
            "draft contract deleted",
            extra={"contract_id": str(cid), "actor": actor.user_id, "request_id": actor.request_id},
        )

    def add_party(
        self,
        db: Session,
        contract_id: Any,
        seat: PartySeat,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        errors = validate_party_seat(seat, "party")
        if errors:
            raise ValidationError(errors)

        def op(ctx: ContractContext) -> ContractParty:
            contract = ctx.contract
            self.state_machine.require_status(
                contract, ContractStatus.DRAFT, condition="parties can only be added to a draft"
            )
            email = seat.email.strip().lower()
            if any(p.email.lower() == email for p in contract.parties):
                raise ValidationError([f"{seat.email} is already a party to this contract"])

            position = max((p.position for p in contract.parties), default=-1) + 1
            party = self._new_party(seat, position, seat.user_id)
            contract.parties.append(party)
            ctx.touch()
            self.audit.record(
                ctx,
                AuditAction.PARTY_ADDED,
                f"Party {party.email} added as {party.role}",
                payload={"party_id": str(party.id), "role": party.role},
            )
            ctx.flush()
            ctx.outbox.contract_event(contract.id, "party_added", [party.email])
            return party

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "add_party", op)
        return contract

    def claim_party(
        self,
        db: Session,
        contract_id: Any,
        party_id: Any,
        actor: Actor,
        *,
        name: str,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        if not name or not name.strip():
            raise ValidationError(["Name is required to claim a party seat"])

        def op(ctx: ContractContext) -> None:
            contract = ctx.contract
            party = self._party(contract, party_id)
            self.state_machine.require_status(
                contract, *CLAIMABLE_STATUSES, condition="party seats can only be claimed before verification completes"
            )
            if party.user_id is not None and party.user_id != actor.user_id:
                raise InvalidTransition(contract.status, f"party {party.id} is already claimed by another user")
            other = next((p for p in contract.parties if p.user_id == actor.user_id and p.id != party.id), None)
            if other is not None:
                raise InvalidTransition(contract.status, f"user {actor.user_id} already holds party {other.id}")

            party.user_id = actor.user_id
            party.name = name.strip()
            ctx.touch()
            self.audit.record(
                ctx,
                AuditAction.PARTY_CLAIMED,
                f"Party {party.email} claimed by {actor.user_id}",
                payload={"party_id": str(party.id)},
            )
            ctx.flush()

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "claim_party", op)
        return contract

    def attach_document(
        self,
        db: Session,
        contract_id: Any,
        document: DocumentInput,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        errors = validate_document(document)
        if errors:
            raise ValidationError(errors)

        def op(ctx: ContractContext) -> None:
            contract = ctx.contract
            self.state_machine.require_status(
                contract, *DOCUMENT_OPEN_STATUSES, condition="documents are frozen once signing has started"
            )
            entry = {
                "id": str(uuid.uuid4()),
                "name": document.name.strip(),
                "type": document.document_type,
                "url": document.url,
                "contentHash": sha256_bytes_hex(document.content),
                "size": len(document.content),
                "uploadedBy": actor.user_id,
                "uploadedAt": ctx.now().isoformat(),
            }
            contract.documents_json = list(contract.documents_json or []) + [entry]
            ctx.touch()
            self.audit.record(
                ctx,
                AuditAction.DOCUMENT_ATTACHED,
                f"Document '{entry['name']}' attached",
                payload={"document_id": entry["id"], "content_hash": entry["contentHash"]},
            )
            ctx.flush()

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "attach_document", op)
        return contract

    def cancel_contract(
        self,
        db: Session,
        contract_id: Any,
        reason: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        errors = validate_reason(reason, "Cancellation")
        if errors:
            raise ValidationError(errors)

        def op(ctx: ContractContext) -> None:
            self.state_machine.require_not_terminal(ctx.contract)
            if ctx.contract.escrow.status in REFUNDABLE:
                self.escrow.refund(ctx, reason)
            else:
                self.state_machine.transition(ctx, ContractStatus.CANCELLED, reason=reason)
            ctx.outbox.contract_event(ctx.contract.id, "contract_cancelled", ctx.party_emails())

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "cancel_contract", op)
        return contract

    def open_dispute(
        self,
        db: Session,
        contract_id: Any,
        reason: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        errors = validate_reason(reason, "A dispute")
        if errors:
            raise ValidationError(errors)

        def op(ctx: ContractContext) -> None:
            contract = ctx.contract
            self.state_machine.require_not_terminal(contract)
            if contract.status == ContractStatus.DISPUTED.value:
                raise InvalidTransition(contract.status, "contract is already disputed")
            self.escrow.mark_disputed(ctx, reason)
            self.state_machine.transition(ctx, ContractStatus.DISPUTED, reason=reason)
            ctx.outbox.contract_event(contract.id, "contract_disputed", ctx.party_emails())

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "open_dispute", op)
        return contract

    # ─────────────────────────────────────────────
    # VERIFICATION
    # ─────────────────────────────────────────────

    def request_verification(
        self, db: Session, contract_id: Any, actor: Actor, *, expected_version: Optional[int] = None
    ) -> HeartContract:
        contract, _ = self._mutate(
            db, contract_id, actor, expected_version, "request_verification",
            self.verification.request_verification,
        )
        return contract

    def send_verification_code(
        self,
        db: Session,
        contract_id: Any,
        party_id: Any,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[HeartContract, str]:
        def op(ctx: ContractContext) -> str:
            party = self._party(ctx.contract, party_id)
            return self.verification.send_verification_code(ctx, party, timeout=timeout)

        return self._mutate(db, contract_id, actor, expected_version, "send_verification_code", op)

    def verify_party(
        self,
        db: Session,
        contract_id: Any,
        party_id: Any,
        actor: Actor,
        *,
        checks: Sequence[VerificationCheck] = (),
        expected_version: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[HeartContract, List[VerificationCheckResult]]:
        def op(ctx: ContractContext) -> List[VerificationCheckResult]:
            party = self._party(ctx.contract, party_id)
            return self.verification.verify_party(ctx, party, checks, timeout=timeout)

        return self._mutate(db, contract_id, actor, expected_version, "verify_party", op)

    # ─────────────────────────────────────────────
    # SIGNING
    # ─────────────────────────────────────────────

    def request_signatures(
        self, db: Session, contract_id: Any, actor: Actor, *, expected_version: Optional[int] = None
    ) -> HeartContract:
        contract, _ = self._mutate(
            db, contract_id, actor, expected_version, "request_signatures",
            self.signatures.request_signatures,
        )
        return contract

    def sign_contract(
        self,
        db: Session,
        contract_id: Any,
        party_id: Any,
        signature: SignatureInput,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        def op(ctx: ContractContext) -> bool:
            party = self._party(ctx.contract, party_id)
            return self.signatures.sign(ctx, party, signature)

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "sign_contract", op)
        return contract

    # ─────────────────────────────────────────────
    # ESCROW
    # ─────────────────────────────────────────────

    def initiate_escrow(
        self,
        db: Session,
        contract_id: Any,
        actor: Actor,
        *,
        payment_method: Optional[Dict[str, Any]] = None,
        expected_version: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> HeartContract:
        def op(ctx: ContractContext) -> None:
            self.escrow.initiate(ctx, payment_method=payment_method, timeout=timeout)

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "initiate_escrow", op)
        return contract

    def release_escrow(
        self,
        db: Session,
        contract_id: Any,
        approvals: Mapping[str, bool],
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> HeartContract:
        def op(ctx: ContractContext) -> None:
            self.escrow.release(ctx, approvals, timeout=timeout)

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "release_escrow", op)
        return contract

    def refund_escrow(
        self,
        db: Session,
        contract_id: Any,
        reason: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> HeartContract:
        errors = validate_reason(reason, "A refund")
        if errors:
            raise ValidationError(errors)

        def op(ctx: ContractContext) -> None:
            self.escrow.refund(ctx, reason, timeout=timeout)

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "refund_escrow", op)
        return contract

    # ─────────────────────────────────────────────
    # PLATFORM APPROVAL
    # ─────────────────────────────────────────────

    def start_review(
        self, db: Session, contract_id: Any, actor: Actor, *, expected_version: Optional[int] = None
    ) -> HeartContract:
        def op(ctx: ContractContext) -> None:
            self.approvals.start_review(ctx, actor.user_id)

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "start_review", op)
        return contract

    def approve_contract(
        self,
        db: Session,
        contract_id: Any,
        actor: Actor,
        *,
        comments: Optional[str] = None,
        conditions: Optional[List[str]] = None,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        def op(ctx: ContractContext) -> None:
            self.approvals.approve(ctx, actor.user_id, comments=comments, conditions=conditions)

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "approve_contract", op)
        return contract

    def reject_contract(
        self,
        db: Session,
        contract_id: Any,
        comments: str,
        actor: Actor,
        *,
        outcome: RejectionOutcome = RejectionOutcome.DISPUTED,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        errors = validate_reason(comments, "A rejection")
        if errors:
            raise ValidationError(errors)

        def op(ctx: ContractContext) -> None:
            self.approvals.reject(ctx, actor.user_id, comments, outcome=outcome)

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "reject_contract", op)
        return contract

    def escalate_contract(
        self,
        db: Session,
        contract_id: Any,
        reason: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> HeartContract:
        errors = validate_reason(reason, "An escalation")
        if errors:
            raise ValidationError(errors)

        def op(ctx: ContractContext) -> None:
            self.approvals.escalate(ctx, actor.user_id, reason)

        contract, _ = self._mutate(db, contract_id, actor, expected_version, "escalate_contract", op)
        return contract
