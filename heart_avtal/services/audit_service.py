from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from heart_avtal.core.hashing import canonical_dumps, hash_chain
from heart_avtal.models.contract_audit_entry import ContractAuditEntry
from heart_avtal.services.context import ContractContext


class AuditAction:
    # Contract management
    CONTRACT_CREATED = "contract_created"
    CONTRACT_UPDATED = "contract_updated"
    PARTY_ADDED = "party_added"
    PARTY_CLAIMED = "party_claimed"
    DOCUMENT_ATTACHED = "document_attached"

    # Verification
    VERIFICATION_CODE_SENT = "verification_code_sent"
    PARTY_VERIFIED = "party_verified"
    PARTY_VERIFICATION_FAILED = "party_verification_failed"

    # Signing
    CONTRACT_SIGNED = "contract_signed"

    # Escrow
    ESCROW_SECURED = "escrow_secured"
    ESCROW_RELEASED = "escrow_released"
    ESCROW_REFUNDED = "escrow_refunded"
    ESCROW_DISPUTED = "escrow_disputed"
    ESCROW_RESTORED = "escrow_restored"

    # Platform approval
    APPROVAL_REVIEW_STARTED = "approval_review_started"
    CONTRACT_APPROVED = "contract_approved"
    CONTRACT_REJECTED = "contract_rejected"
    CONTRACT_ESCALATED = "contract_escalated"

    # Lifecycle
    STATUS_CHANGED = "status_changed"


class AuditTrail:
    """
    Append-only, hash-chained audit trail per contract.

    Entries are added through the contract's relationship inside the caller's
    unit of work, so they commit or roll back together with the change they
    describe.
    """

    GENESIS_HASH = "0" * 64

    def record(
        self,
        ctx: ContractContext,
        action: str,
        details: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ContractAuditEntry:
        contract = ctx.contract
        entries = contract.audit_entries
        last = entries[-1] if entries else None

        seq = 1 if last is None else last.seq + 1
        prev_hash = last.entry_hash if last is not None else self.GENESIS_HASH
        at = ctx.now()
        actor_id = user_id or ctx.actor.user_id

        entry_payload = {
            "contract_id": str(contract.id),
            "seq": seq,
            "action": action,
            "user_id": actor_id,
            "details": details,
            "ip_address": ctx.actor.ip_address,
            "request_id": ctx.actor.request_id,
            "timestamp": at.isoformat(),
            "data": payload or {},
        }
        # stored exactly as hashed (Decimals, UUIDs and datetimes become strings)
        entry_payload = json.loads(canonical_dumps(entry_payload))

        row = ContractAuditEntry(
            contract_id=contract.id,
            seq=seq,
            created_at=at,
            action=action,
            user_id=actor_id,
            details=details,
            ip_address=ctx.actor.ip_address,
            request_id=ctx.actor.request_id,
            prev_hash=prev_hash,
            entry_hash=hash_chain(prev_hash, entry_payload),
            payload_json=entry_payload,
        )
        entries.append(row)
        return row

    # ─────────────────────────────────────────────
    # READ-ONLY HELPERS
    # ─────────────────────────────────────────────

    def list_entries(self, db: Session, *, contract_id: uuid.UUID) -> List[ContractAuditEntry]:
        return (
            db.execute(
                select(ContractAuditEntry)
                .where(ContractAuditEntry.contract_id == contract_id)
                .order_by(ContractAuditEntry.seq.asc())
            )
            .scalars()
            .all()
        )

    def verify_chain(self, db: Session, *, contract_id: uuid.UUID) -> bool:
        """Recompute every link; False on the first broken hash or seq gap."""
        prev_hash = self.GENESIS_HASH
        expected_seq = 1

        for e in self.list_entries(db, contract_id=contract_id):
            if e.seq != expected_seq or e.prev_hash != prev_hash:
                return False
            if e.entry_hash != hash_chain(prev_hash, e.payload_json):
                return False
            prev_hash = e.entry_hash
            expected_seq += 1

        return True
