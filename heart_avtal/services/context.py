from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from heart_avtal.integrations.notifications import NotificationOutbox
from heart_avtal.models.heart_contract import HeartContract


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class Actor:
    """Who triggered an operation. Identity is asserted by the caller (auth is upstream)."""
    user_id: str = "system"
    ip_address: str = "unknown"
    request_id: Optional[str] = None


SYSTEM_ACTOR = Actor()


@dataclass
class ContractContext:
    """
    One unit of work on one contract: session, locked aggregate, actor,
    notification queue and clock.
    """

    db: Session
    contract: HeartContract
    actor: Actor
    outbox: NotificationOutbox
    clock: Callable[[], datetime] = utcnow

    def now(self) -> datetime:
        return self.clock()

    def touch(self) -> None:
        """Mark the aggregate mutated: bump version, stamp updated_at."""
        self.contract.version = self.contract.version + 1
        self.contract.updated_at = self.now()

    def flush(self) -> None:
        self.db.flush()

    def party_emails(self) -> List[str]:
        return [p.email for p in self.contract.parties if p.email]
