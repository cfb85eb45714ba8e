from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class NotificationDispatcher(ABC):
    """Delivers contract events to the parties (email, push, ...)."""

    @abstractmethod
    def send_contract_notification(self, contract_id: str, event_type: str, recipient_emails: List[str]) -> None:
        pass

    @abstractmethod
    def send_status_update(self, contract_id: str, new_status: str) -> None:
        pass

    @abstractmethod
    def schedule_reminder(self, contract_id: str, when_iso: str, message: str) -> None:
        pass


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Default dispatcher: delivery is someone else's job, we only record intent."""

    def send_contract_notification(self, contract_id: str, event_type: str, recipient_emails: List[str]) -> None:
        logger.info(
            "contract notification",
            extra={"contract_id": contract_id, "event_type": event_type, "recipients": recipient_emails},
        )

    def send_status_update(self, contract_id: str, new_status: str) -> None:
        logger.info("contract status update", extra={"contract_id": contract_id, "new_status": new_status})

    def schedule_reminder(self, contract_id: str, when_iso: str, message: str) -> None:
        logger.info(
            "contract reminder scheduled",
            extra={"contract_id": contract_id, "when": when_iso, "reminder": message},
        )


class RecordingNotificationDispatcher(NotificationDispatcher):
    """Keeps every call in memory (tests, local debugging)."""

    def __init__(self) -> None:
        self.events: List[tuple] = []

    def send_contract_notification(self, contract_id: str, event_type: str, recipient_emails: List[str]) -> None:
        self.events.append(("contract", contract_id, event_type, list(recipient_emails)))

    def send_status_update(self, contract_id: str, new_status: str) -> None:
        self.events.append(("status", contract_id, new_status))

    def schedule_reminder(self, contract_id: str, when_iso: str, message: str) -> None:
        self.events.append(("reminder", contract_id, when_iso, message))

    def of_kind(self, kind: str) -> List[tuple]:
        return [e for e in self.events if e[0] == kind]


@dataclass
class NotificationOutbox:
    """
    Notifications queued during a unit of work.

    Flushed only after commit; a rolled-back operation discards its queue.
    Dispatch failures are logged and never propagate.
    """

    dispatcher: NotificationDispatcher
    _pending: List[tuple] = field(default_factory=list)

    def contract_event(self, contract_id, event_type: str, recipients: List[str]) -> None:
        self._pending.append(
            ("send_contract_notification", self.dispatcher.send_contract_notification,
             (str(contract_id), event_type, list(recipients)))
        )

    def status_update(self, contract_id, new_status: str) -> None:
        self._pending.append(
            ("send_status_update", self.dispatcher.send_status_update, (str(contract_id), new_status))
        )

    def reminder(self, contract_id, when_iso: str, message: str) -> None:
        self._pending.append(
            ("schedule_reminder", self.dispatcher.schedule_reminder, (str(contract_id), when_iso, message))
        )

    def discard(self) -> None:
        self._pending.clear()

    def flush(self) -> int:
        pending, self._pending = self._pending, []
        sent = 0
        for name, fn, args in pending:
            if _deliver(name, fn, args):
                sent += 1
        return sent

    def __len__(self) -> int:
        return len(self._pending)


def _deliver(name: str, fn: Callable[..., Any], args: tuple) -> bool:
    try:
        fn(*args)
        return True
    except Exception:
        logger.exception("notification dispatch failed", extra={"operation": name, "contract_id": args[0]})
        return False
