from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from heart_avtal.models.enums import EscrowStatus

logger = logging.getLogger(__name__)


class EscrowBackend(ABC):
    """Custodian holding the funds of one escrow account per contract."""

    @abstractmethod
    def create_account(self, contract_id: str, amount: Decimal, currency: str) -> str:
        pass

    @abstractmethod
    def secure(self, account_id: str, payment_method: Optional[Dict[str, Any]]) -> None:
        pass

    @abstractmethod
    def release(self, account_id: str, recipient_party_id: str) -> str:
        """Pay the account out to the recipient; returns the transaction id."""
        pass

    @abstractmethod
    def refund(self, account_id: str, reason: str) -> str:
        pass

    @abstractmethod
    def get_status(self, account_id: str) -> EscrowStatus:
        pass


@dataclass
class _SandboxAccount:
    contract_id: str
    amount: Decimal
    currency: str
    status: EscrowStatus = EscrowStatus.INITIATING
    recipient: Optional[str] = None
    history: list = field(default_factory=list)


class SandboxEscrowBackend(EscrowBackend):
    """
    In-memory escrow custodian for dev and tests. Enforces the custodian's own
    state rules so double releases or refunds surface as errors.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.accounts: Dict[str, _SandboxAccount] = {}

    def _get(self, account_id: str) -> _SandboxAccount:
        acct = self.accounts.get(account_id)
        if acct is None:
            raise LookupError(f"Unknown escrow account {account_id}")
        return acct

    def create_account(self, contract_id: str, amount: Decimal, currency: str) -> str:
        account_id = f"esc_{uuid.uuid4().hex[:20]}"
        with self._lock:
            self.accounts[account_id] = _SandboxAccount(contract_id, Decimal(amount), currency)
        logger.info("escrow account created", extra={"account_id": account_id, "contract_id": contract_id})
        return account_id

    def secure(self, account_id: str, payment_method: Optional[Dict[str, Any]]) -> None:
        with self._lock:
            acct = self._get(account_id)
            if acct.status != EscrowStatus.INITIATING:
                raise RuntimeError(f"Account {account_id} cannot be secured from {acct.status.value}")
            acct.status = EscrowStatus.SECURED
            acct.history.append(("secure", payment_method))

    def release(self, account_id: str, recipient_party_id: str) -> str:
        with self._lock:
            acct = self._get(account_id)
            if acct.status != EscrowStatus.SECURED:
                raise RuntimeError(f"Account {account_id} cannot be released from {acct.status.value}")
            acct.status = EscrowStatus.RELEASED
            acct.recipient = recipient_party_id
            txn = f"txn_{uuid.uuid4().hex[:20]}"
            acct.history.append(("release", txn))
        return txn

    def refund(self, account_id: str, reason: str) -> str:
        with self._lock:
            acct = self._get(account_id)
            if acct.status not in (EscrowStatus.SECURED, EscrowStatus.DISPUTED):
                raise RuntimeError(f"Account {account_id} cannot be refunded from {acct.status.value}")
            acct.status = EscrowStatus.REFUNDED
            refund_id = f"rfd_{uuid.uuid4().hex[:20]}"
            acct.history.append(("refund", reason))
        return refund_id

    def get_status(self, account_id: str) -> EscrowStatus:
        with self._lock:
            return self._get(account_id).status
