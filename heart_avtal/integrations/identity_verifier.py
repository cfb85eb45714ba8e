from __future__ import annotations

import logging
import secrets
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from heart_avtal.models.enums import KycStatus
from heart_avtal.schemas.verification import BankAccountDetails

logger = logging.getLogger(__name__)


class IdentityVerifier(ABC):
    """KYC provider: identity documents, bank accounts and one-time codes."""

    @abstractmethod
    def verify_identity(self, party_id: str, documents: List[str]) -> KycStatus:
        pass

    @abstractmethod
    def verify_bank_account(self, party_id: str, details: BankAccountDetails) -> bool:
        pass

    @abstractmethod
    def send_verification_code(self, email: str, phone: Optional[str]) -> str:
        """Send a code to the party; returns the reference the code is checked against."""
        pass

    @abstractmethod
    def verify_code(self, code: str, reference: str) -> bool:
        pass


class SandboxIdentityVerifier(IdentityVerifier):
    """
    In-process verifier used in dev and tests.

    - identity: verified when at least one document is referenced
    - bank account: verified when the holder name is present (format is validated upstream)
    - codes: 6-digit codes kept in memory, single use
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._codes: Dict[str, Tuple[str, str]] = {}

    def verify_identity(self, party_id: str, documents: List[str]) -> KycStatus:
        if not documents:
            return KycStatus.FAILED
        return KycStatus.VERIFIED

    def verify_bank_account(self, party_id: str, details: BankAccountDetails) -> bool:
        return bool(details.accountHolder.strip())

    def send_verification_code(self, email: str, phone: Optional[str]) -> str:
        reference = f"vref_{uuid.uuid4().hex[:16]}"
        code = f"{secrets.randbelow(10**6):06d}"
        with self._lock:
            self._codes[reference] = (code, email)
        logger.info("verification code issued", extra={"reference": reference, "email": email})
        return reference

    def verify_code(self, code: str, reference: str) -> bool:
        with self._lock:
            issued = self._codes.get(reference)
            if not issued or issued[0] != code:
                return False
            del self._codes[reference]
        return True

    def issued_code(self, reference: str) -> Optional[str]:
        with self._lock:
            issued = self._codes.get(reference)
        return issued[0] if issued else None
