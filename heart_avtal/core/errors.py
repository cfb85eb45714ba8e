"""Heart Avtal error kinds.

Every lifecycle operation either commits fully or raises one of these; the
payload from ``to_dict()`` is what HTTP callers see.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class HeartAvtalError(Exception):
    code = "HEART_AVTAL_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ContractNotFound(HeartAvtalError):
    code = "CONTRACT_NOT_FOUND"
    status_code = 404

    def __init__(self, contract_id: Any):
        super().__init__(f"Contract {contract_id} not found.")
        self.contract_id = str(contract_id)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "contractId": self.contract_id}


class PartyNotFound(HeartAvtalError):
    code = "PARTY_NOT_FOUND"
    status_code = 404

    def __init__(self, contract_id: Any, party_id: Any):
        super().__init__(f"Party {party_id} is not part of contract {contract_id}.")
        self.contract_id = str(contract_id)
        self.party_id = str(party_id)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "contractId": self.contract_id, "partyId": self.party_id}


class InvalidTransition(HeartAvtalError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current_status: str, condition: str, target_status: Optional[str] = None):
        msg = f"Cannot proceed from '{current_status}': {condition}"
        if target_status:
            msg = f"Cannot move from '{current_status}' to '{target_status}': {condition}"
        super().__init__(msg)
        self.current_status = current_status
        self.target_status = target_status
        self.condition = condition

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "currentStatus": self.current_status,
            "targetStatus": self.target_status,
            "condition": self.condition,
        }


class ConcurrentModification(HeartAvtalError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 409

    def __init__(self, contract_id: Any, expected_version: Optional[int], actual_version: Optional[int]):
        super().__init__(
            f"Contract {contract_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version}). Reload and retry."
        )
        self.contract_id = str(contract_id)
        self.expected_version = expected_version
        self.actual_version = actual_version

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "contractId": self.contract_id,
            "expectedVersion": self.expected_version,
            "actualVersion": self.actual_version,
        }


class ValidationError(HeartAvtalError):
    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid input.")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "errors": self.errors}


class NoAmountSpecified(HeartAvtalError):
    code = "NO_AMOUNT_SPECIFIED"
    status_code = 409

    def __init__(self, contract_id: Any):
        super().__init__(f"Contract {contract_id} has no amount; escrow is not applicable.")
        self.contract_id = str(contract_id)


class MissingApprovals(HeartAvtalError):
    code = "MISSING_APPROVALS"
    status_code = 409

    def __init__(self, missing: Iterable[str]):
        self.missing: List[str] = sorted(missing)
        super().__init__(f"Missing required approvals for escrow release: {', '.join(self.missing)}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "missing": self.missing}


class CollaboratorFailure(HeartAvtalError):
    code = "COLLABORATOR_FAILURE"
    status_code = 502

    def __init__(self, collaborator: str, operation: str, reason: str, timed_out: bool = False):
        super().__init__(f"{collaborator}.{operation} failed: {reason}")
        self.collaborator = collaborator
        self.operation = operation
        self.reason = reason
        self.timed_out = timed_out
        if timed_out:
            self.status_code = 504

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "collaborator": self.collaborator,
            "operation": self.operation,
            "timedOut": self.timed_out,
        }
