from heart_avtal.models.heart_contract import HeartContract
from heart_avtal.models.contract_party import ContractParty
from heart_avtal.models.contract_escrow import ContractEscrow
from heart_avtal.models.platform_approval import PlatformApproval
from heart_avtal.models.contract_audit_entry import ContractAuditEntry

__all__ = [
    "HeartContract",
    "ContractParty",
    "ContractEscrow",
    "PlatformApproval",
    "ContractAuditEntry",
]
