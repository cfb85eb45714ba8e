from heart_avtal.schemas.verification import (
    BankAccountCheck,
    IdentityDocumentsCheck,
    VerificationCheck,
    VerificationCodeCheck,
)
from heart_avtal.schemas.heart_contracts import ContractResponse, CreateContractRequest
