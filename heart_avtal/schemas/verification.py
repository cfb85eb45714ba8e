from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class IdentityDocumentsCheck(BaseModel):
    """ID documents (passport, national id) already uploaded elsewhere; referenced by id/url."""
    kind: Literal["identity_documents"] = "identity_documents"
    documents: List[str] = Field(..., min_length=1)


class BankAccountDetails(BaseModel):
    accountHolder: str = Field(..., min_length=1)
    clearingNumber: str = Field(..., pattern=r"^\d{4,5}$")
    accountNumber: str = Field(..., pattern=r"^\d{6,12}$")
    bankName: Optional[str] = None


class BankAccountCheck(BaseModel):
    kind: Literal["bank_account"] = "bank_account"
    details: BankAccountDetails


class VerificationCodeCheck(BaseModel):
    kind: Literal["verification_code"] = "verification_code"
    code: str = Field(..., min_length=4, max_length=12)
    reference: str = Field(..., min_length=1)


VerificationCheck = Annotated[
    Union[IdentityDocumentsCheck, BankAccountCheck, VerificationCodeCheck],
    Field(discriminator="kind"),
]


class VerifyPartyRequest(BaseModel):
    expectedVersion: Optional[int] = None
    checks: List[VerificationCheck] = Field(default_factory=list)


class VerificationCheckResult(BaseModel):
    kind: str
    passed: bool
    detail: Optional[str] = None


class VerificationCodeResponse(BaseModel):
    contractId: str
    partyId: str
    reference: str
    version: int
