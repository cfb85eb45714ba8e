from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from heart_avtal.models.enums import PartyRole, SignatureMethod


@dataclass
class PartySeat:
    email: str
    name: str = ""
    role: str = PartyRole.SELLER.value
    user_id: Optional[str] = None
    phone: Optional[str] = None
    organization: Optional[str] = None
    organization_number: Optional[str] = None


@dataclass
class ContractDraft:
    """Everything needed to open a contract in `draft`."""

    title: str
    description: str
    contract_type: str
    initiator: PartySeat
    counterparty: Optional[PartySeat]
    additional_parties: List[PartySeat] = field(default_factory=list)
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_terms: str = ""
    due_date: Optional[datetime] = None
    requires_platform_approval: Optional[bool] = None
    listing_id: Optional[str] = None
    auto_created: bool = False
    priority_level: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    notes: str = ""
    internal_reference: Optional[str] = None

    def seats(self) -> List[PartySeat]:
        seats = [self.initiator]
        if self.counterparty is not None:
            seats.append(self.counterparty)
        seats.extend(self.additional_parties)
        return seats


@dataclass
class ContractUpdate:
    """Edits to a draft. Fields left as None keep their current value."""

    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_terms: Optional[str] = None
    due_date: Optional[datetime] = None
    priority_level: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    internal_reference: Optional[str] = None

    def changed_fields(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]


@dataclass
class SignatureInput:
    ip_address: str
    user_agent: str
    method: str = SignatureMethod.DIGITAL.value
    certificate_id: Optional[str] = None


@dataclass
class DocumentInput:
    name: str
    document_type: str
    url: str
    content: bytes
