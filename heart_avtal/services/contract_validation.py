from __future__ import annotations

import re
from datetime import datetime
from typing import Any, List, Optional

from heart_avtal.models.enums import ContractType, DocumentType, PartyRole, PriorityLevel
from heart_avtal.services.context import as_aware
from heart_avtal.services.contract_inputs import ContractDraft, ContractUpdate, DocumentInput, PartySeat
from heart_avtal.services.fees import MAX_INTEGER_DIGITS, to_money

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _enum_values(enum_cls) -> List[str]:
    return [e.value for e in enum_cls]


def validate_party_seat(seat: PartySeat, label: str) -> List[str]:
    errors: List[str] = []
    if not seat.email or not EMAIL_RE.match(seat.email.strip()):
        errors.append(f"{label}: valid email is required")
    if seat.role not in _enum_values(PartyRole):
        errors.append(f"{label}: role must be one of {', '.join(_enum_values(PartyRole))}")
    return errors


def validate_amount(amount: Any) -> List[str]:
    if amount is None:
        return []
    try:
        value = to_money(amount)
    except ValueError:
        return [f"Amount must be a finite number with at most {MAX_INTEGER_DIGITS} integer digits"]
    if value < 0:
        return ["Amount must be non-negative"]
    return []


def _title_errors(title: Optional[str]) -> List[str]:
    if not title or len(title.strip()) < 3:
        return ["Title must be at least 3 characters"]
    return []


def _description_errors(description: Optional[str]) -> List[str]:
    if not description or len(description.strip()) < 10:
        return ["Description must be at least 10 characters"]
    return []


def _term_errors(
    currency: Optional[str], due_date: Optional[datetime], priority_level: Optional[str], now: datetime
) -> List[str]:
    errors: List[str] = []
    if currency is not None and not CURRENCY_RE.match(currency):
        errors.append("Currency must be a 3-letter ISO code")
    if due_date is not None and as_aware(due_date) < now:
        errors.append("Due date cannot be in the past")
    if priority_level is not None and priority_level not in _enum_values(PriorityLevel):
        errors.append(f"Unknown priority level: {priority_level}")
    return errors


def validate_contract_draft(draft: ContractDraft, now: datetime) -> List[str]:
    """
    Returns a list of human-readable problems; empty means valid.
    Runs before anything is written.
    """
    errors: List[str] = []
    errors.extend(_title_errors(draft.title))
    errors.extend(_description_errors(draft.description))

    if draft.contract_type not in _enum_values(ContractType):
        errors.append(f"Unknown contract type: {draft.contract_type}")

    seats = draft.seats()
    if len(seats) < 2:
        errors.append("At least 2 parties are required")
    for i, seat in enumerate(seats):
        errors.extend(validate_party_seat(seat, f"party[{i}]"))

    errors.extend(validate_amount(draft.amount))
    errors.extend(_term_errors(draft.currency, draft.due_date, draft.priority_level, now))
    return errors


def validate_contract_update(update: ContractUpdate, now: datetime) -> List[str]:
    """Same rules as a new draft, applied to the fields being changed."""
    errors: List[str] = []
    if not update.changed_fields():
        return ["Nothing to update"]
    if update.title is not None:
        errors.extend(_title_errors(update.title))
    if update.description is not None:
        errors.extend(_description_errors(update.description))
    errors.extend(validate_amount(update.amount))
    errors.extend(_term_errors(update.currency, update.due_date, update.priority_level, now))
    return errors


def validate_document(doc: DocumentInput) -> List[str]:
    errors: List[str] = []
    if not doc.name or not doc.name.strip():
        errors.append("Document name is required")
    if doc.document_type not in _enum_values(DocumentType):
        errors.append(f"Unknown document type: {doc.document_type}")
    if not doc.content:
        errors.append("Document content is empty")
    return errors


def validate_reason(reason: Optional[str], what: str) -> List[str]:
    if not reason or not reason.strip():
        return [f"{what} requires a reason"]
    return []
