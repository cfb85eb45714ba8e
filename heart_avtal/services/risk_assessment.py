from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List

from heart_avtal.models.enums import ContractType, PartyRole
from heart_avtal.models.heart_contract import HeartContract
from heart_avtal.services.context import as_aware

HIGH_RISK_TYPES = {ContractType.INVESTMENT.value, ContractType.BUSINESS_PURCHASE.value}


def _email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


def assess_contract_risk(contract: HeartContract, now: datetime) -> Dict[str, Any]:
    """
    Rule-based score attached to a contract when it is queued for manual review.

      amount > 10M          +40 (high)
      amount > 5M           +25 (medium)
      amount > 1M           +15
      unverified party      +20 each
      investment / purchase +15
      due within 7 days     +10
      buyer/seller share an email domain +15

    level: >60 critical, >40 high, >20 medium; otherwise the floor
    (high above 10M, medium above 5M or with any unverified party), else low
    """
    score = 0
    factors: List[Dict[str, Any]] = []
    recommendations: List[str] = []

    amount = contract.amount if contract.amount is not None else Decimal("0")

    if amount > Decimal("10000000"):
        score += 40
        factors.append({"factor": "amount", "severity": "high", "points": 40,
                        "detail": "Amount exceeds 10 000 000"})
    elif amount > Decimal("5000000"):
        score += 25
        factors.append({"factor": "amount", "severity": "medium", "points": 25,
                        "detail": "Amount exceeds 5 000 000"})
    elif amount > Decimal("1000000"):
        score += 15
        factors.append({"factor": "amount", "severity": "low", "points": 15,
                        "detail": "Amount exceeds 1 000 000"})

    for party in contract.parties:
        if not party.is_verified:
            score += 20
            factors.append({"factor": "unverified_party", "severity": "high", "points": 20,
                            "detail": f"Party {party.email} is not verified"})

    if contract.contract_type in HIGH_RISK_TYPES:
        score += 15
        factors.append({"factor": "contract_type", "severity": "medium", "points": 15,
                        "detail": f"Contract type {contract.contract_type}"})

    due = as_aware(contract.due_date)
    if due is not None and due - now < timedelta(days=7):
        score += 10
        factors.append({"factor": "due_date", "severity": "low", "points": 10,
                        "detail": "Due within 7 days"})

    buyers = contract.parties_with_role(PartyRole.BUYER.value)
    sellers = contract.parties_with_role(PartyRole.SELLER.value)
    buyer_domains = {_email_domain(p.email) for p in buyers}
    seller_domains = {_email_domain(p.email) for p in sellers}
    if (buyer_domains & seller_domains) - {""}:
        score += 15
        factors.append({"factor": "related_parties", "severity": "medium", "points": 15,
                        "detail": "Buyer and seller share an email domain"})

    # amount and unverified parties set a floor; a score above 20 replaces it
    level = "low"
    if amount > Decimal("10000000"):
        level = "high"
    elif amount > Decimal("5000000"):
        level = "medium"
    if level == "low" and any(not p.is_verified for p in contract.parties):
        level = "medium"

    if score > 60:
        level = "critical"
    elif score > 40:
        level = "high"
    elif score > 20:
        level = "medium"

    if level in ("high", "critical"):
        recommendations.append("Manual review by a senior reviewer")
        recommendations.append("Request additional identity documentation")
    if amount > Decimal("5000000"):
        recommendations.append("Verify source of funds")

    return {
        "score": score,
        "level": level,
        "factors": factors,
        "recommendations": recommendations,
        "assessedAt": now.isoformat(),
    }
