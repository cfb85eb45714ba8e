from datetime import datetime, timedelta, timezone
from decimal import Decimal

from heart_avtal.services.context import Actor
from heart_avtal.services.contract_inputs import ContractDraft, PartySeat, SignatureInput

BUYER = Actor(user_id="user-buyer", ip_address="10.0.0.1", request_id="rid-buyer")
SELLER = Actor(user_id="user-seller", ip_address="10.0.0.2", request_id="rid-seller")
REVIEWER = Actor(user_id="reviewer-1", ip_address="10.0.0.9", request_id="rid-review")


def make_draft(amount="2500000", **overrides) -> ContractDraft:
    data = dict(
        title="Försäljning av Café Linnea AB",
        description="Överlåtelse av samtliga aktier i Café Linnea AB inklusive inventarier.",
        contract_type="business_sale",
        initiator=PartySeat(email="anna@buyer.se", name="Anna Buyer", role="buyer"),
        counterparty=PartySeat(email="erik@seller.se", name="Erik Seller", role="seller"),
        amount=None if amount is None else Decimal(amount),
        payment_terms="Full betalning via escrow",
    )
    data.update(overrides)
    return ContractDraft(**data)


def signature_for(actor: Actor) -> SignatureInput:
    return SignatureInput(ip_address=actor.ip_address, user_agent="pytest-agent/1.0")


def in_days(days: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


def create_verified_contract(svc, db, **draft_overrides):
    """draft -> pending_verification -> every party verified (verification_complete)"""
    contract = svc.create_contract(db, make_draft(**draft_overrides), BUYER)
    svc.request_verification(db, contract.id, BUYER)
    for party_id in [p.id for p in contract.parties]:
        contract, _ = svc.verify_party(db, contract.id, party_id, REVIEWER)
    return contract


def sign_all(svc, db, contract):
    for party_id, actor in zip([p.id for p in contract.parties], (BUYER, SELLER)):
        contract = svc.sign_contract(db, contract.id, party_id, signature_for(actor), actor)
    return contract
