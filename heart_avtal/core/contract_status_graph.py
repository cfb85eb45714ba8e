# heart_avtal/core/contract_status_graph.py
from heart_avtal.models.enums import ContractStatus as S

# Forward path order; cancelled/disputed sit outside it.
FORWARD_ORDER = (
    S.DRAFT,
    S.PENDING_VERIFICATION,
    S.VERIFICATION_COMPLETE,
    S.PENDING_SIGNATURES,
    S.PARTIALLY_SIGNED,
    S.FULLY_SIGNED,
    S.ESCROW_SECURED,
    S.PENDING_PLATFORM_APPROVAL,
    S.PLATFORM_APPROVED,
    S.FUNDS_RELEASED,
    S.COMPLETED,
)

FORWARD_RANK = {status: rank for rank, status in enumerate(FORWARD_ORDER)}

TERMINAL_STATUSES = {S.COMPLETED, S.CANCELLED}

ESCAPE_STATUSES = {S.CANCELLED, S.DISPUTED}

ALLOWED_STATUS_TRANSITIONS = {
    S.DRAFT: {
        S.PENDING_VERIFICATION,
    },

    S.PENDING_VERIFICATION: {
        S.VERIFICATION_COMPLETE,
    },

    S.VERIFICATION_COMPLETE: {
        S.PENDING_SIGNATURES,
        S.PARTIALLY_SIGNED,
    },

    S.PENDING_SIGNATURES: {
        S.PARTIALLY_SIGNED,
    },

    S.PARTIALLY_SIGNED: {
        S.FULLY_SIGNED,
    },

    S.FULLY_SIGNED: {
        S.ESCROW_SECURED,
        # no amount: escrow is skipped
        S.PENDING_PLATFORM_APPROVAL,
        S.PLATFORM_APPROVED,
    },

    S.ESCROW_SECURED: {
        S.PENDING_PLATFORM_APPROVAL,
        S.PLATFORM_APPROVED,
    },

    S.PENDING_PLATFORM_APPROVAL: {
        S.PLATFORM_APPROVED,
    },

    S.PLATFORM_APPROVED: {
        S.FUNDS_RELEASED,
        # no escrow to release
        S.COMPLETED,
    },

    S.FUNDS_RELEASED: {
        S.COMPLETED,
    },

    S.COMPLETED: set(),

    # re-approval after a rejection, or refund
    S.DISPUTED: {
        S.PLATFORM_APPROVED,
        S.CANCELLED,
    },

    S.CANCELLED: set(),
}

# Every non-terminal status may escape to cancelled/disputed.
for _status, _targets in ALLOWED_STATUS_TRANSITIONS.items():
    if _status not in TERMINAL_STATUSES and _status != S.DISPUTED:
        _targets.update(ESCAPE_STATUSES)


def is_allowed(current: S, target: S) -> bool:
    return target in ALLOWED_STATUS_TRANSITIONS.get(current, set())
