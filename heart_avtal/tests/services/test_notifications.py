from datetime import datetime, timedelta, timezone

import pytest

from heart_avtal.core.config import Settings
from heart_avtal.core.contract_locks import ContractLockRegistry
from heart_avtal.core.errors import InvalidTransition
from heart_avtal.integrations.notifications import NotificationOutbox, RecordingNotificationDispatcher
from heart_avtal.models.enums import ContractStatus
from heart_avtal.services.heart_avtal_service import HeartAvtalService
from heart_avtal.tests.contract_factory import BUYER, in_days, make_draft, signature_for

FIXED_NOW = datetime(2026, 5, 4, 8, 30, tzinfo=timezone.utc)


class BrokenStatusDispatcher(RecordingNotificationDispatcher):
    def send_status_update(self, contract_id, new_status):
        raise RuntimeError("push gateway down")


def test_creation_notifies_parties_and_schedules_reminder(svc, db, notifier):
    due = in_days(10)
    contract = svc.create_contract(db, make_draft(due_date=due), BUYER)

    created = [e for e in notifier.of_kind("contract") if e[2] == "contract_created"]
    assert created == [("contract", str(contract.id), "contract_created", ["anna@buyer.se", "erik@seller.se"])]

    reminders = notifier.of_kind("reminder")
    assert len(reminders) == 1
    assert reminders[0][2] == (due - timedelta(days=3)).isoformat()


def test_reminder_is_never_in_the_past(settings, db):
    notifier = RecordingNotificationDispatcher()
    svc = HeartAvtalService(
        settings=settings,
        notifier=notifier,
        locks=ContractLockRegistry(),
        clock=lambda: FIXED_NOW,
    )
    svc.create_contract(db, make_draft(due_date=FIXED_NOW + timedelta(days=1)), BUYER)

    assert notifier.of_kind("reminder")[0][2] == FIXED_NOW.isoformat()


def test_each_transition_sends_one_status_update(svc, db, notifier):
    contract = svc.create_contract(db, make_draft(), BUYER)
    svc.request_verification(db, contract.id, BUYER)

    assert notifier.of_kind("status") == [("status", str(contract.id), "pending_verification")]


def test_failed_operation_sends_nothing(svc, db, notifier):
    contract = svc.create_contract(db, make_draft(), BUYER)
    sent = len(notifier.events)

    with pytest.raises(InvalidTransition):
        svc.sign_contract(db, contract.id, contract.parties[0].id, signature_for(BUYER), BUYER)

    assert len(notifier.events) == sent


def test_dispatch_failure_does_not_undo_the_operation(db):
    svc = HeartAvtalService(
        settings=Settings(),
        notifier=BrokenStatusDispatcher(),
        locks=ContractLockRegistry(),
    )
    contract = svc.create_contract(db, make_draft(), BUYER)

    contract = svc.request_verification(db, contract.id, BUYER)

    assert contract.status == ContractStatus.PENDING_VERIFICATION.value
    assert [e[2] for e in svc.notifier.of_kind("contract")][-1] == "verification_requested"


def test_outbox_discard_drops_queue():
    notifier = RecordingNotificationDispatcher()
    outbox = NotificationOutbox(notifier)
    outbox.status_update("c-1", "draft")
    outbox.reminder("c-1", FIXED_NOW.isoformat(), "hej")
    assert len(outbox) == 2

    outbox.discard()
    assert outbox.flush() == 0
    assert notifier.events == []
