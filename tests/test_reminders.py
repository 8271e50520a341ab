from __future__ import annotations

from datetime import date

import pytest

from servicecrm.core.exceptions import NotFoundError, ValidationError
from servicecrm.core.money import nanos_to_date
from servicecrm.models.service import PaymentMethod, PaymentStatus
from servicecrm.schemas.customer import CustomerRecord
from servicecrm.schemas.reminder import ReminderRecord
from servicecrm.schemas.service import ServiceEntryRecord
from servicecrm.services import reminder_service as lifecycle

from conftest import ns


@pytest.fixture
def customer():
    return CustomerRecord(
        id=42,
        name="Farhan",
        contact="+919812345678",
        brand="Aquaguard",
        model="Aura",
        installation_date=ns(2024, 1, 15),
        service_interval=3,
        next_service_date=ns(2024, 4, 15),
    )


def entry(id, when, customer_id=42):
    return ServiceEntryRecord(id=id, customer_id=customer_id, service_date=when, amount=30000,
                              payment_status=PaymentStatus.PAID, payment_method=PaymentMethod.UPI)


class TestMarkServiceAsDone:
    def test_schedules_unsent_reminder_one_interval_later(self, customer):
        completion = lifecycle.mark_service_as_done(customer, ns(2024, 6, 10), owner_id=7)

        reminder = completion.reminder
        assert reminder.customer_id == 42
        assert nanos_to_date(reminder.reminder_date) == date(2024, 9, 10)
        assert reminder.sent_status is False
        assert reminder.owner_id == 7
        assert reminder.description == (
            "3-month service due for Farhan (Aquaguard Aura). Last service: 10 Jun 2024"
        )
        assert completion.customer.next_service_date == reminder.reminder_date

    def test_calendar_month_rollover(self, customer):
        completion = lifecycle.mark_service_as_done(
            customer.model_copy(update={"service_interval": 1}), ns(2024, 1, 31)
        )
        assert nanos_to_date(completion.reminder.reminder_date) == date(2024, 2, 29)

    def test_missing_customer_is_not_found(self):
        with pytest.raises(NotFoundError) as excinfo:
            lifecycle.mark_service_as_done(None, ns(2024, 6, 10), customer_id=999)
        assert isinstance(excinfo.value, ValidationError)
        assert excinfo.value.entity_id == 999

    @pytest.mark.parametrize("bad_date", [0, -5, "2024-06-10", None])
    def test_unusable_done_date_rejected(self, customer, bad_date):
        with pytest.raises(ValidationError) as excinfo:
            lifecycle.mark_service_as_done(customer, bad_date)
        assert excinfo.value.field == "service_done_date"


class TestServiceEntries:
    def test_recording_moves_next_service_date_only(self, customer):
        recorded, updated = lifecycle.record_service_entry(customer, [], entry(None, ns(2024, 3, 1)))
        assert recorded.service_date == ns(2024, 3, 1)
        assert nanos_to_date(updated.next_service_date) == date(2024, 6, 1)

    def test_entry_for_other_customer_rejected(self, customer):
        with pytest.raises(ValidationError):
            lifecycle.record_service_entry(customer, [], entry(None, ns(2024, 3, 1), customer_id=1))

    def test_editing_date_recomputes(self, customer):
        history = [entry(1, ns(2024, 3, 1)), entry(2, ns(2024, 5, 5))]
        moved = entry(2, ns(2024, 2, 1))
        _, updated = lifecycle.update_service_entry(customer, history, moved)
        assert nanos_to_date(updated.next_service_date) == date(2024, 6, 1)

    def test_editing_unknown_entry_is_not_found(self, customer):
        with pytest.raises(NotFoundError):
            lifecycle.update_service_entry(customer, [entry(1, ns(2024, 3, 1))], entry(5, ns(2024, 3, 2)))

    def test_removing_last_entry_falls_back_to_installation(self, customer):
        updated = lifecycle.remove_service_entry(customer, [entry(1, ns(2024, 3, 1))], 1)
        assert nanos_to_date(updated.next_service_date) == date(2024, 4, 15)

    def test_mark_done_anchor_outlives_entry_changes(self, customer):
        done = lifecycle.mark_service_as_done(customer, ns(2024, 6, 10)).customer
        assert done.last_service_done_date == ns(2024, 6, 10)

        _, after_add = lifecycle.record_service_entry(done, [], entry(None, ns(2024, 3, 1)))
        assert nanos_to_date(after_add.next_service_date) == date(2024, 9, 10)

        after_remove = lifecycle.remove_service_entry(done, [entry(1, ns(2024, 3, 1))], 1)
        assert nanos_to_date(after_remove.next_service_date) == date(2024, 9, 10)


class TestQueries:
    @pytest.fixture
    def reminders(self):
        return [
            ReminderRecord(id=1, customer_id=42, reminder_date=ns(2024, 2, 1, 9, 0)),
            ReminderRecord(id=2, customer_id=42, reminder_date=ns(2024, 2, 1, 23, 59), sent_status=True),
            ReminderRecord(id=3, customer_id=42, reminder_date=ns(2024, 2, 2, 0, 0)),
            ReminderRecord(id=4, customer_id=42, reminder_date=ns(2024, 2, 8, 23, 0)),
            ReminderRecord(id=5, customer_id=42, reminder_date=ns(2024, 2, 9, 0, 0)),
            ReminderRecord(id=6, customer_id=42, reminder_date=ns(2024, 1, 31, 12, 0)),
        ]

    def test_today(self, reminders):
        today = lifecycle.todays_reminders(reminders, ns(2024, 2, 1, 15, 0))
        assert [r.id for r in today] == [1, 2]

    def test_upcoming_starts_tomorrow_and_spans_a_week(self, reminders):
        upcoming = lifecycle.upcoming_reminders(reminders, ns(2024, 2, 1, 15, 0))
        assert [r.id for r in upcoming] == [3, 4]

    def test_pending_and_toggle(self, reminders):
        assert [r.id for r in lifecycle.pending_reminders(reminders)] == [1, 3, 4, 5, 6]
        sent = lifecycle.set_reminder_sent_status(reminders[0], True)
        assert sent.sent_status is True
        assert lifecycle.set_reminder_sent_status(sent, False).sent_status is False
        assert reminders[0].sent_status is False

    def test_create_reminder(self, customer):
        reminder = lifecycle.create_reminder(customer, ns(2024, 3, 1), "  Call about filter  ", owner_id=3)
        assert reminder.description == "Call about filter"
        assert reminder.sent_status is False
        with pytest.raises(ValidationError):
            lifecycle.create_reminder(None, ns(2024, 3, 1))
