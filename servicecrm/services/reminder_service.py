"""
Reminder lifecycle.

A reminder is scheduled until staff flag it as sent; the flag can be
cleared again. Recording or editing a service entry only moves the
customer's next service date. Marking a service done schedules one new
reminder an interval later and leaves older reminders as they are.

Callers persist the returned records. Marking done reads the customer's
interval and then inserts a reminder, so the store must run both steps
in one transaction per customer (see CustomerService.mark_service_as_done).
"""
import logging
from datetime import tzinfo
from typing import Iterable, List, Optional, Tuple

from servicecrm.config import settings
from servicecrm.core.exceptions import NotFoundError, ValidationError
from servicecrm.core.money import add_days, add_months, format_date, start_of_day
from servicecrm.schemas.customer import CustomerRecord
from servicecrm.schemas.reminder import ReminderRecord, ServiceCompletion
from servicecrm.schemas.service import ServiceEntryRecord
from servicecrm.services.derivation_service import (
    check_service_interval,
    check_timestamp,
    recompute_next_service_date,
    validate_service_entry,
)


logger = logging.getLogger(__name__)


def create_reminder(
    customer: Optional[CustomerRecord],
    reminder_date: int,
    description: str = "",
    owner_id: Optional[int] = None,
) -> ReminderRecord:
    """A new scheduled (unsent) reminder for an existing customer."""
    if customer is None:
        raise ValidationError("Customer is required for a reminder", field="customer_id")
    check_timestamp(reminder_date, "reminder_date")
    return ReminderRecord(
        customer_id=customer.id,
        owner_id=owner_id,
        reminder_date=reminder_date,
        description=description.strip(),
        sent_status=False,
    )


def set_reminder_sent_status(reminder: ReminderRecord, sent: bool) -> ReminderRecord:
    """Toggle the sent flag in either direction."""
    return reminder.model_copy(update={"sent_status": bool(sent)})


def service_reminder_description(customer: CustomerRecord, service_done_date: int, tz: Optional[tzinfo] = None) -> str:
    return (
        f"{customer.service_interval}-month service due for {customer.name} "
        f"({customer.brand} {customer.model}). Last service: {format_date(service_done_date, tz)}"
    )


def mark_service_as_done(
    customer: Optional[CustomerRecord],
    service_done_date: int,
    customer_id: Optional[int] = None,
    owner_id: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> ServiceCompletion:
    """
    Schedule the next reminder at service_done_date + service interval
    (calendar months) and move the customer's next service date there.

    `customer` is the snapshot looked up by the caller; None means the id
    did not resolve.
    """
    if customer is None:
        raise NotFoundError("Customer", customer_id, field="customer_id")
    check_timestamp(service_done_date, "service_done_date")
    check_service_interval(customer.service_interval)

    reminder_date = add_months(service_done_date, customer.service_interval, tz)
    reminder = ReminderRecord(
        customer_id=customer.id,
        owner_id=owner_id,
        reminder_date=reminder_date,
        description=service_reminder_description(customer, service_done_date, tz),
        sent_status=False,
    )
    updated = customer.model_copy(update={
        "next_service_date": reminder_date,
        "last_service_done_date": service_done_date,
    })
    logger.debug("Customer %s serviced; next reminder %s", customer.id, reminder_date)
    return ServiceCompletion(reminder=reminder, customer=updated)


# ==================== SERVICE ENTRIES ====================

def record_service_entry(
    customer: Optional[CustomerRecord],
    services: Iterable[ServiceEntryRecord],
    entry: ServiceEntryRecord,
    tz: Optional[tzinfo] = None,
) -> Tuple[ServiceEntryRecord, CustomerRecord]:
    """Validate a new entry and recompute the customer's next service date."""
    if customer is None:
        raise NotFoundError("Customer", entry.customer_id, field="customer_id")
    if entry.customer_id != customer.id:
        raise ValidationError("Service entry belongs to a different customer", field="customer_id")
    validate_service_entry(entry)

    history = [s for s in services if s.id != entry.id or entry.id is None] + [entry]
    return entry, recompute_next_service_date(customer, history, tz)


def update_service_entry(
    customer: CustomerRecord,
    services: Iterable[ServiceEntryRecord],
    updated: ServiceEntryRecord,
    tz: Optional[tzinfo] = None,
) -> Tuple[ServiceEntryRecord, CustomerRecord]:
    """
    Replace an existing entry. The customer's next service date is
    recomputed; reminders already created are not touched.
    """
    services = list(services)
    if updated.id is None or not any(s.id == updated.id for s in services):
        raise NotFoundError("Service entry", updated.id, field="service_id")
    validate_service_entry(updated)

    history = [updated if s.id == updated.id else s for s in services]
    return updated, recompute_next_service_date(customer, history, tz)


def remove_service_entry(
    customer: CustomerRecord,
    services: Iterable[ServiceEntryRecord],
    service_id: int,
    tz: Optional[tzinfo] = None,
) -> CustomerRecord:
    """Customer with next service date recomputed as if `service_id` never happened."""
    services = list(services)
    if not any(s.id == service_id for s in services):
        raise NotFoundError("Service entry", service_id, field="service_id")
    return recompute_next_service_date(customer, [s for s in services if s.id != service_id], tz)


# ==================== QUERIES ====================

def todays_reminders(
    reminders: Iterable[ReminderRecord],
    now: int,
    tz: Optional[tzinfo] = None,
) -> List[ReminderRecord]:
    """Reminders dated on the calendar day containing `now`."""
    day_start = start_of_day(now, tz)
    day_end = add_days(day_start, 1)
    return sorted(
        (r for r in reminders if day_start <= r.reminder_date < day_end),
        key=lambda r: (r.reminder_date, r.id or 0),
    )


def upcoming_reminders(
    reminders: Iterable[ReminderRecord],
    now: int,
    days: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> List[ReminderRecord]:
    """Reminders after today and within the next `days` days."""
    if days is None:
        days = settings.UPCOMING_REMINDER_DAYS
    tomorrow = add_days(start_of_day(now, tz), 1)
    horizon = add_days(tomorrow, days)
    return sorted(
        (r for r in reminders if tomorrow <= r.reminder_date < horizon),
        key=lambda r: (r.reminder_date, r.id or 0),
    )


def pending_reminders(reminders: Iterable[ReminderRecord]) -> List[ReminderRecord]:
    return [r for r in reminders if not r.sent_status]
