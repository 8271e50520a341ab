"""
Derivation engine: warranty status, next service date, AMC contract status
and balances.

Every function is pure. The reference instant `now` is always passed in;
policy inputs (warranty length, renewal window, timezone) default to the
values in settings when not given.
"""
import logging
from datetime import tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from servicecrm.config import settings
from servicecrm.core.exceptions import ValidationError
from servicecrm.core.money import (
    add_days,
    add_months,
    add_years,
    ensure_non_negative,
    from_nanos,
)
from servicecrm.models.amc import AMCPaymentMethod, AMCType, ContractStatus
from servicecrm.models.customer import SERVICE_INTERVALS, WarrantyStatus
from servicecrm.models.service import PaymentStatus
from servicecrm.schemas.amc import AMCDetailsRecord
from servicecrm.schemas.customer import CustomerRecord
from servicecrm.schemas.service import ServiceEntryRecord


logger = logging.getLogger(__name__)


AMC_TYPE_LABELS = {
    AMCType.ONLY_SERVICE: "Only Service",
    AMCType.SERVICE_WITH_PARTS: "Service with Parts",
    AMCType.SERVICE_WITH_PARTS_50: "Service with Parts @50%",
}


# ==================== VALIDATION ====================

def check_service_interval(interval: int, field: str = "service_interval") -> int:
    """Service interval is 1, 3 or 6 months."""
    if isinstance(interval, bool) or interval not in SERVICE_INTERVALS:
        raise ValidationError(
            f"Service interval must be one of {', '.join(map(str, SERVICE_INTERVALS))} months, got {interval!r}",
            field=field,
        )
    return interval


def check_timestamp(value: int, field: str) -> int:
    """Timestamps are positive epoch nanoseconds."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive timestamp, got {value!r}", field=field)
    return value


def check_date_order(start: int, end: int, end_field: str = "contract_end_date") -> None:
    if end < start:
        raise ValidationError("End date cannot be before start date", field=end_field)


def validate_service_entry(entry: ServiceEntryRecord) -> ServiceEntryRecord:
    """
    Enforce the service entry invariants:

    - amount is never negative
    - is_free implies payment_status FREE and amount 0
    - payment_status FREE implies amount 0
    - payment_method is present iff payment_status is PAID
    """
    check_timestamp(entry.service_date, "service_date")
    ensure_non_negative(entry.amount, "amount")

    if entry.is_free:
        if entry.payment_status != PaymentStatus.FREE:
            raise ValidationError("A free service must have payment status FREE", field="payment_status")
        if entry.amount != 0:
            raise ValidationError("A free service must have amount 0", field="amount")

    if entry.payment_status == PaymentStatus.FREE and entry.amount != 0:
        raise ValidationError("Amount must be 0 when payment status is FREE", field="amount")

    if entry.payment_status == PaymentStatus.PAID and entry.payment_method is None:
        raise ValidationError("Payment method is required for a paid service", field="payment_method")
    if entry.payment_status != PaymentStatus.PAID and entry.payment_method is not None:
        raise ValidationError(
            "Payment method is only recorded for paid services", field="payment_method"
        )

    return entry


# ==================== WARRANTY ====================

def derive_warranty_status(
    installation_date: int,
    now: int,
    warranty_months: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> WarrantyStatus:
    """
    In warranty while now < installation_date + warranty period.

    The boundary instant itself is out of warranty.
    """
    if warranty_months is None:
        warranty_months = settings.WARRANTY_PERIOD_MONTHS
    if warranty_months < 0:
        raise ValidationError("Warranty period cannot be negative", field="warranty_months")

    warranty_end = add_months(installation_date, warranty_months, tz)
    if now < warranty_end:
        return WarrantyStatus.IN_WARRANTY
    return WarrantyStatus.OUT_WARRANTY


def count_by_warranty_status(
    customers: Iterable[CustomerRecord],
    now: int,
    warranty_months: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> Dict[WarrantyStatus, int]:
    counts = {status: 0 for status in WarrantyStatus}
    for customer in customers:
        counts[derive_warranty_status(customer.installation_date, now, warranty_months, tz)] += 1
    return counts


def filter_by_warranty_status(
    customers: Iterable[CustomerRecord],
    status: WarrantyStatus,
    now: int,
    warranty_months: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> List[CustomerRecord]:
    return [
        customer for customer in customers
        if derive_warranty_status(customer.installation_date, now, warranty_months, tz) == status
    ]


# ==================== NEXT SERVICE ====================

def derive_next_service_date(
    installation_date: int,
    service_interval: int,
    last_completed_date: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> int:
    """
    Next service is one interval after the last completed service, or one
    interval after installation when no service has been completed.

    A completion dated before installation never pulls the date earlier than
    installation + interval.
    """
    check_service_interval(service_interval)
    check_timestamp(installation_date, "installation_date")

    anchor = installation_date if last_completed_date is None else max(installation_date, last_completed_date)
    return add_months(anchor, service_interval, tz)


def last_completed_service_date(
    customer_id: int,
    services: Iterable[ServiceEntryRecord],
    marked_done: Optional[int] = None,
) -> Optional[int]:
    """
    Latest service date among the customer's entries and the last mark-done
    date, or None when neither exists.
    """
    dates = [s.service_date for s in services if s.customer_id == customer_id]
    if marked_done is not None:
        dates.append(marked_done)
    return max(dates) if dates else None


def recompute_next_service_date(
    customer: CustomerRecord,
    services: Iterable[ServiceEntryRecord],
    tz: Optional[tzinfo] = None,
) -> CustomerRecord:
    """Copy of `customer` with next_service_date derived from its service history."""
    last_done = last_completed_service_date(customer.id, services, customer.last_service_done_date)
    next_date = derive_next_service_date(
        customer.installation_date, customer.service_interval, last_done, tz
    )
    logger.debug("Customer %s next service %s (last done %s)", customer.id, next_date, last_done)
    return customer.model_copy(update={"next_service_date": next_date})


def derive_customer_state(
    customer: CustomerRecord,
    services: Iterable[ServiceEntryRecord],
    now: int,
    warranty_months: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> Tuple[WarrantyStatus, int]:
    """Warranty status and next service date for one customer."""
    warranty = derive_warranty_status(customer.installation_date, now, warranty_months, tz)
    return warranty, recompute_next_service_date(customer, services, tz).next_service_date


def customers_due_in_month(
    customers: Iterable[CustomerRecord],
    year: int,
    month: int,
    tz: Optional[tzinfo] = None,
) -> List[CustomerRecord]:
    """Customers whose next service date falls in the given calendar month."""
    due = []
    for customer in customers:
        when = from_nanos(customer.next_service_date, tz)
        if when.year == year and when.month == month:
            due.append(customer)
    return due


def upcoming_services(
    customers: Iterable[CustomerRecord],
    now: int,
    days: Optional[int] = None,
) -> List[CustomerRecord]:
    """Customers whose next service falls in [now, now + days]."""
    if days is None:
        days = settings.UPCOMING_SERVICE_DAYS
    horizon = add_days(now, days)
    return [c for c in customers if now <= c.next_service_date <= horizon]


# ==================== AMC ====================

def compute_contract_end_date(
    contract_start_date: int,
    duration_years: int,
    tz: Optional[tzinfo] = None,
) -> int:
    """Calendar-year addition, so 2024-01-01 + 1 year is 2025-01-01."""
    check_timestamp(contract_start_date, "contract_start_date")
    if isinstance(duration_years, bool) or duration_years < 1:
        raise ValidationError("Duration must be at least 1 year", field="duration_years")
    return add_years(contract_start_date, duration_years, tz)


def derive_amc_contract_status(
    contract_start_date: int,
    contract_end_date: int,
    now: int,
    renewal_window_days: Optional[int] = None,
) -> ContractStatus:
    """
    EXPIRED once now is past the end date; PENDING_RENEWAL inside the
    trailing renewal window before the end date; ACTIVE otherwise.
    """
    if renewal_window_days is None:
        renewal_window_days = settings.AMC_RENEWAL_WINDOW_DAYS
    if renewal_window_days < 0:
        raise ValidationError("Renewal window cannot be negative", field="renewal_window_days")
    check_date_order(contract_start_date, contract_end_date)

    if now > contract_end_date:
        return ContractStatus.EXPIRED
    if now >= add_days(contract_end_date, -renewal_window_days):
        return ContractStatus.PENDING_RENEWAL
    return ContractStatus.ACTIVE


def compute_amc_remaining_balance(total_amount: int, payments_applied: int) -> int:
    """max(0, total - paid). Negative inputs are rejected, not clamped."""
    ensure_non_negative(total_amount, "total_amount")
    ensure_non_negative(payments_applied, "payments_applied")
    return max(0, total_amount - payments_applied)


def validate_amc_details(details: AMCDetailsRecord, tz: Optional[tzinfo] = None) -> AMCDetailsRecord:
    """0 <= remaining <= total and end == start + duration years."""
    ensure_non_negative(details.total_amount, "total_amount")
    ensure_non_negative(details.remaining_balance, "remaining_balance")
    if details.remaining_balance > details.total_amount:
        raise ValidationError("Remaining balance cannot exceed total amount", field="remaining_balance")

    expected_end = compute_contract_end_date(details.contract_start_date, details.duration_years, tz)
    check_date_order(details.contract_start_date, details.contract_end_date)
    if details.contract_end_date != expected_end:
        raise ValidationError(
            "Contract end date must equal start date plus duration",
            field="contract_end_date",
        )
    return details


def build_amc_details(
    contract_type: AMCType,
    duration_years: int,
    contract_start_date: int,
    total_amount: int,
    payment_method: AMCPaymentMethod = AMCPaymentMethod.CASH,
    notes: str = "",
    tz: Optional[tzinfo] = None,
) -> AMCDetailsRecord:
    """New AMC terms: end date derived, nothing paid yet."""
    ensure_non_negative(total_amount, "total_amount")
    return AMCDetailsRecord(
        contract_type=contract_type,
        duration_years=duration_years,
        contract_start_date=contract_start_date,
        contract_end_date=compute_contract_end_date(contract_start_date, duration_years, tz),
        payment_method=payment_method,
        total_amount=total_amount,
        remaining_balance=total_amount,
        notes=notes,
    )


def rebase_amc_balance(
    existing: Optional[AMCDetailsRecord],
    updated: AMCDetailsRecord,
) -> AMCDetailsRecord:
    """
    Carry payments already collected under `existing` over to edited terms:
    remaining = max(0, new total - already paid).
    """
    already_paid = existing.amount_paid if existing is not None else 0
    remaining = compute_amc_remaining_balance(updated.total_amount, already_paid)
    return updated.model_copy(update={"id": existing.id if existing else updated.id, "remaining_balance": remaining})


def apply_amc_payment(details: AMCDetailsRecord, amount: int) -> AMCDetailsRecord:
    """Record a payment against the contract. The balance floors at zero."""
    ensure_non_negative(amount, "amount")
    remaining = compute_amc_remaining_balance(details.total_amount, details.amount_paid + amount)
    return details.model_copy(update={"remaining_balance": remaining})
