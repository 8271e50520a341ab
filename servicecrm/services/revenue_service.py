"""
Revenue aggregation over service entries and AMC contracts.

All functions are pure and total: empty input yields zeroed results, and
results do not depend on input order. Windows are calendar ranges in the
business timezone, half-open at the end, which is the same as an
inclusive range ending at the last nanosecond of the final day.
"""
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Dict, Iterable, List, Optional

from servicecrm.config import settings
from servicecrm.core.exceptions import ValidationError
from servicecrm.core.money import add_months, ensure_non_negative, from_nanos, to_nanos
from servicecrm.models.amc import AMCType, ContractStatus
from servicecrm.models.service import PaymentMethod, PaymentStatus
from servicecrm.schemas.amc import AMCDetailsRecord
from servicecrm.schemas.customer import CustomerRecord
from servicecrm.schemas.revenue import (
    AMCRevenue,
    CustomerRevenueBreakdown,
    PaymentMethodBreakdown,
    RevenueByPeriod,
    RevenueSummary,
)
from servicecrm.schemas.service import ServiceEntryRecord
from servicecrm.services.derivation_service import derive_amc_contract_status


@dataclass(frozen=True)
class FYQuarter:
    quarter: int
    label: str
    start_month: int
    end_month: int


# Fiscal year starts in April
FY_QUARTERS = (
    FYQuarter(1, "Q1 (Apr-Jun)", 4, 6),
    FYQuarter(2, "Q2 (Jul-Sep)", 7, 9),
    FYQuarter(3, "Q3 (Oct-Dec)", 10, 12),
    FYQuarter(4, "Q4 (Jan-Mar)", 1, 3),
)

_QUARTERS_BY_NUMBER = {q.quarter: q for q in FY_QUARTERS}


def fiscal_quarter_of_month(month: int) -> int:
    for q in FY_QUARTERS:
        if q.start_month <= month <= q.end_month:
            return q.quarter
    raise ValidationError(f"Invalid month: {month}", field="month")


def current_fiscal_quarter(now: int, tz: Optional[tzinfo] = None) -> int:
    return fiscal_quarter_of_month(from_nanos(now, tz).month)


def fiscal_year_start(now: int, tz: Optional[tzinfo] = None) -> int:
    """Calendar year in which the fiscal year containing `now` began."""
    when = from_nanos(now, tz)
    return when.year if when.month >= 4 else when.year - 1


def fiscal_quarter_label(quarter: int) -> str:
    q = _QUARTERS_BY_NUMBER.get(quarter)
    return q.label if q else f"Q{quarter}"


@dataclass(frozen=True)
class RevenueWindow:
    """A [start, end) range of epoch nanoseconds with a display label."""
    start: int
    end: int
    label: str = ""

    def contains(self, ns: int) -> bool:
        return self.start <= ns < self.end

    @staticmethod
    def _local_midnight(year: int, month: int, day: int, tz: Optional[tzinfo]) -> int:
        return to_nanos(datetime(year, month, day), tz)

    @classmethod
    def month(cls, year: int, month: int, tz: Optional[tzinfo] = None) -> "RevenueWindow":
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be 1-12, got {month}", field="month")
        start = cls._local_midnight(year, month, 1, tz)
        return cls(start, add_months(start, 1, tz), f"{year}-{month:02d}")

    @classmethod
    def fiscal_quarter(cls, year: int, quarter: int, tz: Optional[tzinfo] = None) -> "RevenueWindow":
        """
        Quarter of the fiscal year that starts in April of `year`:
        Q1..Q3 fall in `year`, Q4 (Jan-Mar) falls in `year + 1`.
        """
        q = _QUARTERS_BY_NUMBER.get(quarter)
        if q is None:
            raise ValidationError(f"Quarter must be 1-4, got {quarter}", field="quarter")
        calendar_year = year + 1 if quarter == 4 else year
        start = cls._local_midnight(calendar_year, q.start_month, 1, tz)
        return cls(start, add_months(start, 3, tz), f"FY{year}-{str(year + 1)[-2:]} {q.label}")

    @classmethod
    def year(cls, year: int, tz: Optional[tzinfo] = None) -> "RevenueWindow":
        start = cls._local_midnight(year, 1, 1, tz)
        return cls(start, add_months(start, 12, tz), str(year))

    @classmethod
    def trailing_months(cls, now: int, months: int, tz: Optional[tzinfo] = None) -> "RevenueWindow":
        """The `months` calendar months up to and including `now`."""
        if months < 1:
            raise ValidationError("Trailing window must be at least 1 month", field="months")
        return cls(add_months(now, -months, tz), now + 1, f"last {months} months")

    @classmethod
    def between(cls, start: int, end: int) -> "RevenueWindow":
        """Inclusive range [start, end]."""
        if end < start:
            raise ValidationError("End date cannot be before start date", field="end")
        return cls(start, end + 1, "custom")


# ==================== SERVICE REVENUE ====================

def aggregate_revenue(
    services: Iterable[ServiceEntryRecord],
    window: RevenueWindow,
) -> RevenueByPeriod:
    """
    Sum of amounts and paid/free counts for services dated inside `window`.

    Amount is summed regardless of status; free services carry amount 0.
    """
    total = paid = free = 0
    for service in services:
        if not window.contains(service.service_date):
            continue
        total += service.amount
        if service.payment_status == PaymentStatus.PAID:
            paid += 1
        elif service.payment_status == PaymentStatus.FREE:
            free += 1
    return RevenueByPeriod(total_revenue=total, paid_services_count=paid, free_services_count=free)


def revenue_summary(
    services: Iterable[ServiceEntryRecord],
    now: int,
    tz: Optional[tzinfo] = None,
) -> RevenueSummary:
    """Month, fiscal quarter and calendar year containing `now`."""
    services = list(services)
    when = from_nanos(now, tz)
    quarter = current_fiscal_quarter(now, tz)
    return RevenueSummary(
        month=aggregate_revenue(services, RevenueWindow.month(when.year, when.month, tz)),
        quarter=aggregate_revenue(services, RevenueWindow.fiscal_quarter(fiscal_year_start(now, tz), quarter, tz)),
        year=aggregate_revenue(services, RevenueWindow.year(when.year, tz)),
        fiscal_quarter=quarter,
        fiscal_quarter_label=fiscal_quarter_label(quarter),
    )


def unpaid_services(services: Iterable[ServiceEntryRecord]) -> List[ServiceEntryRecord]:
    return [s for s in services if s.payment_status == PaymentStatus.UNPAID]


# ==================== PER CUSTOMER ====================

def _customer_contract_type(customer: CustomerRecord) -> Optional[AMCType]:
    if customer.amc_details is not None:
        return customer.amc_details.contract_type
    if customer.amc_contracts:
        latest = max(customer.amc_contracts, key=lambda c: (c.start_date, c.id or 0))
        return latest.contract_type
    return None


def _amc_starts_in(customer: CustomerRecord, window: RevenueWindow) -> int:
    starts = [c.start_date for c in customer.amc_contracts]
    if customer.amc_details is not None:
        starts.append(customer.amc_details.contract_start_date)
    return sum(1 for start in starts if window.contains(start))


def aggregate_by_customer(
    services: Iterable[ServiceEntryRecord],
    customers: Iterable[CustomerRecord],
    now: int,
    window: Optional[RevenueWindow] = None,
    tz: Optional[tzinfo] = None,
) -> List[CustomerRevenueBreakdown]:
    """
    One row per customer with at least one service in the window or any AMC
    contract. Defaults to the trailing CUSTOMER_REVENUE_WINDOW_MONTHS.

    amc_renewal_count counts AMC contracts (embedded and long-form) that
    started inside the window. Rows are returned in customer id order;
    display sorting is left to the caller.
    """
    if window is None:
        window = RevenueWindow.trailing_months(now, settings.CUSTOMER_REVENUE_WINDOW_MONTHS, tz)

    by_customer: Dict[int, List[ServiceEntryRecord]] = {}
    for service in services:
        if window.contains(service.service_date):
            by_customer.setdefault(service.customer_id, []).append(service)

    rows = []
    for customer in sorted(customers, key=lambda c: c.id or 0):
        entries = by_customer.get(customer.id, [])
        has_amc = customer.amc_details is not None or bool(customer.amc_contracts)
        if not entries and not has_amc:
            continue
        period = aggregate_revenue(entries, window)
        rows.append(CustomerRevenueBreakdown(
            customer_id=customer.id,
            customer_name=customer.name,
            paid_services_count=period.paid_services_count,
            free_services_count=period.free_services_count,
            total_revenue=period.total_revenue,
            amc_renewal_count=_amc_starts_in(customer, window),
            contract_type=_customer_contract_type(customer),
        ))
    return rows


# ==================== PAYMENT METHODS ====================

def aggregate_by_payment_method(
    services: Iterable[ServiceEntryRecord],
    window: Optional[RevenueWindow] = None,
    amc_details: Iterable[AMCDetailsRecord] = (),
) -> PaymentMethodBreakdown:
    """
    Paid service amounts per service method (CASH/UPI) and collected AMC
    amounts (total - remaining) per AMC method. The two method sets are
    reported separately.
    """
    breakdown = PaymentMethodBreakdown()

    for service in services:
        if service.payment_status != PaymentStatus.PAID or service.payment_method is None:
            continue
        if window is not None and not window.contains(service.service_date):
            continue
        method = PaymentMethod(service.payment_method)
        breakdown.service_totals[method] += service.amount
        breakdown.service_counts[method] += 1

    for details in amc_details:
        if window is not None and not window.contains(details.contract_start_date):
            continue
        breakdown.amc_totals[details.payment_method] += details.amount_paid

    return breakdown


# ==================== AMC ====================

def aggregate_amc_revenue(
    amc_contracts: Iterable[AMCDetailsRecord],
    now: int,
    renewal_window_days: Optional[int] = None,
) -> AMCRevenue:
    """
    in_progress: contracts ACTIVE or PENDING_RENEWAL at `now`;
    completed: contracts EXPIRED at `now`;
    remaining_balance: sum of each contract's own remaining balance.
    """
    total = in_progress = completed = remaining = 0
    for contract in amc_contracts:
        status = derive_amc_contract_status(
            contract.contract_start_date, contract.contract_end_date, now, renewal_window_days
        )
        total += contract.total_amount
        if status == ContractStatus.EXPIRED:
            completed += contract.total_amount
        else:
            in_progress += contract.total_amount
        remaining += ensure_non_negative(contract.remaining_balance, "remaining_balance")
    return AMCRevenue(
        total_amount=total,
        in_progress_amount=in_progress,
        completed_amount=completed,
        remaining_balance=remaining,
    )
