"""Revenue API endpoints. Amounts are integer paise."""
from typing import List, Optional

from fastapi import APIRouter, Query

from servicecrm.api.deps import CurrentUser, Now, Store
from servicecrm.core.money import from_nanos
from servicecrm.schemas.revenue import (
    CustomerRevenueBreakdown,
    PaymentMethodBreakdown,
    RevenueByPeriod,
)
from servicecrm.services.revenue_service import (
    RevenueWindow,
    aggregate_by_customer,
    aggregate_by_payment_method,
    aggregate_revenue,
    current_fiscal_quarter,
    fiscal_year_start,
)


router = APIRouter(tags=["Revenue"])


@router.get("/month", response_model=RevenueByPeriod)
async def month_revenue(
    store: Store,
    current_user: CurrentUser,
    now: Now,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    """Revenue for a calendar month; defaults to the current month."""
    today = from_nanos(now)
    window = RevenueWindow.month(year or today.year, month or today.month)
    return aggregate_revenue(await store.get_service_records(), window)


@router.get("/quarter", response_model=RevenueByPeriod)
async def quarter_revenue(
    store: Store,
    current_user: CurrentUser,
    now: Now,
    fiscal_year: Optional[int] = Query(None, ge=1900, le=9999, description="FY start year"),
    quarter: Optional[int] = Query(None, ge=1, le=4),
):
    """Revenue for an Indian fiscal quarter (Q1 = Apr-Jun)."""
    window = RevenueWindow.fiscal_quarter(
        fiscal_year or fiscal_year_start(now),
        quarter or current_fiscal_quarter(now),
    )
    return aggregate_revenue(await store.get_service_records(), window)


@router.get("/year", response_model=RevenueByPeriod)
async def year_revenue(
    store: Store,
    current_user: CurrentUser,
    now: Now,
    year: Optional[int] = Query(None, ge=1900, le=9999),
):
    window = RevenueWindow.year(year or from_nanos(now).year)
    return aggregate_revenue(await store.get_service_records(), window)


@router.get("/customers", response_model=List[CustomerRevenueBreakdown])
async def customer_revenue(
    store: Store,
    current_user: CurrentUser,
    now: Now,
    start: Optional[int] = Query(None, description="Window start, epoch ns"),
    end: Optional[int] = Query(None, description="Window end (inclusive), epoch ns"),
):
    """Per-customer revenue over a custom range, or the trailing twelve months."""
    window = RevenueWindow.between(start, end) if start is not None and end is not None else None
    return aggregate_by_customer(
        await store.get_service_records(),
        await store.get_customer_records(),
        now,
        window,
    )


@router.get("/payment-methods", response_model=PaymentMethodBreakdown)
async def payment_method_revenue(
    store: Store,
    current_user: CurrentUser,
    start: Optional[int] = Query(None, description="Window start, epoch ns"),
    end: Optional[int] = Query(None, description="Window end (inclusive), epoch ns"),
):
    window = RevenueWindow.between(start, end) if start is not None and end is not None else None
    return aggregate_by_payment_method(
        await store.get_service_records(),
        window,
        await store.get_amc_details_records(),
    )
