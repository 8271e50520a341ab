"""Revenue aggregation result shapes. All money in paise."""
from typing import Dict, Optional

from pydantic import BaseModel, Field

from servicecrm.models.amc import AMCType, AMCPaymentMethod
from servicecrm.models.service import PaymentMethod


class RevenueByPeriod(BaseModel):
    total_revenue: int = 0
    paid_services_count: int = 0
    free_services_count: int = 0


class CustomerRevenueBreakdown(BaseModel):
    customer_id: int
    customer_name: str
    paid_services_count: int = 0
    free_services_count: int = 0
    total_revenue: int = 0
    amc_renewal_count: int = 0
    contract_type: Optional[AMCType] = None


class PaymentMethodBreakdown(BaseModel):
    """
    Service and AMC collections are reported under their own method sets;
    a service CASH total is never merged into the AMC CASH total.
    """
    service_totals: Dict[PaymentMethod, int] = Field(
        default_factory=lambda: {method: 0 for method in PaymentMethod}
    )
    service_counts: Dict[PaymentMethod, int] = Field(
        default_factory=lambda: {method: 0 for method in PaymentMethod}
    )
    amc_totals: Dict[AMCPaymentMethod, int] = Field(
        default_factory=lambda: {method: 0 for method in AMCPaymentMethod}
    )

    @property
    def cash_payments(self) -> int:
        return self.service_totals[PaymentMethod.CASH]

    @property
    def upi_payments(self) -> int:
        return self.service_totals[PaymentMethod.UPI]


class AMCRevenue(BaseModel):
    total_amount: int = 0
    in_progress_amount: int = 0
    completed_amount: int = 0
    remaining_balance: int = 0


class RevenueSummary(BaseModel):
    """Month, FY quarter and year containing the reference instant."""
    month: RevenueByPeriod
    quarter: RevenueByPeriod
    year: RevenueByPeriod
    fiscal_quarter: int
    fiscal_quarter_label: str
