from __future__ import annotations

import itertools
from datetime import date

import pytest

from servicecrm.core.exceptions import ValidationError
from servicecrm.core.money import nanos_to_date
from servicecrm.models.amc import AMCPaymentMethod, AMCType
from servicecrm.models.service import PaymentMethod, PaymentStatus
from servicecrm.schemas.amc import AMCContractRecord
from servicecrm.schemas.customer import CustomerRecord
from servicecrm.schemas.revenue import AMCRevenue, RevenueByPeriod
from servicecrm.schemas.service import ServiceEntryRecord
from servicecrm.services import derivation_service as derivation
from servicecrm.services import revenue_service as revenue
from servicecrm.services.revenue_service import RevenueWindow

from conftest import ns


def paid(id, when, amount, method=PaymentMethod.CASH, customer_id=1):
    return ServiceEntryRecord(id=id, customer_id=customer_id, service_date=when, amount=amount,
                              payment_status=PaymentStatus.PAID, payment_method=method)


def free(id, when, customer_id=1):
    return ServiceEntryRecord(id=id, customer_id=customer_id, service_date=when, amount=0,
                              payment_status=PaymentStatus.FREE, is_free=True)


def unpaid(id, when, amount, customer_id=1):
    return ServiceEntryRecord(id=id, customer_id=customer_id, service_date=when, amount=amount,
                              payment_status=PaymentStatus.UNPAID)


def amc(start, total, remaining, duration=1, method=AMCPaymentMethod.CASH, contract_type=AMCType.ONLY_SERVICE):
    details = derivation.build_amc_details(contract_type, duration, start, total, method)
    return details.model_copy(update={"remaining_balance": remaining})


@pytest.fixture
def services():
    return [
        paid(1, ns(2024, 2, 1), 50000),
        paid(2, ns(2024, 2, 29, 23, 59), 25000, PaymentMethod.UPI),
        free(3, ns(2024, 2, 15)),
        unpaid(4, ns(2024, 2, 20), 10000),
        paid(5, ns(2024, 3, 1), 70000),
        paid(6, ns(2025, 1, 10), 30000, PaymentMethod.UPI),
    ]


class TestWindows:
    def test_month_window_covers_whole_last_day(self, services):
        result = revenue.aggregate_revenue(services, RevenueWindow.month(2024, 2))
        assert result == RevenueByPeriod(total_revenue=85000, paid_services_count=2, free_services_count=1)

    def test_fiscal_quarter_four_falls_in_next_calendar_year(self):
        window = RevenueWindow.fiscal_quarter(2024, 4)
        assert nanos_to_date(window.start) == date(2025, 1, 1)
        assert nanos_to_date(window.end) == date(2025, 4, 1)

    def test_fiscal_quarter_one_starts_in_april(self):
        window = RevenueWindow.fiscal_quarter(2024, 1)
        assert nanos_to_date(window.start) == date(2024, 4, 1)
        assert nanos_to_date(window.end) == date(2024, 7, 1)

    def test_fiscal_quarter_aggregation(self, services):
        q4_fy23 = revenue.aggregate_revenue(services, RevenueWindow.fiscal_quarter(2023, 4))
        assert q4_fy23.total_revenue == 155000
        q4_fy24 = revenue.aggregate_revenue(services, RevenueWindow.fiscal_quarter(2024, 4))
        assert q4_fy24.total_revenue == 30000

    def test_year_window(self, services):
        assert revenue.aggregate_revenue(services, RevenueWindow.year(2024)).total_revenue == 155000

    def test_invalid_month_and_quarter(self):
        with pytest.raises(ValidationError):
            RevenueWindow.month(2024, 13)
        with pytest.raises(ValidationError):
            RevenueWindow.fiscal_quarter(2024, 5)
        with pytest.raises(ValidationError):
            RevenueWindow.between(ns(2024, 2, 1), ns(2024, 1, 1))

    def test_quarter_helpers(self):
        assert [q.label for q in revenue.FY_QUARTERS][0] == "Q1 (Apr-Jun)"
        assert revenue.current_fiscal_quarter(ns(2024, 2, 1)) == 4
        assert revenue.current_fiscal_quarter(ns(2024, 4, 1)) == 1
        assert revenue.fiscal_year_start(ns(2024, 2, 1)) == 2023
        assert revenue.fiscal_quarter_label(3) == "Q3 (Oct-Dec)"


class TestAggregation:
    def test_invariant_under_permutation(self, services):
        window = RevenueWindow.year(2024)
        expected = revenue.aggregate_revenue(services, window)
        for ordering in itertools.permutations(services):
            assert revenue.aggregate_revenue(list(ordering), window) == expected

    def test_free_services_never_count_as_paid(self):
        result = revenue.aggregate_revenue([free(1, ns(2024, 2, 1)), free(2, ns(2024, 2, 2))], RevenueWindow.month(2024, 2))
        assert result.paid_services_count == 0
        assert result.free_services_count == 2
        assert result.total_revenue == 0

    def test_empty_inputs_return_zeroes(self):
        assert revenue.aggregate_revenue([], RevenueWindow.month(2024, 2)) == RevenueByPeriod()
        assert revenue.aggregate_amc_revenue([], ns(2024, 2, 1)) == AMCRevenue()
        assert revenue.aggregate_by_customer([], [], ns(2024, 2, 1)) == []

    def test_summary_for_now(self, services):
        summary = revenue.revenue_summary(services, ns(2024, 2, 10))
        assert summary.month.total_revenue == 85000
        assert summary.fiscal_quarter == 4
        assert summary.fiscal_quarter_label == "Q4 (Jan-Mar)"
        assert summary.quarter.total_revenue == 155000

    def test_unpaid_services(self, services):
        assert [s.id for s in revenue.unpaid_services(services)] == [4]


class TestPerCustomer:
    def test_trailing_window_and_amc_rows(self):
        customers = [
            CustomerRecord(id=2, name="Kiran", contact="+919800000002", installation_date=ns(2023, 1, 1),
                           amc_details=amc(ns(2023, 6, 1), 500000, 0)),
            CustomerRecord(id=1, name="Meena", contact="+919800000001", installation_date=ns(2023, 1, 1)),
            CustomerRecord(id=3, name="Nobody", contact="+919800000003", installation_date=ns(2023, 1, 1)),
            CustomerRecord(
                id=4, name="Bulk", contact="+919800000004", installation_date=ns(2023, 1, 1),
                amc_contracts=[
                    AMCContractRecord(id=1, customer_id=4, contract_type=AMCType.SERVICE_WITH_PARTS,
                                      amount=1000, start_date=ns(2022, 1, 1), end_date=ns(2023, 1, 1)),
                ],
            ),
        ]
        services = [
            paid(1, ns(2024, 1, 5), 40000, customer_id=1),
            free(2, ns(2023, 12, 1), customer_id=1),
            paid(3, ns(2022, 12, 1), 90000, customer_id=1),
        ]
        rows = revenue.aggregate_by_customer(services, customers, ns(2024, 2, 1))

        assert [r.customer_id for r in rows] == [1, 2, 4]
        meena, kiran, bulk = rows
        assert (meena.paid_services_count, meena.free_services_count, meena.total_revenue) == (1, 1, 40000)
        assert meena.contract_type is None
        assert kiran.amc_renewal_count == 1
        assert kiran.contract_type == AMCType.ONLY_SERVICE
        assert bulk.amc_renewal_count == 0
        assert bulk.contract_type == AMCType.SERVICE_WITH_PARTS


class TestPaymentMethods:
    def test_service_and_amc_methods_stay_separate(self, services):
        amc_details = [
            amc(ns(2024, 2, 5), 300000, 100000, method=AMCPaymentMethod.CASH),
            amc(ns(2024, 2, 6), 200000, 0, method=AMCPaymentMethod.CHEQUE),
            amc(ns(2023, 2, 6), 900000, 0, method=AMCPaymentMethod.CASH),
        ]
        breakdown = revenue.aggregate_by_payment_method(services, RevenueWindow.month(2024, 2), amc_details)

        assert breakdown.service_totals == {PaymentMethod.CASH: 50000, PaymentMethod.UPI: 25000}
        assert breakdown.service_counts == {PaymentMethod.CASH: 1, PaymentMethod.UPI: 1}
        assert breakdown.cash_payments == 50000
        assert breakdown.upi_payments == 25000
        assert breakdown.amc_totals[AMCPaymentMethod.CASH] == 200000
        assert breakdown.amc_totals[AMCPaymentMethod.CHEQUE] == 200000
        assert breakdown.amc_totals[AMCPaymentMethod.BANK_TRANSFER] == 0

    def test_without_window_everything_counts(self, services):
        breakdown = revenue.aggregate_by_payment_method(services)
        assert breakdown.service_totals[PaymentMethod.CASH] == 120000
        assert breakdown.service_totals[PaymentMethod.UPI] == 55000


class TestAMCRevenue:
    def test_in_progress_completed_and_remaining(self):
        contracts = [
            amc(ns(2023, 6, 1), 500000, 100000),
            amc(ns(2022, 1, 1), 300000, 0),
            amc(ns(2023, 2, 15), 200000, 50000),
        ]
        now = ns(2024, 2, 1)
        result = revenue.aggregate_amc_revenue(contracts, now)
        assert result == AMCRevenue(
            total_amount=1000000,
            in_progress_amount=700000,
            completed_amount=300000,
            remaining_balance=150000,
        )

    def test_is_idempotent_and_does_not_mutate_input(self):
        contracts = [amc(ns(2023, 6, 1), 500000, 100000)]
        snapshot = [c.model_copy(deep=True) for c in contracts]
        first = revenue.aggregate_amc_revenue(contracts, ns(2024, 2, 1))
        second = revenue.aggregate_amc_revenue(contracts, ns(2024, 2, 1))
        assert first == second
        assert contracts == snapshot
