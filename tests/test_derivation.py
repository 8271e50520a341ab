from __future__ import annotations

from datetime import date

import pytest

from servicecrm.core.exceptions import ValidationError
from servicecrm.core.money import add_months, nanos_to_date
from servicecrm.models.amc import AMCPaymentMethod, AMCType, ContractStatus
from servicecrm.models.customer import WarrantyStatus
from servicecrm.models.service import PaymentMethod, PaymentStatus
from servicecrm.schemas.customer import CustomerRecord
from servicecrm.schemas.service import ServiceEntryRecord
from servicecrm.services import derivation_service as derivation

from conftest import ns


def make_customer(**overrides) -> CustomerRecord:
    fields = dict(id=1, name="Meena", contact="+919876543210", installation_date=ns(2024, 1, 15))
    fields.update(overrides)
    return CustomerRecord(**fields)


def make_service(**overrides) -> ServiceEntryRecord:
    fields = dict(id=1, customer_id=1, service_date=ns(2024, 3, 1), amount=50000,
                  payment_status=PaymentStatus.PAID, payment_method=PaymentMethod.CASH)
    fields.update(overrides)
    return ServiceEntryRecord(**fields)


class TestWarranty:
    def test_new_installation_is_in_warranty(self):
        customer = make_customer()
        status = derivation.derive_warranty_status(customer.installation_date, ns(2024, 2, 1))
        assert status == WarrantyStatus.IN_WARRANTY

    def test_boundary_instant_is_out_of_warranty(self):
        installed = ns(2024, 1, 15)
        end = add_months(installed, 12)
        assert derivation.derive_warranty_status(installed, end - 1) == WarrantyStatus.IN_WARRANTY
        assert derivation.derive_warranty_status(installed, end) == WarrantyStatus.OUT_WARRANTY

    def test_warranty_period_is_injectable(self):
        installed = ns(2024, 1, 15)
        now = ns(2024, 3, 1)
        assert derivation.derive_warranty_status(installed, now, warranty_months=1) == WarrantyStatus.OUT_WARRANTY
        assert derivation.derive_warranty_status(installed, now, warranty_months=24) == WarrantyStatus.IN_WARRANTY

    def test_counts_and_filter(self):
        customers = [
            make_customer(id=1, installation_date=ns(2024, 1, 15)),
            make_customer(id=2, installation_date=ns(2020, 5, 1)),
            make_customer(id=3, installation_date=ns(2023, 12, 1)),
        ]
        now = ns(2024, 2, 1)
        counts = derivation.count_by_warranty_status(customers, now)
        assert counts == {WarrantyStatus.IN_WARRANTY: 2, WarrantyStatus.OUT_WARRANTY: 1}
        out = derivation.filter_by_warranty_status(customers, WarrantyStatus.OUT_WARRANTY, now)
        assert [c.id for c in out] == [2]

    def test_empty_input_gives_zero_counts(self):
        counts = derivation.count_by_warranty_status([], ns(2024, 2, 1))
        assert counts == {WarrantyStatus.IN_WARRANTY: 0, WarrantyStatus.OUT_WARRANTY: 0}


class TestNextServiceDate:
    def test_installed_mid_january_with_quarterly_interval(self):
        customer = make_customer(service_interval=3)
        warranty, next_date = derivation.derive_customer_state(customer, [], ns(2024, 2, 1))
        assert warranty == WarrantyStatus.IN_WARRANTY
        assert nanos_to_date(next_date) == date(2024, 4, 15)

    @pytest.mark.parametrize("interval, expected", [(1, date(2024, 2, 15)), (3, date(2024, 4, 15)), (6, date(2024, 7, 15))])
    def test_without_services_next_is_installation_plus_interval(self, interval, expected):
        installed = ns(2024, 1, 15)
        next_date = derivation.derive_next_service_date(installed, interval)
        assert next_date == add_months(installed, interval)
        assert nanos_to_date(next_date) == expected

    @pytest.mark.parametrize("interval", [0, 2, 4, 12, -3, True])
    def test_rejects_interval_outside_closed_set(self, interval):
        with pytest.raises(ValidationError) as excinfo:
            derivation.derive_next_service_date(ns(2024, 1, 15), interval)
        assert excinfo.value.field == "service_interval"

    def test_latest_completed_service_wins(self):
        customer = make_customer(service_interval=3)
        services = [
            make_service(id=1, service_date=ns(2024, 5, 20)),
            make_service(id=2, service_date=ns(2024, 3, 2)),
            make_service(id=3, customer_id=99, service_date=ns(2024, 9, 1)),
        ]
        updated = derivation.recompute_next_service_date(customer, services)
        assert nanos_to_date(updated.next_service_date) == date(2024, 8, 20)
        assert customer.next_service_date == 0

    def test_mark_done_date_counts_as_completed_service(self):
        customer = make_customer(service_interval=3, last_service_done_date=ns(2024, 6, 10))
        updated = derivation.recompute_next_service_date(customer, [make_service(service_date=ns(2024, 3, 1))])
        assert nanos_to_date(updated.next_service_date) == date(2024, 9, 10)

        later = derivation.recompute_next_service_date(customer, [make_service(service_date=ns(2024, 7, 1))])
        assert nanos_to_date(later.next_service_date) == date(2024, 10, 1)

    def test_completion_before_installation_anchors_on_installation(self):
        next_date = derivation.derive_next_service_date(ns(2024, 1, 15), 3, ns(2023, 1, 1))
        assert nanos_to_date(next_date) == date(2024, 4, 15)

    def test_due_in_month_and_upcoming(self):
        customers = [
            make_customer(id=1, next_service_date=ns(2024, 2, 10)),
            make_customer(id=2, next_service_date=ns(2024, 3, 5)),
            make_customer(id=3, next_service_date=ns(2024, 1, 20)),
        ]
        due = derivation.customers_due_in_month(customers, 2024, 2)
        assert [c.id for c in due] == [1]
        upcoming = derivation.upcoming_services(customers, ns(2024, 2, 1), days=40)
        assert sorted(c.id for c in upcoming) == [1, 2]


class TestServiceEntryInvariants:
    def test_free_service_must_be_free_with_zero_amount(self):
        with pytest.raises(ValidationError) as excinfo:
            derivation.validate_service_entry(make_service(is_free=True))
        assert excinfo.value.field == "payment_status"

        with pytest.raises(ValidationError) as excinfo:
            derivation.validate_service_entry(
                make_service(is_free=True, payment_status=PaymentStatus.FREE, payment_method=None)
            )
        assert excinfo.value.field == "amount"

    def test_payment_method_present_iff_paid(self):
        with pytest.raises(ValidationError) as excinfo:
            derivation.validate_service_entry(make_service(payment_method=None))
        assert excinfo.value.field == "payment_method"

        with pytest.raises(ValidationError):
            derivation.validate_service_entry(make_service(payment_status=PaymentStatus.UNPAID))

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError) as excinfo:
            derivation.validate_service_entry(make_service(amount=-1))
        assert excinfo.value.field == "amount"

    def test_valid_entries_pass(self):
        free = make_service(is_free=True, amount=0, payment_status=PaymentStatus.FREE, payment_method=None)
        unpaid = make_service(payment_status=PaymentStatus.UNPAID, payment_method=None)
        assert derivation.validate_service_entry(free) is free
        assert derivation.validate_service_entry(unpaid) is unpaid


class TestAMC:
    def test_one_year_contract_status_over_time(self):
        start = ns(2024, 1, 1)
        end = derivation.compute_contract_end_date(start, 1)
        assert nanos_to_date(end) == date(2025, 1, 1)

        assert derivation.derive_amc_contract_status(start, end, ns(2024, 6, 1)) == ContractStatus.ACTIVE
        assert derivation.derive_amc_contract_status(start, end, ns(2024, 12, 15)) == ContractStatus.PENDING_RENEWAL
        assert derivation.derive_amc_contract_status(start, end, ns(2025, 1, 2)) == ContractStatus.EXPIRED

    def test_end_date_itself_is_still_pending_renewal(self):
        start, end = ns(2024, 1, 1), ns(2025, 1, 1)
        assert derivation.derive_amc_contract_status(start, end, end) == ContractStatus.PENDING_RENEWAL

    def test_renewal_window_is_injectable(self):
        start, end = ns(2024, 1, 1), ns(2025, 1, 1)
        now = ns(2024, 11, 15)
        assert derivation.derive_amc_contract_status(start, end, now) == ContractStatus.ACTIVE
        assert derivation.derive_amc_contract_status(start, end, now, renewal_window_days=60) == ContractStatus.PENDING_RENEWAL

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError) as excinfo:
            derivation.derive_amc_contract_status(ns(2024, 6, 1), ns(2024, 1, 1), ns(2024, 3, 1))
        assert excinfo.value.field == "contract_end_date"

    @pytest.mark.parametrize("total, paid", [(0, 0), (1000, 0), (1000, 400), (1000, 1000), (1000, 1500), (5, 10_000)])
    def test_remaining_balance_never_negative(self, total, paid):
        remaining = derivation.compute_amc_remaining_balance(total, paid)
        assert remaining >= 0
        if paid <= total:
            assert remaining == total - paid

    def test_remaining_balance_rejects_negative_inputs(self):
        with pytest.raises(ValidationError) as excinfo:
            derivation.compute_amc_remaining_balance(-1, 0)
        assert excinfo.value.field == "total_amount"

    def test_build_then_pay_then_rebase(self):
        details = derivation.build_amc_details(
            contract_type=AMCType.SERVICE_WITH_PARTS,
            duration_years=2,
            contract_start_date=ns(2024, 2, 29),
            total_amount=600000,
            payment_method=AMCPaymentMethod.UPI,
        )
        assert nanos_to_date(details.contract_end_date) == date(2026, 2, 28)
        assert details.remaining_balance == 600000
        assert derivation.validate_amc_details(details) is details

        paid = derivation.apply_amc_payment(details, 250000)
        assert paid.remaining_balance == 350000
        assert paid.amount_paid == 250000

        edited = derivation.build_amc_details(AMCType.SERVICE_WITH_PARTS, 2, ns(2024, 2, 29), 200000)
        rebased = derivation.rebase_amc_balance(paid, edited)
        assert rebased.remaining_balance == 0

    def test_overpayment_floors_at_zero(self):
        details = derivation.build_amc_details(AMCType.ONLY_SERVICE, 1, ns(2024, 1, 1), 1000)
        assert derivation.apply_amc_payment(details, 5000).remaining_balance == 0
        with pytest.raises(ValidationError):
            derivation.apply_amc_payment(details, -5)

    def test_tampered_end_date_rejected(self):
        details = derivation.build_amc_details(AMCType.ONLY_SERVICE, 1, ns(2024, 1, 1), 1000)
        tampered = details.model_copy(update={"contract_end_date": details.contract_end_date + 1})
        with pytest.raises(ValidationError) as excinfo:
            derivation.validate_amc_details(tampered)
        assert excinfo.value.field == "contract_end_date"

    def test_payment_method_maps_by_name_only_one_way(self):
        assert AMCPaymentMethod.from_service_method(PaymentMethod.UPI) == AMCPaymentMethod.UPI
        assert derivation.AMC_TYPE_LABELS[AMCType.SERVICE_WITH_PARTS_50] == "Service with Parts @50%"
