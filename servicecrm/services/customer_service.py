"""
Customer Service: storage adapter for customers, service entries,
reminders and AMC records.

Reads ORM rows, hands plain record snapshots to the derivation, revenue
and reminder functions, and writes back what they return. Every write
checks the acting user's role first and performs no side effects when the
check or a lookup fails.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from servicecrm.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from servicecrm.core.phone import is_valid_indian_mobile, normalize_indian_mobile_to_e164, to_whatsapp_number
from servicecrm.models.amc import AMCContract, AMCDetails, AMCServiceEntry, AMCType, ContractStatus
from servicecrm.models.customer import Customer
from servicecrm.models.reminder import Reminder
from servicecrm.models.service import PaymentMethod, PaymentStatus, ServiceEntry
from servicecrm.models.user import User, UserRole
from servicecrm.schemas.amc import (
    AMCBulkApply,
    AMCContractRecord,
    AMCDetailsInput,
    AMCDetailsRecord,
    AMCDetailsResponse,
    AMCServiceCreate,
    AMCServiceRecord,
    BulkOperationResult,
    PriceReduction,
)
from servicecrm.schemas.common import ServiceType
from servicecrm.schemas.customer import CustomerCreate, CustomerRecord, CustomerResponse, CustomerUpdate
from servicecrm.schemas.imports import ImportCustomerData
from servicecrm.schemas.reminder import ReminderCreate, ReminderRecord, ReminderResponse
from servicecrm.schemas.service import ServiceEntryCreate, ServiceEntryRecord, ServiceEntryResponse, ServiceEntryUpdate
from servicecrm.services import derivation_service as derivation
from servicecrm.services import reminder_service as lifecycle
from servicecrm.services.import_service import summarize_import


logger = logging.getLogger(__name__)


# ==================== ROW <-> RECORD ====================

def amc_details_record(row: AMCDetails) -> AMCDetailsRecord:
    return AMCDetailsRecord.model_validate(row)


def amc_service_record(row: AMCServiceEntry) -> AMCServiceRecord:
    reduction = None
    if row.reduction_part_name:
        reduction = PriceReduction(
            part_name=row.reduction_part_name,
            regular_price=row.reduction_regular_price or "",
            discount_price=row.reduction_discount_price or "",
        )
    return AMCServiceRecord(
        id=row.id,
        customer_id=row.customer_id,
        service_date=row.service_date,
        contract_type=row.contract_type,
        contract_status=row.contract_status,
        parts_replaced=row.parts_replaced or "",
        follow_up_needed=row.follow_up_needed,
        price_reduction=reduction,
        notes=row.notes or "",
    )


def customer_record(row: Customer) -> CustomerRecord:
    return CustomerRecord(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        contact=row.contact,
        brand=row.brand,
        model=row.model,
        service_type=ServiceType.from_columns(row.service_kind, row.service_label),
        installation_date=row.installation_date,
        service_interval=row.service_interval,
        next_service_date=row.next_service_date,
        last_service_done_date=row.last_service_done_date,
        amc_details=amc_details_record(row.amc_details) if row.amc_details else None,
        amc_services=[amc_service_record(s) for s in row.amc_services],
        amc_contracts=[AMCContractRecord.model_validate(c) for c in row.amc_contracts],
    )


def service_record(row: ServiceEntry) -> ServiceEntryRecord:
    return ServiceEntryRecord(
        id=row.id,
        customer_id=row.customer_id,
        owner_id=row.owner_id,
        service_date=row.service_date,
        service_type=ServiceType.from_columns(row.service_kind, row.service_label),
        amount=row.amount,
        payment_status=row.payment_status,
        payment_method=row.payment_method,
        is_free=row.is_free,
        notes=row.notes or "",
    )


def reminder_record(row: Reminder) -> ReminderRecord:
    return ReminderRecord.model_validate(row)


def customer_response(record: CustomerRecord, now: int) -> CustomerResponse:
    return CustomerResponse(
        **record.model_dump(),
        warranty_status=derivation.derive_warranty_status(record.installation_date, now),
        whatsapp_number=to_whatsapp_number(record.contact),
    )


def _service_type_columns(service_type: ServiceType) -> Tuple[str, Optional[str]]:
    return service_type.kind.value, service_type.label


def _write_amc_details(row: AMCDetails, record: AMCDetailsRecord) -> None:
    row.contract_type = record.contract_type.value
    row.duration_years = record.duration_years
    row.contract_start_date = record.contract_start_date
    row.contract_end_date = record.contract_end_date
    row.payment_method = record.payment_method.value
    row.total_amount = record.total_amount
    row.remaining_balance = record.remaining_balance
    row.notes = record.notes


class CustomerService:
    """Service for customer, service entry, reminder and AMC operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== PERMISSIONS ====================

    @staticmethod
    def _require_writer(user: User, action: str) -> None:
        if user.role not in (UserRole.ADMIN.value, UserRole.USER.value) or not user.is_active:
            logger.warning("Refused %s for user %s (role %s)", action, user.id, user.role)
            raise UnauthorizedError(f"Not allowed to {action}")

    @staticmethod
    def _require_admin(user: User, action: str) -> None:
        if not user.is_admin or not user.is_active:
            logger.warning("Refused %s for non-admin user %s", action, user.id)
            raise UnauthorizedError(f"Only admins may {action}")

    # ==================== CUSTOMERS ====================

    async def get_customers(self) -> List[Customer]:
        result = await self.db.execute(select(Customer).order_by(Customer.id))
        return list(result.scalars().all())

    async def get_customer_records(self) -> List[CustomerRecord]:
        return [customer_record(row) for row in await self.get_customers()]

    async def get_customer(self, customer_id: int) -> Customer:
        result = await self.db.execute(select(Customer).where(Customer.id == customer_id))
        customer = result.scalar_one_or_none()
        if customer is None:
            raise NotFoundError("Customer", customer_id, field="customer_id")
        return customer

    def _build_amc(
        self,
        data: Optional[AMCDetailsInput],
        existing: Optional[AMCDetailsRecord] = None,
    ) -> Optional[AMCDetailsRecord]:
        if data is None:
            return None
        details = derivation.build_amc_details(
            contract_type=data.contract_type,
            duration_years=data.duration_years,
            contract_start_date=data.contract_start_date,
            total_amount=data.total_amount,
            payment_method=data.payment_method,
            notes=data.notes,
        )
        return derivation.rebase_amc_balance(existing, details)

    async def create_customer(self, data: CustomerCreate, user: User) -> Customer:
        """Create a customer; next service date is derived from installation."""
        self._require_writer(user, "create customers")
        next_service = derivation.derive_next_service_date(data.installation_date, data.service_interval)
        amc = self._build_amc(data.amc_details)

        kind, label = _service_type_columns(data.service_type)
        customer = Customer(
            owner_id=user.id,
            name=data.name,
            contact=normalize_indian_mobile_to_e164(data.contact),
            brand=data.brand or "Unknown",
            model=data.model or "Unknown",
            service_kind=kind,
            service_label=label,
            installation_date=data.installation_date,
            service_interval=data.service_interval,
            next_service_date=next_service,
        )
        if amc is not None:
            customer.amc_details = AMCDetails()
            _write_amc_details(customer.amc_details, amc)

        self.db.add(customer)
        await self.db.commit()
        await self.db.refresh(customer)
        logger.info("Created customer %s (%s)", customer.id, customer.name)
        return customer

    async def update_customer(self, customer_id: int, data: CustomerUpdate, user: User) -> Customer:
        """
        Replace the editable fields. Next service date is recomputed from the
        service history; AMC payments already collected carry over to new terms.
        """
        self._require_admin(user, "edit customers")
        customer = await self.get_customer(customer_id)
        services = await self.get_service_records(customer_id)

        existing_amc = amc_details_record(customer.amc_details) if customer.amc_details else None
        amc = self._build_amc(data.amc_details, existing_amc)

        kind, label = _service_type_columns(data.service_type)
        snapshot = customer_record(customer).model_copy(update={
            "installation_date": data.installation_date,
            "service_interval": data.service_interval,
        })
        derivation.check_service_interval(data.service_interval)
        derivation.check_timestamp(data.installation_date, "installation_date")
        snapshot = derivation.recompute_next_service_date(snapshot, services)

        customer.name = data.name
        customer.contact = normalize_indian_mobile_to_e164(data.contact)
        customer.brand = data.brand or "Unknown"
        customer.model = data.model or "Unknown"
        customer.service_kind = kind
        customer.service_label = label
        customer.installation_date = data.installation_date
        customer.service_interval = data.service_interval
        customer.next_service_date = snapshot.next_service_date

        if amc is None:
            customer.amc_details = None
        else:
            if customer.amc_details is None:
                customer.amc_details = AMCDetails()
            _write_amc_details(customer.amc_details, amc)

        await self.db.commit()
        await self.db.refresh(customer)
        logger.info("Updated customer %s", customer.id)
        return customer

    async def _delete_customer_rows(self, customer: Customer) -> None:
        await self.db.execute(delete(ServiceEntry).where(ServiceEntry.customer_id == customer.id))
        await self.db.execute(delete(Reminder).where(Reminder.customer_id == customer.id))
        await self.db.delete(customer)

    async def delete_customer(self, customer_id: int, user: User) -> None:
        self._require_admin(user, "delete customers")
        customer = await self.get_customer(customer_id)
        await self._delete_customer_rows(customer)
        await self.db.commit()
        logger.info("Deleted customer %s", customer_id)

    async def multi_delete_customers(self, customer_ids: Sequence[int], user: User) -> BulkOperationResult:
        """Delete each id independently; failures are reported, not raised."""
        self._require_admin(user, "delete customers")
        deleted = 0
        errors: List[str] = []
        for customer_id in dict.fromkeys(customer_ids):
            try:
                customer = await self.get_customer(customer_id)
                await self._delete_customer_rows(customer)
                await self.db.commit()
                deleted += 1
            except NotFoundError as e:
                errors.append(e.message)
            except SQLAlchemyError as e:
                await self.db.rollback()
                errors.append(f"Customer {customer_id}: {e}")
        logger.info("Bulk delete: %d deleted, %d failed", deleted, len(errors))
        return summarize_import(deleted, errors)

    async def import_customers(self, rows: Sequence[ImportCustomerData], user: User) -> BulkOperationResult:
        """
        Create a customer per row. Rows are checked again here because the
        import endpoint accepts data that did not go through a preview.
        """
        self._require_admin(user, "import customers")
        created = 0
        errors: List[str] = []
        for index, row in enumerate(rows, start=1):
            try:
                if not row.name.strip():
                    raise ValidationError("Name is required", field="name")
                if not is_valid_indian_mobile(row.contact):
                    raise ValidationError("Contact must have at least 10 digits", field="contact")
                kind, label = _service_type_columns(row.service_type)
                customer = Customer(
                    owner_id=user.id,
                    name=row.name.strip(),
                    contact=normalize_indian_mobile_to_e164(row.contact),
                    brand=row.brand.strip() or "Unknown",
                    model=row.model.strip() or "Unknown",
                    service_kind=kind,
                    service_label=label,
                    installation_date=row.installation_date,
                    service_interval=row.service_interval,
                    next_service_date=derivation.derive_next_service_date(
                        row.installation_date, row.service_interval
                    ),
                )
                self.db.add(customer)
                await self.db.commit()
                created += 1
            except ValidationError as e:
                errors.append(f"Row {index} ({row.name or 'unnamed'}): {e.message}")
            except SQLAlchemyError as e:
                await self.db.rollback()
                errors.append(f"Row {index} ({row.name or 'unnamed'}): {e}")

        logger.info("Import: %d created, %d failed", created, len(errors))
        if errors:
            logger.warning("Import errors: %s", "; ".join(errors[:5]))
        return summarize_import(created, errors)

    # ==================== SERVICE ENTRIES ====================

    async def get_services(self, customer_id: Optional[int] = None) -> List[ServiceEntry]:
        query = select(ServiceEntry)
        if customer_id is not None:
            query = query.where(ServiceEntry.customer_id == customer_id)
        result = await self.db.execute(query.order_by(ServiceEntry.service_date.desc(), ServiceEntry.id))
        return list(result.scalars().all())

    async def get_service_records(self, customer_id: Optional[int] = None) -> List[ServiceEntryRecord]:
        return [service_record(row) for row in await self.get_services(customer_id)]

    async def get_service(self, service_id: int) -> ServiceEntry:
        service = await self.db.get(ServiceEntry, service_id)
        if service is None:
            raise NotFoundError("Service entry", service_id, field="service_id")
        return service

    @staticmethod
    def _write_service(row: ServiceEntry, record: ServiceEntryRecord) -> None:
        kind, label = _service_type_columns(record.service_type)
        row.service_date = record.service_date
        row.service_kind = kind
        row.service_label = label
        row.amount = record.amount
        row.payment_status = record.payment_status.value
        row.payment_method = record.payment_method.value if record.payment_method else None
        row.is_free = record.is_free
        row.notes = record.notes

    async def add_service_entry(self, data: ServiceEntryCreate, user: User) -> ServiceEntry:
        """Record a visit. Reminders are left alone; next service date moves."""
        self._require_writer(user, "record services")
        customer = await self.get_customer(data.customer_id)
        snapshot = customer_record(customer)
        history = await self.get_service_records(customer.id)

        entry = ServiceEntryRecord(owner_id=user.id, **data.model_dump())
        entry, snapshot = lifecycle.record_service_entry(snapshot, history, entry)

        row = ServiceEntry(customer_id=customer.id, owner_id=user.id)
        self._write_service(row, entry)
        self.db.add(row)
        customer.next_service_date = snapshot.next_service_date

        await self.db.commit()
        await self.db.refresh(row)
        logger.info("Recorded service %s for customer %s", row.id, customer.id)
        return row

    async def update_service_entry(self, service_id: int, data: ServiceEntryUpdate, user: User) -> ServiceEntry:
        self._require_admin(user, "edit services")
        row = await self.get_service(service_id)
        customer = await self.get_customer(row.customer_id)
        history = await self.get_service_records(customer.id)

        updated = service_record(row).model_copy(update=data.model_dump())
        updated = ServiceEntryRecord.model_validate(updated.model_dump())
        updated, snapshot = lifecycle.update_service_entry(customer_record(customer), history, updated)

        self._write_service(row, updated)
        customer.next_service_date = snapshot.next_service_date
        await self.db.commit()
        await self.db.refresh(row)
        logger.info("Updated service %s", row.id)
        return row

    async def update_payment_status(
        self,
        service_id: int,
        payment_status: PaymentStatus,
        payment_method: Optional[PaymentMethod],
        user: User,
    ) -> ServiceEntry:
        self._require_admin(user, "edit services")
        row = await self.get_service(service_id)
        updated = service_record(row).model_copy(update={
            "payment_status": payment_status,
            "payment_method": payment_method,
            "is_free": payment_status == PaymentStatus.FREE,
            "amount": 0 if payment_status == PaymentStatus.FREE else row.amount,
        })
        derivation.validate_service_entry(updated)

        self._write_service(row, updated)
        await self.db.commit()
        await self.db.refresh(row)
        return row

    async def delete_service_entry(self, service_id: int, user: User) -> None:
        self._require_admin(user, "delete services")
        row = await self.get_service(service_id)
        customer = await self.get_customer(row.customer_id)
        history = await self.get_service_records(customer.id)

        snapshot = lifecycle.remove_service_entry(customer_record(customer), history, service_id)
        customer.next_service_date = snapshot.next_service_date
        await self.db.delete(row)
        await self.db.commit()
        logger.info("Deleted service %s", service_id)

    async def service_responses(self, rows: Sequence[ServiceEntry]) -> List[ServiceEntryResponse]:
        names = {c.id: c.name for c in await self.get_customers()}
        return [
            ServiceEntryResponse(**service_record(row).model_dump(), customer_name=names.get(row.customer_id))
            for row in rows
        ]

    # ==================== REMINDERS ====================

    async def get_reminders(self, customer_id: Optional[int] = None) -> List[Reminder]:
        query = select(Reminder)
        if customer_id is not None:
            query = query.where(Reminder.customer_id == customer_id)
        result = await self.db.execute(query.order_by(Reminder.reminder_date, Reminder.id))
        return list(result.scalars().all())

    async def get_reminder_records(self) -> List[ReminderRecord]:
        return [reminder_record(row) for row in await self.get_reminders()]

    async def get_reminder(self, reminder_id: int) -> Reminder:
        reminder = await self.db.get(Reminder, reminder_id)
        if reminder is None:
            raise NotFoundError("Reminder", reminder_id, field="reminder_id")
        return reminder

    async def _persist_reminder(self, record: ReminderRecord) -> Reminder:
        row = Reminder(
            customer_id=record.customer_id,
            owner_id=record.owner_id,
            reminder_date=record.reminder_date,
            description=record.description,
            sent_status=record.sent_status,
        )
        self.db.add(row)
        return row

    async def create_reminder(self, data: ReminderCreate, user: User) -> Reminder:
        self._require_writer(user, "create reminders")
        customer = await self.get_customer(data.customer_id)
        record = lifecycle.create_reminder(customer_record(customer), data.reminder_date, data.description, user.id)
        row = await self._persist_reminder(record)
        await self.db.commit()
        await self.db.refresh(row)
        return row

    async def set_reminder_sent_status(self, reminder_id: int, sent: bool, user: User) -> Reminder:
        self._require_writer(user, "update reminders")
        row = await self.get_reminder(reminder_id)
        row.sent_status = lifecycle.set_reminder_sent_status(reminder_record(row), sent).sent_status
        await self.db.commit()
        await self.db.refresh(row)
        return row

    async def mark_service_as_done(self, customer_id: int, service_done_date: int, user: User) -> Reminder:
        """
        Schedule the follow-up reminder for a completed service.

        The customer row is read with FOR UPDATE (where the database supports
        it) so the interval read and the reminder insert commit together.
        """
        self._require_writer(user, "mark services done")
        result = await self.db.execute(
            select(Customer).where(Customer.id == customer_id).with_for_update()
        )
        customer = result.scalar_one_or_none()
        completion = lifecycle.mark_service_as_done(
            customer_record(customer) if customer else None,
            service_done_date,
            customer_id=customer_id,
            owner_id=user.id,
        )

        row = await self._persist_reminder(completion.reminder)
        customer.next_service_date = completion.customer.next_service_date
        customer.last_service_done_date = completion.customer.last_service_done_date
        await self.db.commit()
        await self.db.refresh(row)
        logger.info("Customer %s serviced; reminder %s scheduled", customer_id, row.id)
        return row

    async def reminder_responses(self, records: Sequence[ReminderRecord]) -> List[ReminderResponse]:
        customers = {c.id: c for c in await self.get_customers()}
        responses = []
        for record in records:
            customer = customers.get(record.customer_id)
            responses.append(ReminderResponse(
                **record.model_dump(),
                customer_name=customer.name if customer else None,
                whatsapp_number=to_whatsapp_number(customer.contact) if customer else None,
            ))
        return responses

    # ==================== AMC ====================

    async def get_all_amcs(self, now: int) -> List[AMCDetailsResponse]:
        responses = []
        for customer in await self.get_customers():
            if customer.amc_details is None:
                continue
            record = amc_details_record(customer.amc_details)
            responses.append(AMCDetailsResponse(
                **record.model_dump(),
                customer_id=customer.id,
                customer_name=customer.name,
                contract_status=derivation.derive_amc_contract_status(
                    record.contract_start_date, record.contract_end_date, now
                ),
                contract_type_label=derivation.AMC_TYPE_LABELS[record.contract_type],
            ))
        return responses

    async def get_amc_details_records(self) -> List[AMCDetailsRecord]:
        return [
            amc_details_record(c.amc_details) for c in await self.get_customers() if c.amc_details is not None
        ]

    async def apply_amc_payment(self, customer_id: int, amount: int, user: User) -> Customer:
        self._require_admin(user, "record AMC payments")
        customer = await self.get_customer(customer_id)
        if customer.amc_details is None:
            raise ValidationError("Customer has no AMC contract", field="customer_id")
        updated = derivation.apply_amc_payment(amc_details_record(customer.amc_details), amount)
        customer.amc_details.remaining_balance = updated.remaining_balance
        await self.db.commit()
        await self.db.refresh(customer)
        logger.info("AMC payment of %d paise for customer %s", amount, customer_id)
        return customer

    async def apply_amc_to_customers(self, data: AMCBulkApply, user: User) -> BulkOperationResult:
        """Attach the same long-form contract to each customer; missing ids are reported."""
        self._require_admin(user, "apply AMC contracts")
        derivation.check_timestamp(data.start_date, "start_date")
        derivation.check_date_order(data.start_date, data.end_date, end_field="end_date")

        applied = 0
        errors: List[str] = []
        for customer_id in dict.fromkeys(data.customer_ids):
            try:
                await self.get_customer(customer_id)
                self.db.add(AMCContract(
                    customer_id=customer_id,
                    owner_id=user.id,
                    contract_type=data.contract_type.value,
                    amount=data.amount,
                    start_date=data.start_date,
                    end_date=data.end_date,
                ))
                await self.db.commit()
                applied += 1
            except NotFoundError as e:
                errors.append(e.message)
            except SQLAlchemyError as e:
                await self.db.rollback()
                errors.append(f"Customer {customer_id}: {e}")
        logger.info("Bulk AMC: applied to %d customers, %d failed", applied, len(errors))
        return summarize_import(applied, errors)

    def _contract_for_service(self, customer: CustomerRecord, service_date: int) -> Tuple[AMCType, int, int]:
        """Contract type and dates governing a visit: embedded AMC first, else latest bulk contract."""
        if customer.amc_details is not None:
            d = customer.amc_details
            return d.contract_type, d.contract_start_date, d.contract_end_date
        started = [c for c in customer.amc_contracts if c.start_date <= service_date]
        if not started:
            raise ValidationError("Customer has no AMC contract covering this date", field="customer_id")
        latest = max(started, key=lambda c: (c.start_date, c.id or 0))
        return latest.contract_type, latest.start_date, latest.end_date

    async def add_amc_service_entry(self, data: AMCServiceCreate, user: User) -> AMCServiceEntry:
        """Record an AMC visit with the contract status as of the visit date."""
        self._require_writer(user, "record AMC services")
        derivation.check_timestamp(data.service_date, "service_date")
        customer = await self.get_customer(data.customer_id)
        contract_type, start, end = self._contract_for_service(customer_record(customer), data.service_date)
        status: ContractStatus = derivation.derive_amc_contract_status(start, end, data.service_date)

        reduction = data.price_reduction
        row = AMCServiceEntry(
            customer_id=customer.id,
            service_date=data.service_date,
            contract_type=contract_type.value,
            contract_status=status.value,
            parts_replaced=data.parts_replaced,
            follow_up_needed=data.follow_up_needed,
            reduction_part_name=reduction.part_name if reduction else None,
            reduction_regular_price=reduction.regular_price if reduction else None,
            reduction_discount_price=reduction.discount_price if reduction else None,
            notes=data.notes,
        )
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return row

    async def get_amc_service_history(self, customer_id: int) -> List[AMCServiceRecord]:
        await self.get_customer(customer_id)
        result = await self.db.execute(
            select(AMCServiceEntry)
            .where(AMCServiceEntry.customer_id == customer_id)
            .order_by(AMCServiceEntry.service_date.desc())
        )
        return [amc_service_record(row) for row in result.scalars().all()]
