"""Customer API endpoints."""
from typing import List

from fastapi import APIRouter, status

from servicecrm.api.deps import CurrentUser, Now, Store
from servicecrm.core.enum_utils import to_enum
from servicecrm.core.exceptions import ValidationError
from servicecrm.models.customer import WarrantyStatus
from servicecrm.schemas.amc import AMCPaymentInput, AMCServiceRecord, BulkOperationResult
from servicecrm.schemas.customer import (
    BulkDeleteRequest,
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    WarrantyStatusCounts,
)
from servicecrm.schemas.service import ServiceEntryResponse
from servicecrm.services import derivation_service as derivation
from servicecrm.services.customer_service import customer_record, customer_response


router = APIRouter(tags=["Customers"])


@router.get("", response_model=List[CustomerResponse])
async def list_customers(store: Store, current_user: CurrentUser, now: Now):
    """All customers with warranty status derived at request time."""
    return [customer_response(record, now) for record in await store.get_customer_records()]


@router.get("/warranty-counts", response_model=WarrantyStatusCounts)
async def warranty_counts(store: Store, current_user: CurrentUser, now: Now):
    counts = derivation.count_by_warranty_status(await store.get_customer_records(), now)
    return WarrantyStatusCounts(
        in_warranty=counts[WarrantyStatus.IN_WARRANTY],
        out_warranty=counts[WarrantyStatus.OUT_WARRANTY],
    )


@router.get("/by-warranty/{warranty_status}", response_model=List[CustomerResponse])
async def customers_by_warranty(warranty_status: str, store: Store, current_user: CurrentUser, now: Now):
    wanted = to_enum(warranty_status, WarrantyStatus)
    if wanted is None:
        raise ValidationError(f"Unknown warranty status: {warranty_status}", field="warranty_status")
    records = derivation.filter_by_warranty_status(await store.get_customer_records(), wanted, now)
    return [customer_response(record, now) for record in records]


@router.post("/bulk-delete", response_model=BulkOperationResult)
async def bulk_delete_customers(data: BulkDeleteRequest, store: Store, current_user: CurrentUser):
    """Delete several customers. Each id succeeds or fails on its own."""
    return await store.multi_delete_customers(data.customer_ids, current_user)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: int, store: Store, current_user: CurrentUser, now: Now):
    customer = await store.get_customer(customer_id)
    return customer_response(customer_record(customer), now)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(data: CustomerCreate, store: Store, current_user: CurrentUser, now: Now):
    customer = await store.create_customer(data, current_user)
    return customer_response(customer_record(customer), now)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    store: Store,
    current_user: CurrentUser,
    now: Now,
):
    customer = await store.update_customer(customer_id, data, current_user)
    return customer_response(customer_record(customer), now)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: int, store: Store, current_user: CurrentUser):
    await store.delete_customer(customer_id, current_user)


@router.get("/{customer_id}/services", response_model=List[ServiceEntryResponse])
async def customer_services(customer_id: int, store: Store, current_user: CurrentUser):
    """Service history, newest first."""
    await store.get_customer(customer_id)
    return await store.service_responses(await store.get_services(customer_id))


@router.get("/{customer_id}/amc-services", response_model=List[AMCServiceRecord])
async def customer_amc_services(customer_id: int, store: Store, current_user: CurrentUser):
    return await store.get_amc_service_history(customer_id)


@router.post("/{customer_id}/amc-payments", response_model=CustomerResponse)
async def record_amc_payment(
    customer_id: int,
    data: AMCPaymentInput,
    store: Store,
    current_user: CurrentUser,
    now: Now,
):
    """Apply a payment against the customer's AMC balance."""
    customer = await store.apply_amc_payment(customer_id, data.amount, current_user)
    return customer_response(customer_record(customer), now)
