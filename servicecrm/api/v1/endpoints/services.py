"""Service entry API endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Query, status

from servicecrm.api.deps import CurrentUser, Store
from servicecrm.schemas.service import (
    PaymentStatusUpdate,
    ServiceEntryCreate,
    ServiceEntryResponse,
    ServiceEntryUpdate,
)
from servicecrm.services.customer_service import service_record
from servicecrm.services.revenue_service import unpaid_services


router = APIRouter(tags=["Services"])


@router.get("", response_model=List[ServiceEntryResponse])
async def list_services(
    store: Store,
    current_user: CurrentUser,
    customer_id: Optional[int] = Query(None),
):
    return await store.service_responses(await store.get_services(customer_id))


@router.get("/unpaid", response_model=List[ServiceEntryResponse])
async def list_unpaid_services(store: Store, current_user: CurrentUser):
    """Services still awaiting payment."""
    rows = await store.get_services()
    unpaid_ids = {s.id for s in unpaid_services(service_record(row) for row in rows)}
    return await store.service_responses([row for row in rows if row.id in unpaid_ids])


@router.get("/{service_id}", response_model=ServiceEntryResponse)
async def get_service(service_id: int, store: Store, current_user: CurrentUser):
    row = await store.get_service(service_id)
    return (await store.service_responses([row]))[0]


@router.post("", response_model=ServiceEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_service(data: ServiceEntryCreate, store: Store, current_user: CurrentUser):
    """Record a visit. The customer's next service date moves; reminders do not."""
    row = await store.add_service_entry(data, current_user)
    return (await store.service_responses([row]))[0]


@router.put("/{service_id}", response_model=ServiceEntryResponse)
async def update_service(service_id: int, data: ServiceEntryUpdate, store: Store, current_user: CurrentUser):
    row = await store.update_service_entry(service_id, data, current_user)
    return (await store.service_responses([row]))[0]


@router.patch("/{service_id}/payment-status", response_model=ServiceEntryResponse)
async def update_payment_status(
    service_id: int,
    data: PaymentStatusUpdate,
    store: Store,
    current_user: CurrentUser,
):
    row = await store.update_payment_status(service_id, data.payment_status, data.payment_method, current_user)
    return (await store.service_responses([row]))[0]


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(service_id: int, store: Store, current_user: CurrentUser):
    await store.delete_service_entry(service_id, current_user)
