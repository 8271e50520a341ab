"""AMC (Annual Maintenance Contract) API endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Query, status

from servicecrm.api.deps import CurrentUser, Now, Store
from servicecrm.core.enum_utils import to_enum
from servicecrm.core.exceptions import ValidationError
from servicecrm.models.amc import ContractStatus
from servicecrm.schemas.amc import (
    AMCBulkApply,
    AMCDetailsResponse,
    AMCServiceCreate,
    AMCServiceRecord,
    BulkOperationResult,
)
from servicecrm.schemas.revenue import AMCRevenue
from servicecrm.services.customer_service import amc_service_record
from servicecrm.services.revenue_service import aggregate_amc_revenue


router = APIRouter(tags=["AMC"])


@router.get("", response_model=List[AMCDetailsResponse])
async def list_amcs(
    store: Store,
    current_user: CurrentUser,
    now: Now,
    contract_status: Optional[str] = Query(None, description="ACTIVE, PENDING_RENEWAL or EXPIRED"),
):
    """Customers with an AMC, with contract status derived at request time."""
    amcs = await store.get_all_amcs(now)
    if contract_status:
        wanted = to_enum(contract_status, ContractStatus)
        if wanted is None:
            raise ValidationError(f"Unknown contract status: {contract_status}", field="contract_status")
        amcs = [amc for amc in amcs if amc.contract_status == wanted]
    return amcs


@router.get("/revenue", response_model=AMCRevenue)
async def amc_revenue(store: Store, current_user: CurrentUser, now: Now):
    return aggregate_amc_revenue(await store.get_amc_details_records(), now)


@router.post("/bulk-apply", response_model=BulkOperationResult)
async def bulk_apply_amc(data: AMCBulkApply, store: Store, current_user: CurrentUser):
    """Attach one contract to several customers; unknown ids are reported per item."""
    return await store.apply_amc_to_customers(data, current_user)


@router.post("/services", response_model=AMCServiceRecord, status_code=status.HTTP_201_CREATED)
async def add_amc_service(data: AMCServiceCreate, store: Store, current_user: CurrentUser):
    row = await store.add_amc_service_entry(data, current_user)
    return amc_service_record(row)
