"""Customer schemas."""
from typing import Optional, List

from pydantic import Field, field_validator

from servicecrm.models.customer import WarrantyStatus
from servicecrm.schemas.base import BaseResponseSchema, BaseCreateSchema
from servicecrm.schemas.common import ServiceType
from servicecrm.schemas.amc import (
    AMCDetailsRecord,
    AMCContractRecord,
    AMCServiceRecord,
    AMCDetailsInput,
)


class CustomerRecord(BaseResponseSchema):
    """Snapshot of a customer as handed to the derivation and lifecycle functions."""
    id: Optional[int] = None
    owner_id: Optional[int] = None
    name: str
    contact: str
    brand: str = "Unknown"
    model: str = "Unknown"
    service_type: ServiceType = Field(default_factory=ServiceType)
    installation_date: int
    service_interval: int = 3
    next_service_date: int = 0
    last_service_done_date: Optional[int] = None
    amc_details: Optional[AMCDetailsRecord] = None
    amc_services: List[AMCServiceRecord] = Field(default_factory=list)
    amc_contracts: List[AMCContractRecord] = Field(default_factory=list)


class CustomerCreate(BaseCreateSchema):
    """Customer creation schema. Contact is normalized to +91 form on write."""
    name: str = Field(..., min_length=1, max_length=200)
    contact: str = Field(..., min_length=1, max_length=20)
    service_type: ServiceType = Field(default_factory=ServiceType)
    installation_date: int
    service_interval: int = 3
    brand: str = "Unknown"
    model: str = "Unknown"
    amc_details: Optional[AMCDetailsInput] = None

    @field_validator("name", "contact", "brand", "model")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class CustomerUpdate(CustomerCreate):
    """Full replacement of the editable customer fields."""
    pass


class CustomerResponse(CustomerRecord):
    id: int
    warranty_status: WarrantyStatus
    whatsapp_number: Optional[str] = None


class BulkDeleteRequest(BaseCreateSchema):
    customer_ids: List[int] = Field(..., min_length=1)


class WarrantyStatusCounts(BaseResponseSchema):
    in_warranty: int = 0
    out_warranty: int = 0
