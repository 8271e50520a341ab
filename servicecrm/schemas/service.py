"""Service entry schemas."""
from typing import Optional

from pydantic import Field, field_validator

from servicecrm.core.enum_utils import normalize_to_uppercase, enum_values
from servicecrm.models.service import PaymentStatus, PaymentMethod
from servicecrm.schemas.base import BaseResponseSchema, BaseCreateSchema
from servicecrm.schemas.common import ServiceType


VALID_PAYMENT_STATUSES = set(enum_values(PaymentStatus))
VALID_PAYMENT_METHODS = set(enum_values(PaymentMethod))


class ServiceEntryRecord(BaseResponseSchema):
    """
    One service visit. Amount in paise.

    Invariants (checked by derivation_service.validate_service_entry):
    is_free implies FREE with amount 0; payment_method present iff PAID.
    """
    id: Optional[int] = None
    customer_id: int
    owner_id: Optional[int] = None
    service_date: int
    service_type: ServiceType = Field(default_factory=ServiceType)
    amount: int = 0
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_method: Optional[PaymentMethod] = None
    is_free: bool = False
    notes: str = ""


class _PaymentFields(BaseCreateSchema):
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_method: Optional[PaymentMethod] = None

    @field_validator("payment_status", mode="before")
    @classmethod
    def normalize_payment_status(cls, v):
        return normalize_to_uppercase(v, VALID_PAYMENT_STATUSES)

    @field_validator("payment_method", mode="before")
    @classmethod
    def normalize_payment_method(cls, v):
        return normalize_to_uppercase(v, VALID_PAYMENT_METHODS)


class ServiceEntryCreate(_PaymentFields):
    customer_id: int
    service_date: int
    service_type: ServiceType = Field(default_factory=ServiceType)
    amount: int = Field(0, description="Paise")
    is_free: bool = False
    notes: str = ""


class ServiceEntryUpdate(_PaymentFields):
    service_date: int
    service_type: ServiceType = Field(default_factory=ServiceType)
    amount: int = Field(0, description="Paise")
    is_free: bool = False
    notes: str = ""


class PaymentStatusUpdate(_PaymentFields):
    pass


class ServiceEntryResponse(ServiceEntryRecord):
    id: int
    customer_name: Optional[str] = None
