"""AMC (Annual Maintenance Contract) schemas."""
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator, model_validator

from servicecrm.core.enum_utils import normalize_to_uppercase, enum_values
from servicecrm.models.amc import AMCType, ContractStatus, AMCPaymentMethod
from servicecrm.schemas.base import BaseResponseSchema, BaseCreateSchema


VALID_AMC_TYPES = set(enum_values(AMCType))
VALID_AMC_PAYMENT_METHODS = set(enum_values(AMCPaymentMethod))


class AMCDetailsRecord(BaseResponseSchema):
    """Short-form AMC embedded in a customer. Amounts in paise, dates in epoch ns."""
    id: Optional[int] = None
    contract_type: AMCType
    duration_years: int
    contract_start_date: int
    contract_end_date: int
    payment_method: AMCPaymentMethod = AMCPaymentMethod.CASH
    total_amount: int
    remaining_balance: int
    notes: str = ""

    @property
    def amount_paid(self) -> int:
        return self.total_amount - self.remaining_balance


class AMCContractRecord(BaseResponseSchema):
    """Long-form contract applied in bulk."""
    id: Optional[int] = None
    customer_id: int
    owner_id: Optional[int] = None
    contract_type: AMCType
    amount: int
    start_date: int
    end_date: int


class PriceReduction(BaseModel):
    """Discounted part recorded on an AMC visit. Prices are display strings."""
    part_name: str = Field(..., min_length=1)
    regular_price: str
    discount_price: str


class AMCServiceRecord(BaseResponseSchema):
    id: Optional[int] = None
    customer_id: int
    service_date: int
    contract_type: AMCType
    contract_status: ContractStatus
    parts_replaced: str = ""
    follow_up_needed: bool = False
    price_reduction: Optional[PriceReduction] = None
    notes: str = ""


# ==================== REQUEST SCHEMAS ====================

class AMCDetailsInput(BaseCreateSchema):
    """
    AMC terms entered on the customer form.

    End date and remaining balance are derived, never accepted from input.
    """
    contract_type: AMCType = AMCType.ONLY_SERVICE
    duration_years: int = Field(1, ge=1, le=10)
    contract_start_date: int
    payment_method: AMCPaymentMethod = AMCPaymentMethod.CASH
    total_amount: int = Field(..., ge=0, description="Paise")
    notes: str = ""

    @field_validator("contract_type", mode="before")
    @classmethod
    def normalize_contract_type(cls, v):
        return normalize_to_uppercase(v, VALID_AMC_TYPES)

    @field_validator("payment_method", mode="before")
    @classmethod
    def normalize_payment_method(cls, v):
        return normalize_to_uppercase(v, VALID_AMC_PAYMENT_METHODS)


class AMCPaymentInput(BaseCreateSchema):
    amount: int = Field(..., gt=0, description="Paise")


class AMCBulkApply(BaseCreateSchema):
    """Apply one long-form contract to many customers."""
    customer_ids: List[int] = Field(..., min_length=1)
    contract_type: AMCType
    amount: int = Field(..., ge=0, description="Paise")
    start_date: int
    end_date: int

    @field_validator("contract_type", mode="before")
    @classmethod
    def normalize_contract_type(cls, v):
        return normalize_to_uppercase(v, VALID_AMC_TYPES)


class AMCServiceCreate(BaseCreateSchema):
    customer_id: int
    service_date: int
    parts_replaced: str = ""
    notes: str = ""
    follow_up_needed: bool = False
    price_reduction: Optional[PriceReduction] = None


# ==================== RESPONSE SCHEMAS ====================

class AMCDetailsResponse(AMCDetailsRecord):
    customer_id: int
    customer_name: str
    contract_status: ContractStatus
    contract_type_label: str


class BulkOperationResult(BaseModel):
    """Outcome of a partial-failure batch: each item reported independently."""
    success_count: int = 0
    failure_count: int = 0
    errors: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_counts(self):
        if self.success_count < 0 or self.failure_count < 0:
            raise ValueError("counts cannot be negative")
        return self
