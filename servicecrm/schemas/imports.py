"""Customer import schemas."""
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator

from servicecrm.schemas.base import BaseCreateSchema
from servicecrm.schemas.common import ServiceType


class ImportCustomerData(BaseModel):
    name: str
    contact: str
    brand: str = "Unknown"
    model: str = "Unknown"
    service_type: ServiceType = Field(default_factory=ServiceType)
    installation_date: int
    service_interval: int = 3


class ParsedCustomerRow(BaseModel):
    """Verdict for one spreadsheet row. Warnings never make a row invalid."""
    data: ImportCustomerData
    row_number: int
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ImportPreviewRequest(BaseCreateSchema):
    """Either a header row plus data rows, or raw CSV text."""
    headers: Optional[List[str]] = None
    rows: Optional[List[List[Any]]] = None
    csv_text: Optional[str] = None

    @model_validator(mode="after")
    def check_source(self):
        if self.csv_text is None and (self.headers is None or self.rows is None):
            raise ValueError("Provide csv_text, or both headers and rows")
        return self


class ImportPreviewResponse(BaseModel):
    rows: List[ParsedCustomerRow]
    valid_count: int
    invalid_count: int


class ImportCustomersRequest(BaseCreateSchema):
    customers: List[ImportCustomerData] = Field(..., min_length=1)
