"""Customer import API endpoints."""
from fastapi import APIRouter

from servicecrm.api.deps import CurrentUser, Now, Store
from servicecrm.schemas.amc import BulkOperationResult
from servicecrm.schemas.imports import (
    ImportCustomersRequest,
    ImportPreviewRequest,
    ImportPreviewResponse,
)
from servicecrm.services.import_service import validate_csv, validate_rows


router = APIRouter(tags=["Imports"])


@router.post("/preview", response_model=ImportPreviewResponse)
async def preview_import(data: ImportPreviewRequest, current_user: CurrentUser, now: Now):
    """
    Validate spreadsheet rows without writing anything.

    Accepts either raw CSV text or a header row plus data rows already
    extracted from a workbook on the client.
    """
    if data.csv_text is not None:
        rows = validate_csv(data.csv_text, now)
    else:
        rows = validate_rows(data.headers, data.rows, now)
    valid = sum(1 for row in rows if row.is_valid)
    return ImportPreviewResponse(rows=rows, valid_count=valid, invalid_count=len(rows) - valid)


@router.post("/customers", response_model=BulkOperationResult)
async def import_customers(data: ImportCustomersRequest, store: Store, current_user: CurrentUser):
    """Create the previewed customers. Each row succeeds or fails on its own."""
    return await store.import_customers(data.customers, current_user)
