"""
Customer Import

Turns spreadsheet rows into customer records. Each row is validated on
its own and gets a verdict; a batch applies only the valid rows and
reports the rest, so one bad row never blocks the others.

Accepted columns (header match is case-insensitive, surrounding spaces
ignored): name, contact, brand, model, servicetype, installationdate,
serviceinterval. Only name and contact are required.
"""

import csv
import io
import logging
import math
import re
from datetime import datetime, timedelta, tzinfo
from typing import Any, Dict, List, Optional, Sequence

from servicecrm.config import settings
from servicecrm.core.exceptions import ValidationError
from servicecrm.core.money import to_nanos
from servicecrm.core.phone import is_valid_indian_mobile, normalize_indian_mobile_to_e164
from servicecrm.models.customer import SERVICE_INTERVALS, ServiceKind
from servicecrm.schemas.amc import BulkOperationResult
from servicecrm.schemas.common import ServiceType
from servicecrm.schemas.imports import ImportCustomerData, ParsedCustomerRow


logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("name", "contact")

DATE_FORMATS = [
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d/%m/%y",
    "%d-%m-%y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d-%b-%Y",
    "%d %B %Y",
]

# Spreadsheet day 0; serial numbers count days from here
SPREADSHEET_EPOCH = datetime(1899, 12, 30)

_LEADING_INT = re.compile(r"^\s*(\d+)(?:\.0+)?\b")


def read_csv_rows(content: str) -> List[List[str]]:
    """Split CSV text into rows of trimmed cells, skipping blank lines."""
    # Try to detect delimiter
    first_line = content.split("\n", 1)[0]
    delimiter = ','
    if '\t' in first_line:
        delimiter = '\t'
    elif ';' in first_line and ',' not in first_line:
        delimiter = ';'

    reader = csv.reader(io.StringIO(content), delimiter=delimiter)
    return [[cell.strip() for cell in row] for row in reader if any(cell.strip() for cell in row)]


def build_column_map(headers: Sequence[Any]) -> Dict[str, int]:
    """Lower-cased header name to column index. Name and contact must be present."""
    column_map: Dict[str, int] = {}
    for index, header in enumerate(headers):
        column_map.setdefault(str(header).lower().strip(), index)

    missing = [col for col in REQUIRED_COLUMNS if col not in column_map]
    if missing:
        raise ValidationError(
            f"Missing required columns: {', '.join(missing)}",
            field="headers",
            details={"missing": missing},
        )
    return column_map


def _cell(row: Sequence[Any], column_map: Dict[str, int], column: str) -> Any:
    index = column_map.get(column)
    if index is None or index >= len(row):
        return None
    return row[index]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_service_type(value: Any) -> ServiceType:
    """Known kinds by name; any other text becomes OTHER with that text as label."""
    text = _text(value)
    lowered = text.lower()
    for kind in (ServiceKind.CLEANING, ServiceKind.MAINTENANCE, ServiceKind.REPAIR):
        if lowered == kind.value.lower():
            return ServiceType(kind=kind)
    return ServiceType(kind=ServiceKind.OTHER, label=text or "Other")


def parse_installation_date(value: Any, tz: Optional[tzinfo] = None) -> Optional[int]:
    """
    Epoch nanoseconds for a date cell, or None when it cannot be parsed.

    Numbers are spreadsheet serial dates; strings are tried against
    DATE_FORMATS and then ISO 8601. Serial 0 or below is rejected.
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        if value <= 0:
            return None
        return to_nanos(SPREADSHEET_EPOCH + timedelta(days=value), tz)

    if isinstance(value, datetime):
        return to_nanos(value, tz)

    text = _text(value)
    for fmt in DATE_FORMATS:
        try:
            return to_nanos(datetime.strptime(text, fmt), tz)
        except ValueError:
            continue

    try:
        return to_nanos(datetime.fromisoformat(text), tz)
    except ValueError:
        return None


def parse_service_interval(value: Any) -> Optional[int]:
    """Leading integer of the cell ("3", "3.0", "6 months"), or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or not value.is_integer()):
            return None
        return int(value)
    match = _LEADING_INT.match(_text(value))
    return int(match.group(1)) if match else None


def parse_and_validate_row(
    row: Sequence[Any],
    column_map: Dict[str, int],
    row_number: int,
    now: int,
    default_interval: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> ParsedCustomerRow:
    """
    Validate one row.

    Fatal (row rejected): empty name, empty contact, a contact with fewer
    than 10 digits after normalization, an unparseable or non-positive
    installation date.
    Non-fatal (warning, default applied): a service interval outside 1/3/6
    falls back to the default interval. Brand and model default to
    "Unknown"; a missing installation date defaults to `now`.
    """
    if default_interval is None:
        default_interval = settings.DEFAULT_SERVICE_INTERVAL_MONTHS

    errors: List[str] = []
    warnings: List[str] = []

    name = _text(_cell(row, column_map, "name"))
    contact_raw = _text(_cell(row, column_map, "contact"))

    if not name:
        errors.append("Name is required")
    if not contact_raw:
        errors.append("Contact is required")

    contact = normalize_indian_mobile_to_e164(contact_raw)
    if contact_raw and not is_valid_indian_mobile(contact_raw):
        errors.append(f"Contact '{contact_raw}' is not a valid 10-digit mobile number")

    brand = _text(_cell(row, column_map, "brand")) or "Unknown"
    model = _text(_cell(row, column_map, "model")) or "Unknown"

    if "servicetype" in column_map:
        service_type = parse_service_type(_cell(row, column_map, "servicetype"))
    else:
        service_type = ServiceType(kind=ServiceKind.MAINTENANCE)

    installation_date = now
    date_cell = _cell(row, column_map, "installationdate")
    if date_cell is not None and _text(date_cell) != "":
        parsed = parse_installation_date(date_cell, tz)
        if parsed is None:
            errors.append(f"Invalid installation date: '{_text(date_cell)}'")
        elif parsed <= 0:
            errors.append("Installation date must be valid")
        else:
            installation_date = parsed

    service_interval = default_interval
    interval_cell = _cell(row, column_map, "serviceinterval")
    if interval_cell is not None and _text(interval_cell) != "":
        parsed_interval = parse_service_interval(interval_cell)
        if parsed_interval in SERVICE_INTERVALS:
            service_interval = parsed_interval
        else:
            warnings.append(
                f"Invalid service interval '{_text(interval_cell)}' (using default: {default_interval} months)"
            )

    data = ImportCustomerData(
        name=name,
        contact=contact,
        brand=brand,
        model=model,
        service_type=service_type,
        installation_date=installation_date,
        service_interval=service_interval,
    )
    return ParsedCustomerRow(
        data=data,
        row_number=row_number,
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
    )


def _is_blank(row: Sequence[Any]) -> bool:
    return not row or all(_text(cell) == "" for cell in row)


def validate_rows(
    headers: Sequence[Any],
    rows: Sequence[Sequence[Any]],
    now: int,
    default_interval: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> List[ParsedCustomerRow]:
    """
    Verdict for every non-blank data row. Row numbers are spreadsheet
    line numbers (header is line 1).
    """
    column_map = build_column_map(headers)
    if settings.IMPORT_MAX_ROWS is not None and len(rows) > settings.IMPORT_MAX_ROWS:
        raise ValidationError(
            f"Import is limited to {settings.IMPORT_MAX_ROWS} rows, got {len(rows)}",
            field="rows",
        )

    parsed = []
    for index, row in enumerate(rows):
        if _is_blank(row):
            continue
        result = parse_and_validate_row(row, column_map, index + 2, now, default_interval, tz)
        if not result.is_valid:
            logger.warning("Import row %d rejected: %s", result.row_number, "; ".join(result.errors))
        parsed.append(result)
    return parsed


def validate_csv(
    content: str,
    now: int,
    default_interval: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> List[ParsedCustomerRow]:
    rows = read_csv_rows(content)
    if len(rows) < 2:
        return []
    return validate_rows(rows[0], rows[1:], now, default_interval, tz)


def summarize_import(successes: int, errors: List[str]) -> BulkOperationResult:
    return BulkOperationResult(
        success_count=successes,
        failure_count=len(errors),
        errors=errors,
    )
