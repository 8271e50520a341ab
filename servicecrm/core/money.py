"""
Money and time helpers.

Money crosses the API boundary as integer paise (1/100 rupee) and is only
converted to rupees for display or when parsing user input. Timestamps
cross the boundary as integer nanoseconds since the Unix epoch; calendar
arithmetic happens on timezone-aware datetimes in the business timezone.
"""
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union
import time

from dateutil.relativedelta import relativedelta

from servicecrm.config import settings
from servicecrm.core.exceptions import ValidationError


PAISE_PER_RUPEE = 100
NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_DAY = 86_400 * NANOS_PER_SECOND

Number = Union[int, str, Decimal, float]


# =============================================================================
# MONEY
# =============================================================================

def rupees_to_paise(value: Number, field: str = "amount") -> int:
    """
    Convert a rupee amount entered by a user into integer paise.

    Rounds half-up to the nearest paisa. Negative or unparseable input
    raises ValidationError naming `field`.

    Examples:
        >>> rupees_to_paise("499.99")
        49999
        >>> rupees_to_paise(1200)
        120000
    """
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}", field=field)

    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}", field=field)
    if amount < 0:
        raise ValidationError("Amount cannot be negative", field=field)

    paise = (amount * PAISE_PER_RUPEE).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(paise)


def paise_to_rupees(paise: int) -> Decimal:
    """Integer paise to a two-place rupee Decimal."""
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(Decimal("0.01"))


def format_inr(paise: int) -> str:
    """
    Format paise as rupees with Indian digit grouping.

    Examples:
        >>> format_inr(12345678)
        '₹1,23,456.78'
    """
    rupees = paise_to_rupees(abs(paise))
    whole, fraction = f"{rupees:.2f}".split(".")

    # Last three digits, then groups of two
    head, tail = whole[:-3], whole[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    grouped = ",".join(groups + [tail]) if groups else tail

    sign = "-" if paise < 0 else ""
    return f"{sign}₹{grouped}.{fraction}"


def ensure_non_negative(amount: int, field: str = "amount") -> int:
    """Reject negative paise amounts."""
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return amount


# =============================================================================
# TIME
# =============================================================================

def _tz(tz: Optional[tzinfo]) -> tzinfo:
    return tz if tz is not None else settings.business_tz


def to_nanos(value: Union[datetime, date], tz: Optional[tzinfo] = None) -> int:
    """
    Convert a datetime (or a date, taken as midnight in `tz`) to epoch nanoseconds.

    Naive datetimes are interpreted in `tz`.
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=_tz(tz))

    delta = value - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (delta.days * 86_400 + delta.seconds) * NANOS_PER_SECOND + delta.microseconds * 1_000


def date_to_nanos(value: date, tz: Optional[tzinfo] = None) -> int:
    """Midnight of `value` in the business timezone, as epoch nanoseconds."""
    return to_nanos(datetime(value.year, value.month, value.day), tz)


def from_nanos(ns: int, tz: Optional[tzinfo] = None) -> datetime:
    """Epoch nanoseconds to an aware datetime in `tz` (microsecond precision)."""
    seconds, remainder = divmod(ns, NANOS_PER_SECOND)
    utc = datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=remainder // 1_000)
    return utc.astimezone(_tz(tz))


def nanos_to_date(ns: int, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of an epoch-nanosecond instant in the business timezone."""
    return from_nanos(ns, tz).date()


def now_nanos() -> int:
    """Current wall-clock time. Only API endpoints call this, never the core."""
    return time.time_ns()


def add_months(ns: int, months: int, tz: Optional[tzinfo] = None) -> int:
    """
    Calendar-month addition: day-of-month is preserved where it exists,
    otherwise clamped to the month's last day (Jan 31 + 1 month = Feb 29/28).
    """
    moved = from_nanos(ns, tz) + relativedelta(months=months)
    return to_nanos(moved.replace(tzinfo=None), tz) + ns % 1_000


def add_years(ns: int, years: int, tz: Optional[tzinfo] = None) -> int:
    """Calendar-year addition (Feb 29 + 1 year = Feb 28)."""
    return add_months(ns, 12 * years, tz)


def add_days(ns: int, days: int) -> int:
    return ns + days * NANOS_PER_DAY


def start_of_day(ns: int, tz: Optional[tzinfo] = None) -> int:
    """Midnight (business timezone) of the day containing `ns`."""
    return date_to_nanos(nanos_to_date(ns, tz), tz)


def format_date(ns: int, tz: Optional[tzinfo] = None) -> str:
    """Display form used in reminder descriptions, e.g. '15 Jan 2024'."""
    return from_nanos(ns, tz).strftime("%d %b %Y")
