"""Membership renewal date computation and days-remaining / overdue derivation.

Shared by the create and update endpoints and by ``Member.to_dict``.
"""
from datetime import datetime, timedelta, timezone
import math

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

# Plan labels offered to staff (closed set). Any other label is accepted
# and renews after the default duration.
PLANS = [
    "12 tháng - Premium",
    "6 tháng - Standard",
    "3 tháng - Basic",
    "1 tháng - Flex",
]

# Checked in order: longest duration first, first match wins.
PLAN_TOKENS = (
    ("12 tháng", 12),
    ("6 tháng", 6),
    ("3 tháng", 3),
    ("1 tháng", 1),
)
DEFAULT_MONTHS = 1
DAY_SUFFIX = "ngày"

_ONE_MS = timedelta(milliseconds=1)
_MS_PER_DAY = 24 * 60 * 60 * 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def plan_months(plan: str | None) -> int:
    lower = (plan or "").lower()
    for token, months in PLAN_TOKENS:
        if token in lower:
            return months
    return DEFAULT_MONTHS


def compute_next_payment_date(plan: str | None, reference: datetime | None = None) -> datetime:
    """Return ``reference`` advanced by the number of months encoded in ``plan``.

    Month arithmetic is calendar aware; a day that does not exist in the
    target month is clamped to its last day (Jan 31 + 1 month -> Feb 29 in 2024).
    """
    start = _as_utc(reference) if reference is not None else utcnow()
    return start + relativedelta(months=plan_months(plan))


def days_remaining(target: datetime, reference: datetime | None = None) -> int:
    """Whole days from ``reference`` until ``target``, rounded up.

    A target already in the past by less than a day reports -1, never 0.
    """
    ref = _as_utc(reference) if reference is not None else utcnow()
    diff_ms = (_as_utc(target) - ref) // _ONE_MS
    days = math.ceil(diff_ms / _MS_PER_DAY)
    if days == 0 and diff_ms < 0:
        return -1
    return days


def parse_instant(value) -> datetime | None:
    """Parse a stored renewal date; anything unusable becomes ``None``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return _as_utc(date_parser.isoparse(text))
    except (ValueError, OverflowError):
        return None


def renewal_info(target=None, reference: datetime | None = None) -> dict:
    instant = parse_instant(target)
    if instant is None:
        return {"days": None, "label": "", "overdue": False}
    days = days_remaining(instant, reference)
    return {"days": days, "label": f"{days} {DAY_SUFFIX}", "overdue": days < 0}
