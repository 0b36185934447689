"""Date arithmetic for mid-cycle annual commitments and prorated amounts."""

import calendar as cal
import logging
import math
from datetime import UTC, date, datetime, timedelta
from typing import NamedTuple

logger = logging.getLogger(__name__)

# Year length used for annual proration regardless of leap years
DAYS_PER_YEAR = 365.0


class AddonProration(NamedTuple):
    billable_months: int
    extra_days: int
    backdate_start: datetime
    billing_anchor: datetime


def _days_in_month(year: int, month: int) -> int:
    return cal.monthrange(year, month)[1]


def add_months(dt: datetime, months: int) -> datetime:
    """Add months to a datetime, clamping to last day of month."""
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    day = min(dt.day, _days_in_month(year, month))
    return dt.replace(year=year, month=month, day=day)


def _add_years(value: date, years: int) -> date:
    """Same month/day in another year; Feb 29 falls back to Feb 28."""
    year = value.year + years
    day = min(value.day, _days_in_month(year, value.month))
    return value.replace(year=year, day=day)


def calc_addon_proration(now: datetime, period_end: datetime) -> AddonProration:
    """Split the span from ``now`` to ``period_end`` into billable months and leftover days.

    Also derives a billing anchor after ``period_end`` and a virtual backdated
    start, so a provider billing a 12-month cycle from the backdated start
    charges only the remaining months.

    Args:
        now: Moment the commitment starts.
        period_end: Anniversary/period-end date the commitment aligns to.

    Returns:
        AddonProration(billable_months, extra_days, backdate_start, billing_anchor).
        ``billable_months`` is at least 1. ``backdate_start`` is midnight UTC.
    """
    months_diff = (period_end.year - now.year) * 12 + abs(period_end.month - now.month)
    days_diff = period_end.day - now.day

    if days_diff < 0:
        months_diff -= 1
        previous_month = add_months(period_end, -1)
        days_diff += _days_in_month(previous_month.year, previous_month.month)

    if months_diff <= 0:
        # Minimum charge is one month even for a shorter span
        billable_months = 1
        extra_days = days_diff
    elif days_diff > 0:
        billable_months = months_diff + 1
        extra_days = days_diff
    else:
        billable_months = months_diff
        extra_days = 0

    if extra_days > 0:
        # Fixed 30-day month, independent of the actual month length
        billing_anchor = period_end + timedelta(days=30 - extra_days + 1)
    else:
        billing_anchor = period_end

    months_already_passed = 12 - billable_months
    backdate_start = add_months(now, -months_already_passed)
    target_day = min(
        billing_anchor.day, _days_in_month(backdate_start.year, backdate_start.month)
    )
    backdate_start = datetime(
        backdate_start.year, backdate_start.month, target_day, tzinfo=UTC
    )

    logger.debug(
        "Proration from %s to %s: %d billable months, %d extra days, "
        "backdate start %s, anchor %s",
        now.date(),
        period_end.date(),
        billable_months,
        extra_days,
        backdate_start.date(),
        billing_anchor.date(),
    )
    return AddonProration(billable_months, extra_days, backdate_start, billing_anchor)


def calculate_annual_prorated_amount(
    annual_price_amount: int,
    start_date: date | datetime | None = None,
    anniversary_date: date | datetime | None = None,
) -> int:
    """Charge for the days from ``start_date`` through the anniversary, inclusive.

    Args:
        annual_price_amount: Full annual price in the smallest currency unit.
        start_date: First billed day. Defaults to today (UTC).
        anniversary_date: Renewal date. Defaults to the same month/day one year later.

    Returns:
        ``floor(annual_price_amount * days_remaining / 365)``; never rounded up.
    """
    start = _as_date(start_date) if start_date is not None else datetime.now(UTC).date()
    if anniversary_date is None:
        anniversary = _add_years(start, 1)
    else:
        anniversary = _as_date(anniversary_date)

    days_remaining = annual_days_remaining(start, anniversary)
    ratio = days_remaining / DAYS_PER_YEAR
    return math.floor(annual_price_amount * ratio)


def annual_days_remaining(start: date | datetime, anniversary: date | datetime) -> int:
    """Days from start to anniversary, counting the start day."""
    return (_as_date(anniversary) - _as_date(start)).days + 1


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
