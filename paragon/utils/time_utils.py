"""
Time Utilities
==============
US/Eastern timezone handling and session-window arithmetic.
"""

from datetime import datetime, date, time, timedelta
from typing import Optional
import pytz

from ..core.constants import MARKET_TIMEZONE

# US Eastern (NYSE/NASDAQ)
EASTERN = pytz.timezone(MARKET_TIMEZONE)


def get_market_now() -> datetime:
    """Get current time in US/Eastern"""
    return datetime.now(EASTERN)


def get_today_date() -> date:
    """Get today's date in US/Eastern"""
    return get_market_now().date()


def localize(dt: datetime) -> datetime:
    """Attach the market timezone to a naive datetime; aware ones are converted."""
    if dt.tzinfo is None:
        return EASTERN.localize(dt)
    return dt.astimezone(EASTERN)


def market_datetime(day: date, at: time) -> datetime:
    """Build an aware market-time datetime for a date and wall-clock time."""
    return EASTERN.localize(datetime.combine(day, at))


def parse_clock(value: str) -> time:
    """Parse an 'HH:MM' wall-clock string as returned by the market calendar."""
    return datetime.strptime(value.strip(), "%H:%M").time()


def minutes_until(target: datetime, now: Optional[datetime] = None) -> float:
    """
    Minutes remaining until ``target``.

    Args:
        target: Aware datetime to measure against
        now: Reference time (default: now in US/Eastern)

    Returns:
        Minutes as a float; negative once ``target`` has passed
    """
    if now is None:
        now = get_market_now()
    return (localize(target) - localize(now)) / timedelta(minutes=1)


def before_close(close_at: datetime, lead_minutes: int) -> datetime:
    """The moment ``lead_minutes`` before the session closes."""
    return close_at - timedelta(minutes=lead_minutes)
