"""Status derivation for pendency records."""

import logging
from datetime import date, datetime
from typing import Optional

import pytz

from .config import settings
from .models import AppConfig, PendencyRecord, PendencyStatus
from .parsers import parse_date

logger = logging.getLogger(__name__)

# Upper bound on the grace period (about a century)
MAX_CRITICAL_DAYS = 36500


def business_today(tz_name: Optional[str] = None) -> date:
    """Return the current calendar day in the business timezone."""
    tz_name = tz_name or settings.timezone
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone {tz_name!r}, falling back to UTC")
        tz = pytz.utc
    return datetime.now(tz).date()


def critical_days(config: Optional[AppConfig]) -> int:
    """Grace period in days; a missing or invalid limit falls back to the default."""
    if config is None or config.critical_days_limit is None:
        return settings.default_critical_days_limit
    try:
        days = int(config.critical_days_limit)
    except (TypeError, ValueError, OverflowError):
        return settings.default_critical_days_limit
    if days < 0:
        return settings.default_critical_days_limit
    return min(days, MAX_CRITICAL_DAYS)


def days_until_limit(record: PendencyRecord, today: Optional[date] = None) -> Optional[int]:
    """Days from today to the record's limit date (negative once past)."""
    limit = parse_date(record.limit_date)
    if limit is None:
        return None
    today = today or business_today()
    return (limit - today).days


def calculate_status(
    record: PendencyRecord,
    config: Optional[AppConfig],
    today: Optional[date] = None,
) -> PendencyStatus:
    """Derive the urgency status of a record.

    Strict decision tree on calendar days. CRITICAL is checked first and wins
    over LATE: once today passes limit + grace period the record is reported
    as critical, never as merely late. A record without a usable limit date is
    ON_TIME.

    Args:
        record: Normalized record
        config: Source configuration (grace period)
        today: Reference day, defaults to today in the business timezone

    Returns:
        Exactly one PendencyStatus
    """
    limit = parse_date(record.limit_date)
    if limit is None:
        return PendencyStatus.ON_TIME

    today = today or business_today()
    diff_days = (limit - today).days

    if -diff_days > critical_days(config):
        return PendencyStatus.CRITICAL
    if diff_days < 0:
        return PendencyStatus.LATE
    if diff_days == 0:
        return PendencyStatus.PRIORITY
    if diff_days == 1:
        return PendencyStatus.TOMORROW
    return PendencyStatus.ON_TIME
