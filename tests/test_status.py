"""Tests for pendency/status.py - Status derivation."""

from datetime import date, timedelta
from typing import Optional

import pytest

from pendency.models import AppConfig, PendencyRecord, PendencyStatus
from pendency.status import (
    MAX_CRITICAL_DAYS,
    business_today,
    calculate_status,
    critical_days,
    days_until_limit,
)

TODAY = date(2024, 3, 15)


def record_with_limit(offset: Optional[int]) -> PendencyRecord:
    limit = (TODAY + timedelta(days=offset)).isoformat() if offset is not None else None
    return PendencyRecord(id="rec-1-1", document_number="1", series="1", limit_date=limit)


class TestCalculateStatus:
    """Tests for the status decision tree."""

    @pytest.mark.parametrize(
        "offset, expected",
        [
            (0, PendencyStatus.PRIORITY),
            (1, PendencyStatus.TOMORROW),
            (2, PendencyStatus.ON_TIME),
            (30, PendencyStatus.ON_TIME),
            (-1, PendencyStatus.LATE),
            (-5, PendencyStatus.LATE),
            (-6, PendencyStatus.CRITICAL),
            (-60, PendencyStatus.CRITICAL),
        ],
    )
    def test_grace_period_of_five(self, offset: int, expected: PendencyStatus) -> None:
        config = AppConfig(critical_days_limit=5)
        assert calculate_status(record_with_limit(offset), config, TODAY) is expected

    def test_missing_limit_date_is_on_time(self) -> None:
        """No usable limit date defaults to ON_TIME."""
        config = AppConfig(critical_days_limit=5)
        assert calculate_status(record_with_limit(None), config, TODAY) is PendencyStatus.ON_TIME

        garbage = PendencyRecord(id="x", document_number="1", series="1", limit_date="soon")
        assert calculate_status(garbage, config, TODAY) is PendencyStatus.ON_TIME

    def test_critical_takes_precedence_over_late(self) -> None:
        """With no grace period, yesterday's limit is already critical."""
        config = AppConfig(critical_days_limit=0)
        assert calculate_status(record_with_limit(-1), config, TODAY) is PendencyStatus.CRITICAL
        assert calculate_status(record_with_limit(0), config, TODAY) is PendencyStatus.PRIORITY

    def test_slash_formatted_limit(self) -> None:
        record = PendencyRecord(id="x", document_number="1", series="1", limit_date="16/03/2024")
        assert calculate_status(record, AppConfig(), TODAY) is PendencyStatus.TOMORROW

    def test_missing_config_uses_default_grace(self) -> None:
        assert calculate_status(record_with_limit(-5), None, TODAY) is PendencyStatus.LATE
        assert calculate_status(record_with_limit(-6), None, TODAY) is PendencyStatus.CRITICAL

    def test_far_future_limit_date(self) -> None:
        """A "no deadline" placeholder date is simply on time."""
        record = PendencyRecord(id="x", document_number="1", series="1", limit_date="31/12/9999")
        assert calculate_status(record, AppConfig(critical_days_limit=5), TODAY) is PendencyStatus.ON_TIME

    def test_huge_grace_period(self) -> None:
        config = AppConfig(critical_days_limit=1_000_000_000)
        assert calculate_status(record_with_limit(-400), config, TODAY) is PendencyStatus.LATE

        ancient = PendencyRecord(id="x", document_number="1", series="1", limit_date="0001-01-01")
        assert calculate_status(ancient, config, TODAY) is PendencyStatus.CRITICAL

    def test_defaults_to_business_today(self) -> None:
        record = PendencyRecord(
            id="x", document_number="1", series="1", limit_date=business_today().isoformat()
        )
        assert calculate_status(record, AppConfig()) is PendencyStatus.PRIORITY


class TestHelpers:
    """Tests for helper functions."""

    def test_critical_days(self) -> None:
        assert critical_days(AppConfig(critical_days_limit=3)) == 3
        assert critical_days(AppConfig(critical_days_limit=0)) == 0
        assert critical_days(None) == 5
        assert critical_days(AppConfig(critical_days_limit=1_000_000_000)) == MAX_CRITICAL_DAYS
        assert critical_days(AppConfig(critical_days_limit=float("inf"))) == 5

    def test_days_until_limit(self) -> None:
        assert days_until_limit(record_with_limit(3), TODAY) == 3
        assert days_until_limit(record_with_limit(-2), TODAY) == -2
        assert days_until_limit(record_with_limit(None), TODAY) is None

    def test_business_today_unknown_timezone(self) -> None:
        """An unknown timezone name falls back to UTC instead of raising."""
        assert isinstance(business_today("Mars/Olympus_Mons"), date)
