"""Tests for birthday and date helpers."""

from datetime import date, datetime, timezone

import pytest

from grove.contacts.dates import (
    calculate_age,
    days_until_birthday,
    has_upcoming_birthday,
    parse_date_input,
)
from grove.errors import ValidationError


class TestCalculateAge:
    """Tests for calculate_age."""

    def test_before_birthday(self):
        """Age does not increase until the birthday."""
        assert calculate_age(date(1990, 8, 20), date(2024, 8, 19)) == 33

    def test_on_birthday(self):
        """Age increases on the birthday itself."""
        assert calculate_age(date(1990, 8, 20), date(2024, 8, 20)) == 34

    def test_none(self):
        """Unknown birthday gives None."""
        assert calculate_age(None, date(2024, 1, 1)) is None


class TestDaysUntilBirthday:
    """Tests for days_until_birthday and has_upcoming_birthday."""

    def test_today(self):
        """A birthday today is 0 days away."""
        assert days_until_birthday(date(1990, 3, 5), date(2024, 3, 5)) == 0

    def test_later_this_year(self):
        """Upcoming birthday in the same year."""
        assert days_until_birthday(date(1990, 3, 15), date(2024, 3, 5)) == 10

    def test_already_passed_wraps_to_next_year(self):
        """A passed birthday counts to next year."""
        assert days_until_birthday(date(1990, 1, 1), date(2023, 12, 31)) == 1

    def test_leap_day_in_common_year(self):
        """Feb 29 birthdays fall on Feb 28 in common years."""
        assert days_until_birthday(date(2000, 2, 29), date(2023, 2, 27)) == 1

    def test_upcoming_within_window(self):
        """has_upcoming_birthday respects the window."""
        today = date(2024, 3, 5)
        assert has_upcoming_birthday(date(1990, 4, 4), today) is True
        assert has_upcoming_birthday(date(1990, 4, 5), today) is False
        assert has_upcoming_birthday(date(1990, 4, 5), today, within_days=31) is True
        assert has_upcoming_birthday(None, today) is False


class TestParseDateInput:
    """Tests for parse_date_input."""

    def test_noon_utc(self):
        """Dates parse to noon UTC."""
        assert parse_date_input("2024-06-01") == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_strips_whitespace(self):
        """Surrounding whitespace is ignored."""
        assert parse_date_input(" 2024-06-01 ").day == 1

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-13-01", "06/01/2024"])
    def test_invalid(self, value: str):
        """Invalid dates raise ValidationError."""
        with pytest.raises(ValidationError):
            parse_date_input(value)
