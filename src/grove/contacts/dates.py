"""Birthday and date-input helpers."""

from datetime import date, datetime, time, timezone

from ..errors import ValidationError


def calculate_age(birthday: date | None, today: date) -> int | None:
    """Age in whole years on a given day."""
    if birthday is None:
        return None
    age = today.year - birthday.year
    if (today.month, today.day) < (birthday.month, birthday.day):
        age -= 1
    return age


def _birthday_in_year(birthday: date, year: int) -> date:
    # Feb 29 birthdays fall on Feb 28 in common years
    try:
        return birthday.replace(year=year)
    except ValueError:
        return date(year, 2, 28)


def days_until_birthday(birthday: date, today: date) -> int:
    """Days until the next occurrence of a birthday, 0 if it is today."""
    upcoming = _birthday_in_year(birthday, today.year)
    if upcoming < today:
        upcoming = _birthday_in_year(birthday, today.year + 1)
    return (upcoming - today).days


def has_upcoming_birthday(
    birthday: date | None, today: date, within_days: int = 30
) -> bool:
    """True if the next birthday is at most within_days away."""
    if birthday is None:
        return False
    return days_until_birthday(birthday, today) <= within_days


def parse_date_input(value: str) -> datetime:
    """Parse a YYYY-MM-DD string into a UTC datetime at noon.

    Noon keeps the calendar day stable when displayed in nearby timezones.

    Raises:
        ValidationError: If the string is not a valid date.
    """
    try:
        day = date.fromisoformat(value.strip())
    except ValueError as e:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from e
    return datetime.combine(day, time(12, 0), tzinfo=timezone.utc)
