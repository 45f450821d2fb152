import math
from datetime import date
from typing import Optional

# date.weekday(): Monday == 0 ... Saturday == 5
SEMINAR_WEEKDAY = 5


def parse_date(date_str: str) -> date:
    """
    Parse a 'DD-MM-YYYY' string.
    """
    day, month, year = date_str.split("-")
    return date(int(year), int(month), int(day))


def weeks_until(target: date, today: Optional[date] = None) -> int:
    """
    Number of calendar weeks between today and target, rounded up.
    The distance is absolute, so a past target still yields a positive count.
    """
    today = today or date.today()
    diff_days = abs((target - today).days)
    return math.ceil(diff_days / 7)


def is_seminar_day(today: Optional[date] = None) -> bool:
    today = today or date.today()
    return today.weekday() == SEMINAR_WEEKDAY
