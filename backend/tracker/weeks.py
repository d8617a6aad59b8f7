from datetime import date, timedelta


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def next_week_start(day: date) -> date:
    return week_start(day) + timedelta(days=7)


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days
