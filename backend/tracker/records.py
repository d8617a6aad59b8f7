from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional

from .errors import ValidationError
from .tracks import Track, parse_track

DEFAULT_CHILD_NAME = "Child"


class ScheduleType(str, Enum):
    EVERY_N_DAYS = "every_n_days"
    TWICE_PER_WEEK = "twice_per_week"


def parse_date(value, field_name="date") -> Optional[date]:
    """Coerce an ISO string, date or datetime to a calendar day."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # browser-storage dumps carry full ISO timestamps
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"{field_name}: malformed date {value!r}") from None


def _positive_int(value, field_name) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a positive integer, got {value!r}") from None
    if number != value and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a whole number, got {value!r}")
    if number < 1:
        raise ValidationError(f"{field_name} must be a positive integer, got {value!r}")
    return number


@dataclass(frozen=True)
class Settings:
    top_total: int = 27
    bottom_total: int = 23
    install_date: Optional[date] = None
    schedule_type: ScheduleType = ScheduleType.EVERY_N_DAYS
    interval_days: int = 2
    child_name: str = DEFAULT_CHILD_NAME
    log_together: bool = True

    def __post_init__(self):
        try:
            schedule_type = ScheduleType(self.schedule_type)
        except ValueError:
            raise ValidationError(
                f"schedule_type must be 'every_n_days' or 'twice_per_week', got {self.schedule_type!r}"
            ) from None
        object.__setattr__(self, "schedule_type", schedule_type)
        object.__setattr__(self, "top_total", _positive_int(self.top_total, "top_total"))
        object.__setattr__(self, "bottom_total", _positive_int(self.bottom_total, "bottom_total"))
        object.__setattr__(self, "interval_days", _positive_int(self.interval_days, "interval_days"))
        object.__setattr__(self, "install_date", parse_date(self.install_date, "install_date"))
        object.__setattr__(self, "child_name", (self.child_name or "").strip() or DEFAULT_CHILD_NAME)
        object.__setattr__(self, "log_together", bool(self.log_together))

    def total(self, track: Track) -> int:
        return self.top_total if track is Track.TOP else self.bottom_total

    def with_changes(self, **changes) -> "Settings":
        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ValidationError(f"unknown settings field(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)


@dataclass(frozen=True)
class TurnEvent:
    date: date
    arch: Track
    note: Optional[str] = None
    created_at: datetime = field(default=datetime.min)
    id: Optional[int] = None

    def __post_init__(self):
        day = parse_date(self.date)
        if day is None:
            raise ValidationError("turn date is required")
        object.__setattr__(self, "date", day)
        object.__setattr__(self, "arch", parse_track(self.arch))
        object.__setattr__(self, "note", (self.note or "").strip() or None)

    @property
    def sort_key(self):
        return (self.date, self.created_at)
