from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional

from .errors import ValidationError
from .records import parse_date


@dataclass(frozen=True)
class TreatmentNote:
    """Free-text note about a visit or adjustment, not tied to a turn."""

    date: date
    note: str
    created_at: datetime = field(default=datetime.min)
    id: Optional[int] = None

    def __post_init__(self):
        day = parse_date(self.date)
        if day is None:
            raise ValidationError("date and note are required")
        text = (self.note or "").strip()
        if not text:
            raise ValidationError("date and note are required")
        object.__setattr__(self, "date", day)
        object.__setattr__(self, "note", text)


def sort_notes(notes: Iterable[TreatmentNote]) -> List[TreatmentNote]:
    return sorted(notes, key=lambda n: (n.date, n.created_at), reverse=True)
