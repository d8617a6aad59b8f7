from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Tuple

from .errors import ValidationError
from .reconcile import Aggregates, reconcile, sort_events
from .records import ScheduleType, Settings, TurnEvent
from .tracks import Track

__all__ = ["Aggregates", "ScheduleType", "Settings", "TrackerState", "TurnEvent"]


@dataclass(frozen=True)
class TrackerState:
    """Immutable snapshot of one family's tracker.

    ``events`` is kept newest-first and ``aggregates`` is always derived
    from it; use :meth:`build` (or :meth:`with_events`) instead of the
    constructor so the two never drift apart.
    """

    settings: Settings
    events: Tuple[TurnEvent, ...]
    aggregates: Aggregates
    install_offset: int = 0

    @classmethod
    def build(cls, settings: Settings = None, events: Iterable[TurnEvent] = (),
              install_offset: int = 0) -> "TrackerState":
        if install_offset not in (0, 1):
            raise ValidationError(f"install offset must be 0 or 1, got {install_offset!r}")
        ordered = tuple(sort_events(events))
        return cls(
            settings=settings or Settings(),
            events=ordered,
            aggregates=reconcile(ordered),
            install_offset=install_offset,
        )

    def with_events(self, events: Iterable[TurnEvent]) -> "TrackerState":
        return TrackerState.build(self.settings, events, self.install_offset)

    def with_settings(self, settings: Settings) -> "TrackerState":
        return TrackerState(settings, self.events, self.aggregates, self.install_offset)

    # derived values

    def done_count(self, track: Track) -> int:
        return self.aggregates.done_count[track]

    def effective_done(self, track: Track) -> int:
        return self.aggregates.done_count[track] + self.install_offset

    def total(self, track: Track) -> int:
        return self.settings.total(track)

    def remaining(self, track: Track) -> int:
        return max(0, self.total(track) - self.effective_done(track))

    def is_complete(self, track: Track) -> bool:
        return self.effective_done(track) >= self.total(track)

    def last_date(self, track: Track) -> Optional[date]:
        return self.aggregates.last_date[track]

    @property
    def last_date_combined(self) -> Optional[date]:
        return self.aggregates.last_date_combined

    def events_for(self, track: Track):
        return [e for e in self.events if e.arch is track]

    def find(self, event_id) -> Optional[int]:
        for index, event in enumerate(self.events):
            if event.id is not None and event.id == event_id:
                return index
        return None
