from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from .records import TurnEvent
from .tracks import Track


@dataclass(frozen=True)
class Aggregates:
    done_count: Dict[Track, int]
    last_date: Dict[Track, Optional[date]]
    last_date_combined: Optional[date]


def sort_events(events: Iterable[TurnEvent]) -> List[TurnEvent]:
    """Newest first: by date, then by creation time."""
    return sorted(events, key=lambda e: e.sort_key, reverse=True)


def reconcile(events: Iterable[TurnEvent]) -> Aggregates:
    """Rebuild counters and last-turn dates from the events alone."""
    done = {Track.TOP: 0, Track.BOTTOM: 0}
    latest: Dict[Track, Optional[TurnEvent]] = {Track.TOP: None, Track.BOTTOM: None}
    for event in events:
        done[event.arch] += 1
        current = latest[event.arch]
        if current is None or event.sort_key > current.sort_key:
            latest[event.arch] = event

    last_date = {track: (e.date if e else None) for track, e in latest.items()}
    dates = [d for d in last_date.values() if d is not None]
    return Aggregates(
        done_count=done,
        last_date=last_date,
        last_date_combined=max(dates) if dates else None,
    )
