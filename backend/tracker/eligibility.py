"""Decides whether a turn may be logged today, and if not, why."""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from .records import ScheduleType
from .state import TrackerState
from .tracks import Selection, Track, parse_selection
from .weeks import days_between, next_week_start, week_start

WEEKLY_CAP = 2


class Reason(str, Enum):
    COMPLETE = "complete"
    WAIT = "wait"


@dataclass(frozen=True)
class Eligibility:
    can_log: bool
    reason: Optional[Reason] = None
    days_remaining: Optional[int] = None

    def __bool__(self):
        return self.can_log


ELIGIBLE = Eligibility(True)
COMPLETE = Eligibility(False, Reason.COMPLETE)


def _interval_gate(last: Optional[date], interval_days: int, today: date) -> Eligibility:
    if last is None:
        return ELIGIBLE
    days_since = days_between(last, today)
    # a future-dated last turn gives a negative gap and still has to wait
    if days_since < interval_days:
        return Eligibility(False, Reason.WAIT, interval_days - days_since)
    return ELIGIBLE


def turns_this_week(state: TrackerState, track: Track, today: date) -> int:
    start, end = week_start(today), next_week_start(today)
    return sum(1 for e in state.events_for(track) if start <= e.date < end)


def track_eligibility(track: Track, state: TrackerState, today: date) -> Eligibility:
    if state.is_complete(track):
        return COMPLETE
    settings = state.settings
    if settings.schedule_type is ScheduleType.TWICE_PER_WEEK:
        if turns_this_week(state, track, today) >= WEEKLY_CAP:
            return Eligibility(False, Reason.WAIT)
        return ELIGIBLE
    return _interval_gate(state.last_date(track), settings.interval_days, today)


def combined_eligibility(state: TrackerState, today: date) -> Eligibility:
    top = track_eligibility(Track.TOP, state, today)
    bottom = track_eligibility(Track.BOTTOM, state, today)
    if top.reason is Reason.COMPLETE and bottom.reason is Reason.COMPLETE:
        return COMPLETE

    settings = state.settings
    if settings.log_together and settings.schedule_type is ScheduleType.EVERY_N_DAYS:
        return _interval_gate(state.last_date_combined, settings.interval_days, today)

    if top.can_log or bottom.can_log:
        return ELIGIBLE
    # both waiting, or one waiting and one complete: report the wait
    waiting = [e for e in (top, bottom) if e.reason is Reason.WAIT]
    with_days = [e for e in waiting if e.days_remaining is not None]
    if with_days:
        return min(with_days, key=lambda e: e.days_remaining)
    return waiting[0]


def can_log_turn(selection, state: TrackerState, today: date) -> Eligibility:
    selection = parse_selection(selection)
    if selection is Selection.BOTH:
        return combined_eligibility(state, today)
    return track_eligibility(selection.track, state, today)
