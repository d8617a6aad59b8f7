from datetime import date, timedelta
from typing import Optional

from .eligibility import WEEKLY_CAP, turns_this_week
from .records import ScheduleType
from .state import TrackerState
from .tracks import Selection, Track, for_both, parse_selection
from .weeks import next_week_start


def _after_interval(anchor: Optional[date], interval_days: int) -> Optional[date]:
    if anchor is None:
        return None
    return anchor + timedelta(days=interval_days)


def track_due_date(track: Track, state: TrackerState, today: date) -> Optional[date]:
    if state.is_complete(track):
        return None
    settings = state.settings
    if settings.schedule_type is ScheduleType.TWICE_PER_WEEK:
        if turns_this_week(state, track, today) < WEEKLY_CAP:
            return today
        return next_week_start(today)
    anchor = state.last_date(track) or settings.install_date
    return _after_interval(anchor, settings.interval_days)


def earliest(a: Optional[date], b: Optional[date]) -> Optional[date]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def get_next_due_date(selection, state: TrackerState, today: date) -> Optional[date]:
    selection = parse_selection(selection)
    if selection is not Selection.BOTH:
        return track_due_date(selection.track, state, today)

    if state.is_complete(Track.TOP) and state.is_complete(Track.BOTTOM):
        return None
    settings = state.settings
    if settings.log_together and settings.schedule_type is ScheduleType.EVERY_N_DAYS:
        anchor = state.last_date_combined or settings.install_date
        return _after_interval(anchor, settings.interval_days)
    return earliest(*for_both(lambda track: track_due_date(track, state, today)))


def present_due_date(due: Optional[date], today: date) -> Optional[date]:
    """Never show a due date in the past; overdue reads as today."""
    if due is None:
        return None
    return max(due, today)
