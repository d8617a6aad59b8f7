from datetime import date
from enum import Enum

from .eligibility import Reason, track_eligibility
from .state import TrackerState
from .tracks import Selection, Track, for_both, parse_selection


class Status(str, Enum):
    READY = "ready"
    WAIT = "wait"
    COMPLETE = "complete"


def track_status(track: Track, state: TrackerState, today: date) -> Status:
    eligibility = track_eligibility(track, state, today)
    if eligibility.can_log:
        return Status.READY
    if eligibility.reason is Reason.COMPLETE:
        return Status.COMPLETE
    return Status.WAIT


def combine_statuses(top: Status, bottom: Status) -> Status:
    # availability, not a strict AND: one ready arch makes the pair ready
    if top is Status.COMPLETE and bottom is Status.COMPLETE:
        return Status.COMPLETE
    if Status.READY in (top, bottom):
        return Status.READY
    return Status.WAIT


def get_status(selection, state: TrackerState, today: date) -> Status:
    selection = parse_selection(selection)
    if selection is Selection.BOTH:
        return combine_statuses(*for_both(lambda track: track_status(track, state, today)))
    return track_status(selection.track, state, today)
