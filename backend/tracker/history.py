"""Mutations of the turn log.

Every function takes a :class:`TrackerState` and returns a new one built
from the changed event list, so counters and last-turn dates are always
re-derived from the events that remain. Functions that target a specific
entry return ``None`` when there is nothing to act on.
"""
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional, Tuple

from .errors import ValidationError
from .records import Settings, TurnEvent, parse_date
from .state import TrackerState
from .tracks import Track


def insert_events(state: TrackerState, events: Iterable[TurnEvent]) -> TrackerState:
    return apply_log_together_rule(state.with_events(state.events + tuple(events)))


def remove_at(state: TrackerState, index: int) -> Optional[Tuple[TrackerState, TurnEvent]]:
    """Drop the entry at ``index`` of the newest-first history."""
    if not isinstance(index, int) or index < 0 or index >= len(state.events):
        return None
    removed = state.events[index]
    remaining = state.events[:index] + state.events[index + 1:]
    return state.with_events(remaining), removed


def remove_newest(state: TrackerState) -> Optional[Tuple[TrackerState, TurnEvent]]:
    return remove_at(state, 0)


def remove_by_id(state: TrackerState, event_id) -> Optional[Tuple[TrackerState, TurnEvent]]:
    index = state.find(event_id)
    if index is None:
        return None
    return remove_at(state, index)


def edit_date(state: TrackerState, event_id, new_date) -> Optional[Tuple[TrackerState, TurnEvent]]:
    """Move one entry to another day; returns the new state and the edited event."""
    day = parse_date(new_date, "new date")
    if day is None:
        raise ValidationError("new date is required")
    index = state.find(event_id)
    if index is None:
        return None
    edited = replace(state.events[index], date=day)
    events = list(state.events)
    events[index] = edited
    return state.with_events(events), edited


def apply_log_together_rule(state: TrackerState) -> TrackerState:
    """Stop logging the arches together once one of them has finished.

    One-way: nothing here ever switches ``log_together`` back on.
    """
    settings = state.settings
    if not settings.log_together:
        return state
    top_done, bottom_done = state.is_complete(Track.TOP), state.is_complete(Track.BOTTOM)
    if top_done != bottom_done:
        return state.with_settings(settings.with_changes(log_together=False))
    return state


def reset_state(state: TrackerState) -> TrackerState:
    return TrackerState.build(Settings(), (), state.install_offset)


def last_logged(state: TrackerState) -> Optional[date]:
    return state.events[0].date if state.events else None
