"""Turn logging for one family: guard, mutate, reconcile, persist.

The service keeps the last reconciled :class:`TrackerState` in memory.
A new state only becomes current once its write went through; when a store
call fails the previous snapshot is rebuilt and the error propagates, so
statuses and due dates are never computed from a half-applied change.
"""
import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Optional, Tuple

from backend.config import HISTORY_VIEW_LIMIT, INSTALL_TURN_OFFSET
from backend.stores import TortoiseNoteStore, TortoiseSettingsStore, TortoiseTurnStore
from backend.tracker import (
    Eligibility,
    PersistenceError,
    ScheduleType,
    Selection,
    Settings,
    Status,
    SystemClock,
    TrackerError,
    TrackerState,
    TreatmentNote,
    TurnEvent,
    can_log_turn,
    get_next_due_date,
    get_status,
    insert_events,
    parse_date,
    parse_selection,
    present_due_date,
    remove_at,
    remove_by_id,
    remove_newest,
    reset_state,
)
from backend.tracker.eligibility import track_eligibility
from backend.tracker.history import edit_date as move_turn, last_logged
from backend.tracker.legacy import migrate_legacy_state
from backend.tracker.notes import sort_notes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogResult:
    eligibility: Eligibility
    events: Tuple[TurnEvent, ...] = ()

    @property
    def logged(self) -> bool:
        return bool(self.events)


@dataclass(frozen=True)
class TrackerView:
    """Everything a front-end needs to draw the tracker."""

    child_name: str
    log_together: bool
    schedule_type: ScheduleType
    counts: Dict[str, Dict[str, int]]
    statuses: Dict[str, Status]
    eligibility: Dict[str, Eligibility]
    next_due_dates: Dict[str, Optional[date]]
    last_logged: Optional[date]
    last_dates: Dict[str, Optional[date]]
    history: List[TurnEvent]
    as_of: Optional[date] = None


class TrackerService:
    def __init__(self, settings_store, turn_store, clock=None,
                 install_offset: int = INSTALL_TURN_OFFSET, note_store=None):
        self.settings_store = settings_store
        self.turn_store = turn_store
        self.note_store = note_store
        self.clock = clock or SystemClock()
        self.install_offset = install_offset
        self.state: Optional[TrackerState] = None

    async def load(self) -> TrackerState:
        settings = await self.settings_store.get()
        events = await self.turn_store.list()
        self.state = TrackerState.build(settings, events, self.install_offset)
        return self.state

    async def current(self) -> TrackerState:
        if self.state is None:
            await self.load()
        return self.state

    def _rollback(self, previous: TrackerState):
        # rebuild rather than reuse, so the aggregates are re-derived
        self.state = TrackerState.build(previous.settings, previous.events, previous.install_offset)

    # turns

    async def can_log(self, selection) -> Eligibility:
        state = await self.current()
        return can_log_turn(selection, state, self.clock.today())

    def _tracks_to_log(self, selection: Selection, state: TrackerState, today: date):
        if selection is not Selection.BOTH:
            return [selection.track]
        settings = state.settings
        if settings.log_together and settings.schedule_type is ScheduleType.EVERY_N_DAYS:
            tracks = [t for t in selection.tracks if not state.is_complete(t)]
        else:
            tracks = [t for t in selection.tracks if track_eligibility(t, state, today).can_log]
        # the turns table keeps one row per day and arch
        fresh = [t for t in tracks if state.last_date(t) != today]
        return fresh or tracks

    async def log_turn(self, selection, note: str = None) -> LogResult:
        selection = parse_selection(selection)
        state = await self.current()
        today = self.clock.today()
        eligibility = can_log_turn(selection, state, today)
        if not eligibility.can_log:
            logger.info(f"Turn for {selection.value} rejected: {eligibility.reason.value}")
            return LogResult(eligibility)

        now = self.clock.now()
        events = [TurnEvent(date=today, arch=track, note=note, created_at=now)
                  for track in self._tracks_to_log(selection, state, today)]
        ids = await self.turn_store.insert_many(events) or [None] * len(events)
        events = [replace(event, id=event_id) for event, event_id in zip(events, ids)]

        new_state = insert_events(state, events)
        if new_state.settings != state.settings:
            logger.info("One arch finished early, switching to separate logging")
            try:
                await self.settings_store.put(new_state.settings)
            except PersistenceError:
                await self._discard(events)
                self._rollback(state)
                raise
        self.state = new_state
        logger.info(f"Logged {len(events)} turn(s) for {selection.value} on {today}")
        return LogResult(eligibility, tuple(events))

    async def _discard(self, events):
        for event in events:
            if event.id is None:
                continue
            try:
                await self.turn_store.delete_by_id(event.id)
            except PersistenceError:
                logger.error(f"Could not remove turn {event.id} after a failed settings write")

    async def _apply_removal(self, result, action: str) -> bool:
        if result is None:
            logger.info(f"Nothing to {action}")
            return False
        previous = self.state
        self.state, removed = result
        try:
            if removed.id is not None:
                await self.turn_store.delete_by_id(removed.id)
        except PersistenceError:
            self._rollback(previous)
            raise
        logger.info(f"Removed {removed.arch.value} turn of {removed.date} ({action})")
        return True

    async def undo_last(self) -> bool:
        return await self._apply_removal(remove_newest(await self.current()), "undo")

    async def undo_at(self, index: int) -> bool:
        return await self._apply_removal(remove_at(await self.current(), index), "undo at index")

    async def undo_by_id(self, event_id) -> bool:
        return await self._apply_removal(remove_by_id(await self.current(), event_id), "undo by id")

    async def edit_date(self, event_id, new_date) -> bool:
        state = await self.current()
        result = move_turn(state, event_id, new_date)
        if result is None:
            return False
        self.state, edited = result
        try:
            await self.turn_store.update(edited)
        except PersistenceError:
            self._rollback(state)
            raise
        logger.info(f"Moved turn {event_id} to {edited.date}")
        return True

    # settings

    async def update_settings(self, **changes) -> Settings:
        state = await self.current()
        settings = state.settings.with_changes(**changes)
        await self.settings_store.put(settings)
        self.state = state.with_settings(settings)
        return settings

    async def reset(self):
        """Delete every turn and restore default settings. Irreversible."""
        state = await self.current()
        try:
            await self.turn_store.delete_all()
            await self.settings_store.put(Settings())
        except PersistenceError:
            # the stores may now be half reset; reload on next access
            self.state = None
            raise
        self.state = reset_state(state)
        logger.info("Tracker reset to defaults")

    async def import_legacy(self, payload) -> int:
        settings, events = migrate_legacy_state(payload)
        seen, unique = set(), []
        for event in events:
            # turns table allows one row per day and arch
            if (event.date, event.arch) not in seen:
                seen.add((event.date, event.arch))
                unique.append(event)
        if len(unique) < len(events):
            logger.warning(f"Dropped {len(events) - len(unique)} duplicate legacy turn(s)")
        events = unique
        previous = await self.current()
        await self.turn_store.replace_all(events)
        try:
            await self.settings_store.put(settings)
        except PersistenceError:
            try:
                await self.turn_store.replace_all(previous.events)
            except PersistenceError:
                logger.error("Could not restore the turn history after a failed legacy import")
            # restored rows get new ids; reload on next access
            self.state = None
            raise
        await self.load()
        logger.info(f"Imported {len(events)} legacy turn(s)")
        return len(events)

    # presentation

    async def view(self, history_limit: int = HISTORY_VIEW_LIMIT) -> TrackerView:
        state = await self.current()
        today = self.clock.today()
        counts = {}
        for track in Selection.BOTH.tracks:
            counts[track.value] = {
                "done": state.effective_done(track),
                "total": state.total(track),
                "remaining": state.remaining(track),
            }
        return TrackerView(
            child_name=state.settings.child_name,
            log_together=state.settings.log_together,
            schedule_type=state.settings.schedule_type,
            counts=counts,
            statuses={s.value: get_status(s, state, today) for s in Selection},
            eligibility={s.value: can_log_turn(s, state, today) for s in Selection},
            next_due_dates={s.value: present_due_date(get_next_due_date(s, state, today), today)
                            for s in Selection},
            last_logged=last_logged(state),
            last_dates={t.value: state.last_date(t) for t in Selection.BOTH.tracks},
            history=list(state.events[:history_limit]),
            as_of=today,
        )

    # treatment notes

    def _notes(self):
        if self.note_store is None:
            raise TrackerError("treatment notes are not configured")
        return self.note_store

    async def list_notes(self) -> List[TreatmentNote]:
        return sort_notes(await self._notes().list())

    async def add_note(self, on_date, text: str) -> TreatmentNote:
        note = TreatmentNote(date=on_date, note=text, created_at=self.clock.now())
        note_id = await self._notes().insert(note)
        return replace(note, id=note_id)

    async def edit_note(self, note_id, on_date=None, text: str = None) -> bool:
        for note in await self._notes().list():
            if note.id == note_id:
                edited = TreatmentNote(
                    date=parse_date(on_date) or note.date,
                    note=note.note if text is None else text,
                    created_at=note.created_at,
                    id=note.id,
                )
                return await self._notes().update(edited)
        return False

    async def delete_note(self, note_id):
        await self._notes().delete_by_id(note_id)


def for_user(user, clock=None) -> TrackerService:
    return TrackerService(
        TortoiseSettingsStore(user),
        TortoiseTurnStore(user),
        clock=clock,
        note_store=TortoiseNoteStore(user),
    )
