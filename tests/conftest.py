from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest
from tortoise import Tortoise

from backend.db import MODELS
from backend.tracker import FixedClock, PersistenceError, Settings, TrackerState, TurnEvent

MONDAY = date(2024, 1, 1)


def turn(day, arch="top", note=None, seconds=0, id=None):
    if isinstance(day, str):
        day = date.fromisoformat(day)
    return TurnEvent(date=day, arch=arch, note=note,
                     created_at=datetime.combine(day, datetime.min.time()) + timedelta(hours=8, seconds=seconds),
                     id=id)


def make_state(events=(), install_offset=0, **settings):
    return TrackerState.build(Settings(**settings), events, install_offset)


class MemorySettingsStore:
    def __init__(self, settings=None):
        self.settings = settings or Settings()
        self.fail_put = False
        self.puts = 0

    async def get(self):
        return self.settings

    async def put(self, settings):
        if self.fail_put:
            raise PersistenceError("Failed to save settings")
        self.puts += 1
        self.settings = settings


class MemoryTurnStore:
    def __init__(self, events=()):
        self.rows = {}
        self.next_id = 1
        self.fail = set()
        for event in events:
            self._add(event)

    def _add(self, event):
        event_id = event.id if event.id is not None else self.next_id
        self.next_id = max(self.next_id, event_id) + 1
        self.rows[event_id] = TurnEvent(event.date, event.arch, event.note, event.created_at, event_id)
        return event_id

    def _check(self, action):
        if action in self.fail:
            raise PersistenceError(f"Failed to {action}")

    async def list(self):
        return list(self.rows.values())

    async def insert_many(self, events):
        self._check("insert")
        return [self._add(e) for e in events]

    async def delete_by_id(self, event_id):
        self._check("delete")
        self.rows.pop(event_id, None)

    async def update(self, event):
        self._check("update")
        if event.id in self.rows:
            self.rows[event.id] = event

    async def delete_all(self):
        self._check("delete")
        self.rows.clear()

    async def replace_all(self, events):
        self._check("insert")
        self.rows.clear()
        return [self._add(e) for e in events]


class MemoryNoteStore:
    def __init__(self):
        self.rows = {}

    async def list(self):
        return list(self.rows.values())

    async def insert(self, note):
        note_id = len(self.rows) + 1
        self.rows[note_id] = replace(note, id=note_id)
        return note_id

    async def update(self, note):
        if note.id not in self.rows:
            return False
        self.rows[note.id] = note
        return True

    async def delete_by_id(self, note_id):
        self.rows.pop(note_id, None)


@pytest.fixture
def clock():
    return FixedClock(MONDAY, datetime(2024, 1, 1, 8, 0))


@pytest.fixture
async def db():
    await Tortoise.init(db_url="sqlite://:memory:", modules=MODELS)
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()
