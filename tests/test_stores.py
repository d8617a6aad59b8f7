"""Tortoise-backed stores on an in-memory SQLite database."""
from datetime import date, datetime

import pytest

from backend.models import Reminder, User
from backend.service import for_user
from backend.stores import TortoiseNoteStore, TortoiseSettingsStore, TortoiseTurnStore
from backend.tracker import DuplicateTurnError, PersistenceError, Settings, Status, TreatmentNote, TurnEvent
from bot.reminders import TURN_DUE, reminder_date, schedule_due_reminder


async def make_user(telegram_id=1):
    return await User.create(telegram_id=telegram_id, name="Parent")


class TestSettingsStore:
    async def test_defaults_until_saved(self, db) -> None:
        store = TortoiseSettingsStore(await make_user())
        assert await store.get() == Settings()

    async def test_put_then_get(self, db) -> None:
        store = TortoiseSettingsStore(await make_user())
        settings = Settings(top_total=20, install_date="2024-01-01",
                            schedule_type="twice_per_week", child_name="Ada", log_together=False)
        await store.put(settings)
        await store.put(settings.with_changes(interval_days=3))
        assert await store.get() == settings.with_changes(interval_days=3)


class TestTurnStore:
    async def test_insert_list_delete(self, db) -> None:
        store = TortoiseTurnStore(await make_user())
        ids = await store.insert_many([
            TurnEvent("2024-01-01", "top", created_at=datetime(2024, 1, 1, 8)),
            TurnEvent("2024-01-03", "bottom", note="ok", created_at=datetime(2024, 1, 3, 8)),
        ])
        assert len(ids) == 2
        turns = await store.list()
        assert [(t.date, t.arch.value, t.note) for t in turns] == [
            (date(2024, 1, 3), "bottom", "ok"),
            (date(2024, 1, 1), "top", None),
        ]
        await store.delete_by_id(ids[0])
        await store.delete_by_id(12345)
        assert [t.id for t in await store.list()] == [ids[1]]

    async def test_other_families_turns_are_invisible(self, db) -> None:
        mine = TortoiseTurnStore(await make_user(1))
        theirs = TortoiseTurnStore(await make_user(2))
        [their_id] = await theirs.insert_many([TurnEvent("2024-01-01", "top")])
        assert await mine.list() == []
        await mine.delete_by_id(their_id)
        assert len(await theirs.list()) == 1

    async def test_duplicate_day_and_arch(self, db) -> None:
        store = TortoiseTurnStore(await make_user())
        await store.insert_many([TurnEvent("2024-01-01", "top")])
        with pytest.raises(DuplicateTurnError):
            await store.insert_many([TurnEvent("2024-01-02", "top"), TurnEvent("2024-01-01", "top")])
        # the whole batch is rolled back
        assert len(await store.list()) == 1

    async def test_replace_all_is_atomic(self, db) -> None:
        store = TortoiseTurnStore(await make_user())
        [old_id] = await store.insert_many([TurnEvent("2024-01-01", "top")])
        with pytest.raises(DuplicateTurnError):
            await store.replace_all([TurnEvent("2023-12-01", "top"), TurnEvent("2023-12-01", "top")])
        assert [t.id for t in await store.list()] == [old_id]

        await store.replace_all([TurnEvent("2023-12-01", "top"), TurnEvent("2023-12-03", "bottom")])
        assert [(t.date, t.arch.value) for t in await store.list()] == [
            (date(2023, 12, 3), "bottom"),
            (date(2023, 12, 1), "top"),
        ]

    async def test_update_and_delete_all(self, db) -> None:
        store = TortoiseTurnStore(await make_user())
        [turn_id] = await store.insert_many([TurnEvent("2024-01-01", "top")])
        await store.update(TurnEvent("2024-01-05", "top", id=turn_id))
        assert (await store.list())[0].date == date(2024, 1, 5)
        await store.delete_all()
        assert await store.list() == []


class TestNoteStore:
    async def test_round_trip(self, db) -> None:
        store = TortoiseNoteStore(await make_user())
        note_id = await store.insert(TreatmentNote("2024-01-01", "Fitted"))
        assert await store.update(TreatmentNote("2024-01-02", "Fitted today", id=note_id))
        notes = await store.list()
        assert [(n.date, n.note) for n in notes] == [(date(2024, 1, 2), "Fitted today")]
        await store.delete_by_id(note_id)
        assert await store.list() == []


class TestServiceOnDatabase:
    async def test_log_undo_and_reminder(self, db, clock) -> None:
        user = await make_user()
        service = for_user(user, clock=clock)
        await service.update_settings(install_date="2024-01-01")
        result = await service.log_turn("both")
        assert len(result.events) == 2

        view = await service.view()
        reminder = await schedule_due_reminder(user, view)
        assert reminder.scheduled_for.date() == date(2024, 1, 3)
        assert await Reminder.filter(user=user, type=TURN_DUE, sent=False).count() == 1

        # a fresh service sees the persisted turns
        again = for_user(user, clock=clock)
        assert len((await again.current()).events) == 2
        assert await again.undo_last()
        assert len(await TortoiseTurnStore(user).list()) == 1

    async def test_duplicate_surfaces_as_persistence_error(self, db, clock) -> None:
        user = await make_user()
        service = for_user(user, clock=clock)
        await service.update_settings(schedule_type="twice_per_week")
        await service.log_turn("top")
        with pytest.raises(PersistenceError):
            await service.log_turn("top")
        assert len((await service.current()).events) == 1

    async def test_legacy_import_without_timestamps(self, db, clock) -> None:
        user = await make_user()
        service = for_user(user, clock=clock)
        await service.log_turn("top")
        imported = await service.import_legacy(
            {"history": [{"date": "2023-12-29", "topDoneAfter": 2, "bottomDoneAfter": 1}]})
        assert imported == 1
        turns = await TortoiseTurnStore(user).list()
        assert [(t.date, t.arch.value) for t in turns] == [(date(2023, 12, 29), "top")]
        assert turns[0].created_at != datetime.min
        assert [e.date for e in (await service.current()).events] == [date(2023, 12, 29)]

    async def test_weekly_reminder_moves_past_a_fully_logged_day(self, db, clock) -> None:
        user = await make_user()
        service = for_user(user, clock=clock)
        await service.update_settings(schedule_type="twice_per_week")
        await service.log_turn("both")

        view = await service.view()
        assert view.statuses["both"] is Status.READY
        assert view.next_due_dates["both"] == date(2024, 1, 1)
        reminder = await schedule_due_reminder(user, view)
        assert reminder.scheduled_for.date() == date(2024, 1, 2)
        assert reminder_date(view) == date(2024, 1, 2)

        # the store keeps one turn per day and arch
        with pytest.raises(DuplicateTurnError):
            await service.log_turn("both")

    async def test_weekly_reminder_stays_when_one_arch_is_open(self, db, clock) -> None:
        user = await make_user()
        service = for_user(user, clock=clock)
        await service.update_settings(schedule_type="twice_per_week", log_together=False)
        await service.log_turn("top")
        reminder = await schedule_due_reminder(user, await service.view())
        assert reminder.scheduled_for.date() == date(2024, 1, 1)
        result = await service.log_turn("both")
        assert [e.arch.value for e in result.events] == ["bottom"]
