"""Tortoise-backed collaborators for :class:`backend.service.TrackerService`.

Every store is bound to one :class:`User`; all reads and writes are
filtered by that owner, so ids from another family are simply not found.
"""
import logging
from contextlib import contextmanager
from datetime import datetime

from tortoise.exceptions import BaseORMException, IntegrityError
from tortoise.transactions import in_transaction

from backend.models.settings import TrackerSettings
from backend.models.treatment_note import TreatmentNote as NoteRow
from backend.models.turn import Turn
from backend.models.user import User
from backend.tracker import (
    DuplicateTurnError,
    PersistenceError,
    Settings,
    TreatmentNote,
    TurnEvent,
)

logger = logging.getLogger(__name__)


@contextmanager
def orm_errors(action: str):
    try:
        yield
    except IntegrityError as e:
        logger.error(f"Integrity error while trying to {action}: {e}")
        raise DuplicateTurnError("A turn for this date and arch already exists") from e
    except BaseORMException as e:
        logger.error(f"Database error while trying to {action}: {e}")
        raise PersistenceError(f"Failed to {action}") from e


def naive(value: datetime) -> datetime:
    if value is None:
        return datetime.min
    return value.replace(tzinfo=None) if value.tzinfo else value


def stamped(values: dict, created_at: datetime) -> dict:
    # unknown creation time: leave the column to auto_now_add
    if created_at not in (None, datetime.min):
        values["created_at"] = created_at
    return values


class TortoiseSettingsStore:
    def __init__(self, user: User):
        self.user = user

    async def get(self) -> Settings:
        with orm_errors("fetch settings"):
            row = await TrackerSettings.get_or_none(user=self.user)
        if row is None:
            return Settings()
        return Settings(
            top_total=row.top_total,
            bottom_total=row.bottom_total,
            install_date=row.install_date,
            schedule_type=row.schedule_type,
            interval_days=row.interval_days,
            child_name=row.child_name,
            log_together=row.log_together,
        )

    async def put(self, settings: Settings):
        with orm_errors("save settings"):
            await TrackerSettings.update_or_create(
                user=self.user,
                defaults=dict(
                    top_total=settings.top_total,
                    bottom_total=settings.bottom_total,
                    install_date=settings.install_date,
                    schedule_type=settings.schedule_type.value,
                    interval_days=settings.interval_days,
                    child_name=settings.child_name,
                    log_together=settings.log_together,
                ),
            )


def _to_event(row: Turn) -> TurnEvent:
    return TurnEvent(date=row.date, arch=row.arch, note=row.note,
                     created_at=naive(row.created_at), id=row.id)


class TortoiseTurnStore:
    def __init__(self, user: User):
        self.user = user

    async def list(self):
        with orm_errors("fetch turns"):
            rows = await Turn.filter(user=self.user).order_by("-date", "-created_at")
        return [_to_event(row) for row in rows]

    async def _create(self, events, conn):
        ids = []
        for event in events:
            row = await Turn.create(
                using_db=conn,
                **stamped(dict(user=self.user, date=event.date, arch=event.arch.value,
                               note=event.note), event.created_at),
            )
            ids.append(row.id)
        return ids

    async def insert_many(self, events):
        with orm_errors("create turns"):
            async with in_transaction() as conn:
                return await self._create(events, conn)

    async def replace_all(self, events):
        """Swap the whole history in one transaction; on failure the old rows stay."""
        with orm_errors("replace turns"):
            async with in_transaction() as conn:
                await Turn.filter(user=self.user).using_db(conn).delete()
                return await self._create(events, conn)

    async def delete_by_id(self, event_id):
        # missing (or foreign) ids delete nothing, which is fine
        with orm_errors("delete turn"):
            await Turn.filter(id=event_id, user=self.user).delete()

    async def update(self, event: TurnEvent):
        with orm_errors("update turn"):
            await Turn.filter(id=event.id, user=self.user).update(
                date=event.date, arch=event.arch.value, note=event.note)

    async def delete_all(self):
        with orm_errors("delete turns"):
            await Turn.filter(user=self.user).delete()


class TortoiseNoteStore:
    def __init__(self, user: User):
        self.user = user

    async def list(self):
        with orm_errors("fetch treatment notes"):
            rows = await NoteRow.filter(user=self.user).order_by("-date", "-created_at")
        return [TreatmentNote(date=r.date, note=r.note, created_at=naive(r.created_at), id=r.id)
                for r in rows]

    async def insert(self, note: TreatmentNote):
        with orm_errors("create treatment note"):
            row = await NoteRow.create(**stamped(
                dict(user=self.user, date=note.date, note=note.note), note.created_at))
        return row.id

    async def update(self, note: TreatmentNote) -> bool:
        with orm_errors("update treatment note"):
            updated = await NoteRow.filter(id=note.id, user=self.user).update(
                date=note.date, note=note.note)
        return bool(updated)

    async def delete_by_id(self, note_id):
        with orm_errors("delete treatment note"):
            await NoteRow.filter(id=note_id, user=self.user).delete()

    async def delete_all(self):
        with orm_errors("delete treatment notes"):
            await NoteRow.filter(user=self.user).delete()
