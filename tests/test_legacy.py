"""Import of the old snapshot-counter history."""
from datetime import date, datetime

import pytest

from backend.tracker import ScheduleType, Track, ValidationError
from backend.tracker.legacy import infer_turns, migrate_legacy_state, reconcile_legacy

# newest first, as the old tracker stored it; both arches started at 1
HISTORY = [
    {"timestamp": "2024-01-07T08:00:00.000Z", "date": "2024-01-07", "note": None,
     "topDoneAfter": 4, "bottomDoneAfter": 3},
    {"timestamp": "2024-01-05T08:00:00.000Z", "date": "2024-01-05", "note": "fussy",
     "topDoneAfter": 3, "bottomDoneAfter": 3},
    {"timestamp": "2024-01-03T08:00:00.000Z", "date": "2024-01-03", "note": None,
     "topDoneAfter": 2, "bottomDoneAfter": 2},
]


class TestInferTurns:
    def test_advanced_counters_become_turns(self) -> None:
        turns = infer_turns(HISTORY)
        assert len(turns) == 5
        by_date = {}
        for t in turns:
            by_date.setdefault(t.date, set()).add(t.arch)
        assert by_date[date(2024, 1, 7)] == {Track.TOP}
        assert by_date[date(2024, 1, 5)] == {Track.TOP, Track.BOTTOM}
        assert by_date[date(2024, 1, 3)] == {Track.TOP, Track.BOTTOM}

    def test_both_advancing_becomes_two_same_date_turns(self) -> None:
        entry = {"date": "2024-01-03", "topDoneAfter": 2, "bottomDoneAfter": 2}
        turns = infer_turns([entry])
        assert sorted(t.arch.value for t in turns) == ["bottom", "top"]
        assert {t.date for t in turns} == {date(2024, 1, 3)}

    def test_note_and_timestamp_are_kept(self) -> None:
        turns = [t for t in infer_turns(HISTORY) if t.date == date(2024, 1, 5)]
        assert all(t.note == "fussy" for t in turns)
        assert turns[0].created_at == datetime(2024, 1, 5, 8, 0)

    def test_entries_without_progress_or_date_are_skipped(self) -> None:
        entries = [
            {"date": "2024-01-09", "topDoneAfter": 2, "bottomDoneAfter": 1},
            {"date": None, "topDoneAfter": 2, "bottomDoneAfter": 1},
            {"date": "2024-01-05", "topDoneAfter": 2, "bottomDoneAfter": 1},
        ]
        turns = infer_turns(entries)
        assert [(t.date, t.arch) for t in turns] == [(date(2024, 1, 5), Track.TOP)]

    def test_baseline(self) -> None:
        entry = {"date": "2024-01-03", "topDoneAfter": 1, "bottomDoneAfter": 0}
        assert infer_turns([entry]) == []
        assert [t.arch for t in infer_turns([entry], baseline_top=0)] == [Track.TOP]

    def test_reconcile_legacy(self) -> None:
        aggregates = reconcile_legacy(HISTORY)
        assert aggregates.done_count == {Track.TOP: 3, Track.BOTTOM: 2}
        assert aggregates.last_date[Track.BOTTOM] == date(2024, 1, 5)
        assert aggregates.last_date_combined == date(2024, 1, 7)


class TestMigrateLegacyState:
    def test_browser_storage_payload(self) -> None:
        payload = {
            "topTotal": 20, "bottomTotal": 18, "topDone": 4, "bottomDone": 3,
            "intervalDays": 3, "installDate": "2023-12-30", "childName": "Mia",
            "logTogether": False, "history": HISTORY,
        }
        settings, turns = migrate_legacy_state(payload)
        assert (settings.top_total, settings.bottom_total) == (20, 18)
        assert settings.interval_days == 3
        assert settings.install_date == date(2023, 12, 30)
        assert settings.child_name == "Mia"
        assert settings.log_together is False
        assert settings.schedule_type is ScheduleType.EVERY_N_DAYS
        assert len(turns) == 5

    def test_tracker_data_row(self) -> None:
        row = {"top_total": 27, "bottom_total": 23, "interval_days": 2,
               "install_date": None, "child_name": "Child", "log_together": True,
               "history": []}
        settings, turns = migrate_legacy_state(row)
        assert settings.top_total == 27
        assert turns == []

    def test_not_an_object(self) -> None:
        with pytest.raises(ValidationError):
            migrate_legacy_state([1, 2, 3])

    def test_bad_settings_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            migrate_legacy_state({"intervalDays": 0})
