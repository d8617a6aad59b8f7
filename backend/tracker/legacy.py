"""One-time import of the old single-row tracker state.

The old tracker kept counters on the state row and a newest-first history
list whose entries only carried snapshot counters (``topDoneAfter`` /
``bottomDoneAfter``), not the arch that was turned. The arch is inferred
by comparing each entry with the next-older one. This is lossy: when both
counters moved in one entry there is no way to tell a combined "log both"
from two separate same-day turns, and it is always imported as two
same-date turns, one per arch. Counter jumps of more than one (manual
edits in the old settings form) still yield a single turn.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Mapping, Optional, Tuple

from .errors import ValidationError
from .records import Settings, TurnEvent, parse_date
from .reconcile import Aggregates, reconcile
from .tracks import Track

logger = logging.getLogger(__name__)

# the old tracker started both arches at 1 (the orthodontist's install turn)
LEGACY_BASELINE = 1

_SNAPSHOT_KEYS = {Track.TOP: "topDoneAfter", Track.BOTTOM: "bottomDoneAfter"}

_SETTINGS_KEYS = {
    "top_total": ("topTotal", "top_total"),
    "bottom_total": ("bottomTotal", "bottom_total"),
    "install_date": ("installDate", "install_date"),
    "interval_days": ("intervalDays", "interval_days"),
    "child_name": ("childName", "child_name"),
    "log_together": ("logTogether", "log_together"),
    "schedule_type": ("scheduleType", "schedule_type"),
}


def _parse_timestamp(value) -> datetime:
    if not value:
        return datetime.min
    try:
        stamp = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return datetime.min
    return stamp.replace(tzinfo=None) if stamp.tzinfo else stamp


def _snapshot(entry: Mapping, track: Track) -> Optional[int]:
    value = entry.get(_SNAPSHOT_KEYS[track])
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def infer_turns(entries: Iterable[Mapping], baseline_top: int = LEGACY_BASELINE,
                baseline_bottom: int = LEGACY_BASELINE) -> List[TurnEvent]:
    """Turn a newest-first snapshot history into per-arch turn events."""
    entries = [e for e in entries if isinstance(e, Mapping)]
    baseline = {Track.TOP: baseline_top, Track.BOTTOM: baseline_bottom}
    turns = []
    for index, entry in enumerate(entries):
        try:
            day = parse_date(entry.get("date"))
        except ValidationError:
            day = None
        if day is None:
            logger.warning(f"Skipping legacy history entry #{index} without a usable date")
            continue
        older = entries[index + 1] if index + 1 < len(entries) else None
        created_at = _parse_timestamp(entry.get("timestamp"))
        for track in (Track.TOP, Track.BOTTOM):
            after = _snapshot(entry, track)
            before = _snapshot(older, track) if older is not None else baseline[track]
            if after is None or before is None or after <= before:
                continue
            turns.append(TurnEvent(date=day, arch=track, note=entry.get("note"), created_at=created_at))
    return turns


def reconcile_legacy(entries: Iterable[Mapping], baseline_top: int = LEGACY_BASELINE,
                     baseline_bottom: int = LEGACY_BASELINE) -> Aggregates:
    return reconcile(infer_turns(entries, baseline_top, baseline_bottom))


def _pick(payload: Mapping, names):
    for name in names:
        if name in payload and payload[name] is not None:
            return payload[name]
    return None


def migrate_legacy_state(payload: Mapping) -> Tuple[Settings, List[TurnEvent]]:
    if not isinstance(payload, Mapping):
        raise ValidationError("legacy state must be a JSON object")
    values = {}
    for field_name, names in _SETTINGS_KEYS.items():
        value = _pick(payload, names)
        if value is not None:
            values[field_name] = value
    settings = Settings(**values)

    history = payload.get("history") or []
    if not isinstance(history, list):
        logger.warning("Legacy state has a non-list history, importing settings only")
        history = []
    turns = infer_turns(history)
    logger.info(f"Migrated legacy state: {len(history)} history entries -> {len(turns)} turns")
    return settings, turns
