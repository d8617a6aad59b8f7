from .clock import FixedClock, SystemClock
from .due_dates import get_next_due_date, present_due_date
from .eligibility import Eligibility, Reason, can_log_turn
from .errors import DuplicateTurnError, PersistenceError, TrackerError, ValidationError
from .history import (
    apply_log_together_rule,
    edit_date,
    insert_events,
    remove_at,
    remove_by_id,
    remove_newest,
    reset_state,
)
from .notes import TreatmentNote
from .reconcile import Aggregates, reconcile, sort_events
from .records import ScheduleType, Settings, TurnEvent, parse_date
from .state import TrackerState
from .status import Status, get_status
from .tracks import Selection, Track, parse_selection, parse_track
