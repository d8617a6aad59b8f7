from .admin import Admin
from .reminder import Reminder
from .settings import TrackerSettings
from .treatment_note import TreatmentNote
from .turn import Turn
from .user import User

__all__ = ["Admin", "Reminder", "TrackerSettings", "TreatmentNote", "Turn", "User"]
