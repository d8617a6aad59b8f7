class TrackerError(Exception):
    pass


class ValidationError(TrackerError):
    """Input rejected before any state change."""


class PersistenceError(TrackerError):
    """A store call failed; in-memory state has been rolled back."""


class DuplicateTurnError(PersistenceError):
    pass
