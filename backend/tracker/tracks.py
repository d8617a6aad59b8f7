from enum import Enum
from typing import Callable, Tuple, TypeVar

from .errors import ValidationError

T = TypeVar("T")


class Track(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"


class Selection(str, Enum):
    """What a request is about: one arch, or both of them."""

    TOP = "top"
    BOTTOM = "bottom"
    BOTH = "both"

    @property
    def tracks(self) -> Tuple[Track, ...]:
        if self is Selection.BOTH:
            return (Track.TOP, Track.BOTTOM)
        return (Track(self.value),)

    @property
    def track(self) -> Track:
        if self is Selection.BOTH:
            raise ValueError("'both' is not a single track")
        return Track(self.value)


def parse_track(value) -> Track:
    if isinstance(value, Track):
        return value
    try:
        return Track(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"arch must be 'top' or 'bottom', got {value!r}") from None


def parse_selection(value) -> Selection:
    if isinstance(value, Selection):
        return value
    if isinstance(value, Track):
        return Selection(value.value)
    try:
        return Selection(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown track {value!r}") from None


def for_both(fn: Callable[[Track], T]) -> Tuple[T, T]:
    """Apply a per-track function to top and bottom, in that order."""
    return fn(Track.TOP), fn(Track.BOTTOM)
