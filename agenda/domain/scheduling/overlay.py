"""Exception overlay: carve one-off blocks and days off out of a working window"""

from collections.abc import Iterable
from typing import Optional

from pydantic import BaseModel

from ...models import ExceptionType
from .records import ExceptionRecord, Interval


class OverlayResult(BaseModel):
    day_off: bool = False
    day_off_reason: Optional[str] = None
    blocked: list[Interval] = []


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Union of intervals, sorted by start. Touching intervals are joined."""
    merged: list[Interval] = []
    for current in sorted(intervals, key=lambda i: (i.start, i.end)):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            if current.end > last.end:
                merged[-1] = Interval(start=last.start, end=current.end)
        else:
            merged.append(current)
    return merged


def apply_exceptions(window: Interval, exceptions: Iterable[ExceptionRecord]) -> OverlayResult:
    """
    Apply exceptions to ``window``.

    A DAY_OFF covering the whole window removes the day. Any other exception
    that intersects the window (a BLOCK, or a DAY_OFF covering only part of
    the window) is clipped to the window and merged into the blocked list.
    """
    blocked = []
    for exc in exceptions:
        if not exc.interval.overlaps(window):
            continue
        if exc.type == ExceptionType.DAY_OFF and exc.interval.contains(window):
            return OverlayResult(day_off=True, day_off_reason=exc.reason)
        blocked.append(Interval(start=max(exc.start, window.start), end=min(exc.end, window.end)))

    return OverlayResult(blocked=merge_intervals(blocked))
