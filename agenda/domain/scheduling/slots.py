"""Slot generation over a resolved working window"""

from collections.abc import Iterator, Sequence
from datetime import datetime, timedelta
from typing import Optional

from .overlay import merge_intervals
from .records import Interval


class SlotCandidates:
    """
    Ascending candidate start times for a service of ``duration_minutes``.

    Candidates are stepped by ``granularity_minutes`` from the window start and
    must fit entirely inside the window without touching a blocked interval or a
    break. Starts before ``now`` are left out. Every iteration recomputes the
    sequence from the inputs, so the object can be iterated any number of times.
    """

    def __init__(
        self,
        window: Interval,
        blocked: Sequence[Interval],
        breaks: Sequence[Interval],
        duration_minutes: int,
        granularity_minutes: int,
        now: Optional[datetime] = None,
    ):
        if duration_minutes <= 0:
            raise ValueError("Service duration must be positive")
        if granularity_minutes <= 0:
            raise ValueError("Slot granularity must be positive")
        self.window = window
        self.busy = tuple(merge_intervals([*blocked, *breaks]))
        self.duration = timedelta(minutes=duration_minutes)
        self.step = timedelta(minutes=granularity_minutes)
        self.now = now

    def __iter__(self) -> Iterator[datetime]:
        t = self.window.start
        while t + self.duration <= self.window.end:
            if self.now is None or t >= self.now:
                candidate = Interval(start=t, end=t + self.duration)
                if not any(candidate.overlaps(b) for b in self.busy):
                    yield t
            t += self.step
