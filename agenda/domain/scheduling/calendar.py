"""Working-calendar resolution: weekly rules and recurring breaks for one date"""

import logging
from datetime import date, datetime
from typing import Optional

from .records import Interval, ProfessionalCalendar
from .timeutils import day_of_week

logger = logging.getLogger(__name__)


def resolve_working_window(calendar: ProfessionalCalendar, day: date) -> Optional[Interval]:
    """
    Return the base working window for ``day`` or None when the professional
    does not work that day.

    Duplicate active rules for the same weekday resolve to the lowest id.
    A rule whose start is not before its end is treated as not working.
    """
    dow = day_of_week(day)
    matches = [r for r in calendar.weekly_rules if r.is_active and r.day_of_week == dow]
    if not matches:
        return None

    matches.sort(key=lambda r: (r.id is None, r.id or 0))
    rule = matches[0]
    if len(matches) > 1:
        logger.warning(
            f"⚠️ Data integrity: professional {calendar.professional_id} has {len(matches)} active "
            f"rules for day {dow} (ids={[r.id for r in matches]}), using id={rule.id}"
        )

    if rule.start_time >= rule.end_time:
        logger.warning(
            f"⚠️ Data integrity: weekly rule {rule.id} for professional {calendar.professional_id} "
            f"has start {rule.start_time} not before end {rule.end_time}, treating day {dow} as off"
        )
        return None

    return Interval(
        start=datetime.combine(day, rule.start_time),
        end=datetime.combine(day, rule.end_time),
    )


def breaks_for_day(calendar: ProfessionalCalendar, day: date) -> list[Interval]:
    dow = day_of_week(day)
    return [
        Interval(start=datetime.combine(day, b.start_time), end=datetime.combine(day, b.end_time))
        for b in calendar.breaks
        if b.day_of_week is None or b.day_of_week == dow
    ]
