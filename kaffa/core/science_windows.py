"""
Science windows: cortisol window after waking and sleep-impact window
before bed.

  cortisol window = [wake_up, wake_up + 90 min]
    Cortisol peaks naturally after waking; caffeine on top brings little.
  sleep window    = [bed - 6 h, bed]
    Caffeine taken here is still largely active at lights-out.

Both are advisory only. Nothing here blocks logging a drink.

Sources:
  - Debono et al., 2009 (cortisol awakening response)
  - Drake et al., 2013 (caffeine 6 h before bedtime)
"""

from datetime import date, datetime, time, timedelta
from typing import Mapping, Optional, Union

from kaffa.config import (
    ARC_HORIZON_HOURS,
    CORTISOL_WINDOW_MINUTES,
    SLEEP_WINDOW_HOURS,
)
from kaffa.core.caffeine_engine import elimination_horizon
from kaffa.core.entries import CoffeeEntry, to_local
from kaffa.core.tables import MilkModifier


# ── Windows ──────────────────────────────────────────────────────────

def cortisol_window(
    wake_up_time: datetime,
    minutes: float = CORTISOL_WINDOW_MINUTES,
) -> tuple[datetime, datetime]:
    wake_up_time = to_local(wake_up_time)
    return wake_up_time, wake_up_time + timedelta(minutes=minutes)


def sleep_window(
    bed_time: datetime,
    hours: float = SLEEP_WINDOW_HOURS,
) -> tuple[datetime, datetime]:
    bed_time = to_local(bed_time)
    return bed_time - timedelta(hours=hours), bed_time


def is_in_cortisol_window(
    wake_up_time: datetime,
    at_time: datetime,
    minutes: float = CORTISOL_WINDOW_MINUTES,
) -> bool:
    start, end = cortisol_window(wake_up_time, minutes)
    return start <= to_local(at_time) <= end


def is_in_sleep_window(
    bed_time: datetime,
    at_time: datetime,
    hours: float = SLEEP_WINDOW_HOURS,
) -> bool:
    start, end = sleep_window(bed_time, hours)
    return start <= to_local(at_time) <= end


def entry_conflicts_with_sleep(
    entry: CoffeeEntry,
    milk_table: Optional[Mapping[str, MilkModifier]],
    bed_time: datetime,
    window_hours: float = SLEEP_WINDOW_HOURS,
    horizon_hours: float = ARC_HORIZON_HOURS,
) -> bool:
    """
    True if the entry's decay arc (consumption to elimination horizon)
    overlaps the sleep window. Presentation metadata only.
    The horizon does not depend on milk, so milk_table is not consulted.
    """
    window_start, bed_time = sleep_window(bed_time, window_hours)
    return (
        entry.consumed_at <= bed_time
        and elimination_horizon(entry, horizon_hours) >= window_start
    )


# ── Schedule settings ────────────────────────────────────────────────

def parse_clock_time(value: str) -> time:
    """'HH:MM' -> time. Raises ValueError on anything else."""
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError):
        raise ValueError(f"Expected HH:MM, got {value!r}") from None


def resolve_schedule(
    day: Union[date, datetime],
    wake_up: Union[str, time],
    bed: Union[str, time],
) -> tuple[datetime, datetime]:
    """
    Anchor the stored wake-up and bed times on a calendar day.
    A bed time at or before the wake-up time belongs to the next day
    (e.g. wake 07:00, bed 00:30). Given a datetime between midnight and
    such a bed time, the schedule of the previous day is returned, since
    that night has not ended yet.
    """
    wake_t = parse_clock_time(wake_up) if isinstance(wake_up, str) else wake_up
    bed_t = parse_clock_time(bed) if isinstance(bed, str) else bed

    if isinstance(day, datetime):
        moment = to_local(day)
        day = moment.date()
        if bed_t <= wake_t and moment.time() <= bed_t:
            day -= timedelta(days=1)

    wake_dt = datetime.combine(day, wake_t)
    bed_dt = datetime.combine(day, bed_t)
    if bed_dt <= wake_dt:
        bed_dt += timedelta(days=1)
    return wake_dt, bed_dt


def window_status(
    at_time: datetime,
    wake_up_time: datetime,
    bed_time: datetime,
) -> dict:
    at_time = to_local(at_time)
    wake_up_time, bed_time = to_local(wake_up_time), to_local(bed_time)
    c_start, c_end = cortisol_window(wake_up_time)
    s_start, s_end = sleep_window(bed_time)
    return {
        "timestamp": at_time.isoformat(),
        "wake_up_time": wake_up_time.isoformat(),
        "bed_time": bed_time.isoformat(),
        "cortisol_window": {"start": c_start.isoformat(), "end": c_end.isoformat()},
        "sleep_window": {"start": s_start.isoformat(), "end": s_end.isoformat()},
        "in_cortisol_window": is_in_cortisol_window(wake_up_time, at_time),
        "in_sleep_window": is_in_sleep_window(bed_time, at_time),
    }


# ── Advisories ───────────────────────────────────────────────────────

def intake_advisories(
    at_time: datetime,
    wake_up_time: Optional[datetime],
    bed_time: Optional[datetime],
) -> list[dict]:
    """
    Advisories for a drink taken at at_time.
    Returns list of dicts: {severity, type, title, message}.
    """
    at_time = to_local(at_time)
    advisories = []

    if wake_up_time is not None and is_in_cortisol_window(wake_up_time, at_time):
        _, end = cortisol_window(wake_up_time)
        wait_min = int((end - at_time).total_seconds() // 60)
        advisories.append({
            "severity": "info",
            "type": "cortisol_window",
            "title": "Cortisol window",
            "message": (
                "Cortisol is naturally high right after waking, so this cup adds little. "
                f"Waiting {wait_min} more minutes gets more out of it."
            ),
        })

    if bed_time is not None and is_in_sleep_window(bed_time, at_time):
        hours_left = (to_local(bed_time) - at_time).total_seconds() / 3600.0
        advisories.append({
            "severity": "warning",
            "type": "sleep_window",
            "title": "Close to bedtime",
            "message": (
                f"Bedtime is in {hours_left:.1f}h. "
                "Most of this caffeine will still be active when you go to sleep."
            ),
        })

    return advisories
