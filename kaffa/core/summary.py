"""
Composite views over a day's entries: active vs. consumed totals,
per-entry derived numbers and the home-screen widget snapshot.
"""

from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from kaffa.config import CURVE_INTERVAL_MINUTES
from kaffa.core.caffeine_engine import (
    compute_level,
    elimination_horizon,
    entries_for_day,
    generate_level_curve,
    half_life_time,
    peak_time,
    sort_newest_first,
    total_active_caffeine,
    total_consumed_caffeine,
)
from kaffa.core.entries import CoffeeEntry, date_key
from kaffa.core.science_windows import entry_conflicts_with_sleep, window_status
from kaffa.core.tables import MilkModifier


def describe_entry(
    entry: CoffeeEntry,
    milk_table: Mapping[str, MilkModifier],
    at_time: datetime,
    bed_time: Optional[datetime] = None,
) -> dict:
    """Entry plus its derived, non-persisted numbers."""
    return {
        "id": entry.id,
        "drink_type": entry.drink_type,
        "milk_type": entry.milk_type,
        "volume_ml": entry.volume_ml,
        "caffeine_mg": entry.caffeine_mg,
        "effective_caffeine_mg": round(entry.effective_caffeine_mg, 2),
        "consumed_at": entry.consumed_at.isoformat(),
        "date_key": entry.date_key,
        "level_mg": round(compute_level(entry, milk_table, at_time), 2),
        "peak_time": peak_time(entry, milk_table).isoformat(),
        "half_life_time": half_life_time(entry).isoformat(),
        "elimination_horizon": elimination_horizon(entry).isoformat(),
        "sleep_conflict": (
            entry_conflicts_with_sleep(entry, milk_table, bed_time)
            if bed_time is not None else False
        ),
    }


def _day_peak(
    day_entries: list[CoffeeEntry],
    milk_table: Mapping[str, MilkModifier],
    day_key: str,
    interval_minutes: int,
) -> tuple[float, Optional[str]]:
    """
    Highest total level of the day. The curve grid is checked together with
    every entry's own peak time, which rarely falls on a grid point.
    """
    if not day_entries:
        return 0.0, None

    day_start = datetime.strptime(day_key, "%Y-%m-%d")
    day_end = day_start + timedelta(days=1) - timedelta(minutes=1)
    candidates = [
        (p["level_mg"], p["timestamp"])
        for p in generate_level_curve(day_entries, milk_table, day_start, day_end, interval_minutes)
    ]
    for entry in day_entries:
        moment = peak_time(entry, milk_table)
        if day_start <= moment <= day_end:
            level = total_active_caffeine(day_entries, milk_table, moment)
            candidates.append((round(level, 2), moment.isoformat()))

    level, moment = max(candidates, key=lambda c: c[0])
    if level <= 0:
        return 0.0, None
    return level, moment


def daily_summary(
    entries: Iterable[CoffeeEntry],
    milk_table: Mapping[str, MilkModifier],
    at_time: datetime,
    day_key: Optional[str] = None,
    wake_up_time: Optional[datetime] = None,
    bed_time: Optional[datetime] = None,
    interval_minutes: int = CURVE_INTERVAL_MINUTES,
) -> dict:
    """
    Active vs. consumed caffeine for one day, with per-entry details.
    The two totals answer different questions and are reported separately.
    """
    day_key = day_key or date_key(at_time)
    day_entries = sort_newest_first(entries_for_day(entries, day_key))

    active = total_active_caffeine(day_entries, milk_table, at_time)
    consumed = total_consumed_caffeine(day_entries)

    peak_level, peak_at = _day_peak(day_entries, milk_table, day_key, interval_minutes)

    result = {
        "date": day_key,
        "timestamp": at_time.isoformat(),
        "active_mg": round(active, 1),
        "consumed_mg": round(consumed, 1),
        "entry_count": len(day_entries),
        "day_peak_mg": round(peak_level, 1),
        "day_peak_at": peak_at,
        "entries": [describe_entry(e, milk_table, at_time, bed_time) for e in day_entries],
    }
    if wake_up_time is not None and bed_time is not None:
        result["windows"] = window_status(at_time, wake_up_time, bed_time)
    return result


def widget_snapshot(
    entries: Iterable[CoffeeEntry],
    milk_table: Mapping[str, MilkModifier],
    now: datetime,
    wake_up_time: datetime,
    bed_time: datetime,
) -> dict:
    """Small payload for the home-screen widget: level now and today's count."""
    today = entries_for_day(entries, date_key(now))
    return {
        "current_caffeine_mg": round(total_active_caffeine(today, milk_table, now)),
        "coffee_count": len(today),
        "last_updated": now.isoformat(),
        "wake_up_time": wake_up_time.isoformat(),
        "bed_time": bed_time.isoformat(),
    }
