"""
Caffeine Engine: active caffeine from a list of coffee entries.

Model per entry (t = hours since consumption, ta = absorption window):
  ta = (45 + milk.peak_delay_minutes) / 60
  t < 0                 -> 0                       (future entries never count)
  0 <= t <= ta          -> E * t / ta              (linear absorption)
  ta < t <= cutoff      -> E * 0.5^((t - ta) / 5.5)  (first-order elimination)
  t > cutoff            -> 0                       (hard cutoff, default 24h)
where E is the entry's effective caffeine (after milk reduction).

Both branches equal E at t == ta, so the curve is continuous at the peak.

Entries superpose linearly: sources do not interact (no saturation).
Nothing here keeps state; every call takes the entry list explicitly.

Sources:
  - Kamimori et al., 2002 (absorption, tmax ~30-60 min)
  - Seng et al., 2009 (t1/2 non-smoker ~5-6h)
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from kaffa.config import (
    ARC_HORIZON_HOURS,
    BASE_ABSORPTION_MINUTES,
    CAFFEINE_HALF_LIFE_HOURS,
    CURVE_INTERVAL_MINUTES,
    LEVEL_CUTOFF_HOURS,
)
from kaffa.core.entries import CoffeeEntry, date_key, elapsed_hours, is_corrupt, to_local
from kaffa.core.tables import MILK_MODIFIERS, MilkModifier, lookup_milk

log = logging.getLogger("kaffa.engine")


# ── Per-entry timing ─────────────────────────────────────────────────

def absorption_hours(
    entry: CoffeeEntry,
    milk_table: Mapping[str, MilkModifier] = MILK_MODIFIERS,
    base_absorption_minutes: float = BASE_ABSORPTION_MINUTES,
) -> float:
    """Hours from consumption to peak. Always >= the 45 min base window."""
    milk = lookup_milk(milk_table, entry.milk_type)
    return (base_absorption_minutes + max(0.0, milk.peak_delay_minutes)) / 60.0


def peak_time(
    entry: CoffeeEntry,
    milk_table: Mapping[str, MilkModifier] = MILK_MODIFIERS,
    base_absorption_minutes: float = BASE_ABSORPTION_MINUTES,
) -> datetime:
    return entry.consumed_at + timedelta(
        hours=absorption_hours(entry, milk_table, base_absorption_minutes)
    )


def half_life_time(
    entry: CoffeeEntry,
    half_life_hours: float = CAFFEINE_HALF_LIFE_HOURS,
) -> datetime:
    """Marker shown on the clock: consumption + one half-life."""
    return entry.consumed_at + timedelta(hours=half_life_hours)


def elimination_horizon(
    entry: CoffeeEntry,
    horizon_hours: float = ARC_HORIZON_HOURS,
) -> datetime:
    """End of the drawn decay arc; the level is treated as negligible after it."""
    return entry.consumed_at + timedelta(hours=horizon_hours)


# ── Absorption-decay ─────────────────────────────────────────────────

def compute_level(
    entry: CoffeeEntry,
    milk_table: Mapping[str, MilkModifier],
    at_time: datetime,
    cutoff_hours: float = LEVEL_CUTOFF_HOURS,
    half_life_hours: float = CAFFEINE_HALF_LIFE_HOURS,
    base_absorption_minutes: float = BASE_ABSORPTION_MINUTES,
) -> float:
    """
    Active caffeine (mg) of one entry at at_time.
    Corrupted entries (negative or non-finite numbers) contribute 0.
    """
    if is_corrupt(entry):
        log.warning("Skipping corrupted entry %s", entry.id)
        return 0.0

    # Zone-pinned: a DST night is 23h or 25h of elapsed time
    elapsed = elapsed_hours(entry.consumed_at, at_time)
    if elapsed < 0 or elapsed > cutoff_hours:
        return 0.0

    effective = entry.effective_caffeine_mg
    t_abs = absorption_hours(entry, milk_table, base_absorption_minutes)

    if elapsed <= t_abs:
        return effective * (elapsed / t_abs)
    return effective * 0.5 ** ((elapsed - t_abs) / half_life_hours)


# ── Daily aggregation ────────────────────────────────────────────────

def entries_for_day(entries: Iterable[CoffeeEntry], day_key: str) -> list[CoffeeEntry]:
    return [e for e in entries if e.date_key == day_key]


def sort_newest_first(entries: Iterable[CoffeeEntry]) -> list[CoffeeEntry]:
    """Display order. Ties on consumed_at fall back to the (monotonic) id."""
    return sorted(entries, key=lambda e: (e.consumed_at, e.id), reverse=True)


def total_active_caffeine(
    day_entries: Iterable[CoffeeEntry],
    milk_table: Mapping[str, MilkModifier],
    at_time: datetime,
    cutoff_hours: float = LEVEL_CUTOFF_HOURS,
) -> float:
    """Linear superposition of all entry levels at at_time."""
    return sum(
        (compute_level(e, milk_table, at_time, cutoff_hours) for e in day_entries),
        0.0,
    )


def total_consumed_caffeine(day_entries: Iterable[CoffeeEntry]) -> float:
    """Base caffeine consumed (before milk reduction); not the active level."""
    return sum((e.caffeine_mg for e in day_entries if not is_corrupt(e)), 0.0)


def compute_daily_active(
    entries: Iterable[CoffeeEntry],
    milk_table: Mapping[str, MilkModifier],
    day_key: str,
    at_time: datetime,
    cutoff_hours: float = LEVEL_CUTOFF_HOURS,
) -> float:
    return total_active_caffeine(entries_for_day(entries, day_key), milk_table, at_time, cutoff_hours)


def compute_daily_consumed(entries: Iterable[CoffeeEntry], day_key: str) -> float:
    return total_consumed_caffeine(entries_for_day(entries, day_key))


# ── Day rollover (view filter, never deletes) ────────────────────────

def todays_entries(entries: Iterable[CoffeeEntry], now: datetime) -> list[CoffeeEntry]:
    return entries_for_day(entries, date_key(now))


def has_rolled_over(previous_date_key: Optional[str], now: datetime) -> bool:
    """True once the wall-clock date differs from the last observed dateKey."""
    return previous_date_key is not None and previous_date_key != date_key(now)


# ── Curves ───────────────────────────────────────────────────────────

def generate_level_curve(
    entries: Iterable[CoffeeEntry],
    milk_table: Mapping[str, MilkModifier],
    start: datetime,
    end: datetime,
    interval_minutes: int = CURVE_INTERVAL_MINUTES,
    cutoff_hours: float = LEVEL_CUTOFF_HOURS,
) -> list[dict]:
    """
    Active caffeine sampled every interval_minutes on [start, end].
    """
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be > 0")
    entries = list(entries)
    start, end = to_local(start), to_local(end)
    step = timedelta(minutes=interval_minutes)
    points = []
    t = start
    while t <= end:
        level = total_active_caffeine(entries, milk_table, t, cutoff_hours)
        points.append({"timestamp": t.isoformat(), "level_mg": round(level, 2)})
        t += step
    return points


def generate_day_curve(
    day: datetime,
    entries: Iterable[CoffeeEntry],
    milk_table: Mapping[str, MilkModifier] = MILK_MODIFIERS,
    interval_minutes: int = CURVE_INTERVAL_MINUTES,
) -> list[dict]:
    """Curve for one calendar day (00:00 to 23:59) from that day's entries."""
    start = to_local(day).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1) - timedelta(minutes=1)
    day_entries = entries_for_day(entries, date_key(start))
    return generate_level_curve(day_entries, milk_table, start, end, interval_minutes)

