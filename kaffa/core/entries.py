"""
Coffee entries: the immutable record of one logged drink.

An entry is created exactly once when a drink is logged. Its numbers are
frozen at that moment (catalog edits never touch history) and the dateKey
is computed once from consumed_at, so grouping stays stable even if the
machine's timezone changes later.
"""

import math
import secrets
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional, Union
from zoneinfo import ZoneInfo

from kaffa.config import TIMEZONE
from kaffa.core.tables import (
    COFFEE_CATALOG,
    MILK_MODIFIERS,
    DrinkType,
    MilkModifier,
    UnknownDrink,
    lookup_milk,
)


class InvalidEntry(ValueError):
    """Entry carries negative, zero-volume or non-finite numbers."""


@dataclass(frozen=True)
class CoffeeEntry:
    id: str
    drink_type: str
    volume_ml: float
    caffeine_mg: float
    effective_caffeine_mg: float
    consumed_at: datetime
    milk_type: str
    date_key: str


# ── Time helpers ─────────────────────────────────────────────────────

def local_now() -> datetime:
    """Current wall-clock time in the configured zone (naive)."""
    return datetime.now(ZoneInfo(TIMEZONE)).replace(tzinfo=None)


def to_local(moment: datetime) -> datetime:
    """Aware datetimes are converted to naive local time; naive ones are kept."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(TIMEZONE)).replace(tzinfo=None)


def elapsed_hours(start: datetime, end: datetime) -> float:
    """
    Real hours between two moments. Naive values are local wall-clock times,
    so they are pinned to the configured zone before subtracting; a night
    with a DST change is 23 or 25 hours long, not 24.
    """
    tz = ZoneInfo(TIMEZONE)

    def _utc(moment: datetime) -> datetime:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=tz)
        return moment.astimezone(timezone.utc)

    return (_utc(end) - _utc(start)).total_seconds() / 3600.0


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        return to_local(value)
    return to_local(datetime.fromisoformat(value))


def date_key(moment: datetime) -> str:
    """YYYY-MM-DD of the moment in local time."""
    return to_local(moment).strftime("%Y-%m-%d")


# ── IDs ──────────────────────────────────────────────────────────────

_id_lock = threading.Lock()
_last_id_us = 0


def new_entry_id() -> str:
    """
    Microsecond creation stamp + entropy, e.g. "1734260400123456-9f3a1c".
    Strictly increasing within the process, so string order is creation order.
    """
    global _last_id_us
    with _id_lock:
        now_us = time.time_ns() // 1000
        if now_us <= _last_id_us:
            now_us = _last_id_us + 1
        _last_id_us = now_us
    return f"{now_us:016d}-{secrets.token_hex(3)}"


# ── Validation ───────────────────────────────────────────────────────

def is_corrupt(entry: CoffeeEntry) -> bool:
    """True if any numeric field is negative or not a finite number."""
    for value in (entry.volume_ml, entry.caffeine_mg, entry.effective_caffeine_mg):
        if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
            return True
    return False


def validate_entry(entry: CoffeeEntry) -> CoffeeEntry:
    if is_corrupt(entry):
        raise InvalidEntry(f"Entry {entry.id}: numeric fields must be finite and >= 0")
    if entry.volume_ml <= 0:
        raise InvalidEntry(f"Entry {entry.id}: volume must be > 0")
    if entry.effective_caffeine_mg > entry.caffeine_mg:
        raise InvalidEntry(f"Entry {entry.id}: effective caffeine exceeds base caffeine")
    return entry


# ── Creation ─────────────────────────────────────────────────────────

def effective_caffeine(caffeine_mg: float, milk: MilkModifier) -> float:
    return caffeine_mg * (1 - milk.caffeine_reduction)


def create_entry(
    drink_type: str,
    consumed_at: Optional[datetime] = None,
    milk_type: Optional[str] = None,
    volume_ml: Optional[float] = None,
    caffeine_mg: Optional[float] = None,
    catalog: Mapping[str, DrinkType] = COFFEE_CATALOG,
    milk_table: Mapping[str, MilkModifier] = MILK_MODIFIERS,
    entry_id: Optional[str] = None,
) -> CoffeeEntry:
    """
    Build a validated entry for a drink.

    Catalog values pre-fill volume and caffeine; explicit values win. A drink
    missing from the catalog is accepted only when both numbers are given.
    Without an explicit milk the drink's default milk is used.
    """
    drink = catalog.get(drink_type)
    if drink is None and (volume_ml is None or caffeine_mg is None):
        raise UnknownDrink(drink_type)

    if volume_ml is None:
        volume_ml = drink.volume_ml
    if caffeine_mg is None:
        caffeine_mg = drink.caffeine_mg
    if milk_type is None and drink is not None:
        milk_type = drink.default_milk

    milk = lookup_milk(milk_table, milk_type)
    moment = to_local(consumed_at) if consumed_at is not None else local_now()

    entry = CoffeeEntry(
        id=entry_id or new_entry_id(),
        drink_type=drink_type,
        volume_ml=float(volume_ml),
        caffeine_mg=float(caffeine_mg),
        effective_caffeine_mg=effective_caffeine(float(caffeine_mg), milk),
        consumed_at=moment,
        milk_type=milk.name,
        date_key=date_key(moment),
    )
    return validate_entry(entry)


# ── Records (persistence / API boundary) ─────────────────────────────

def entry_to_record(entry: CoffeeEntry) -> dict:
    record = asdict(entry)
    record["consumed_at"] = entry.consumed_at.isoformat()
    return record


def entry_from_record(record: Mapping) -> CoffeeEntry:
    """
    Rebuild an entry from a stored record. consumed_at becomes a datetime;
    a missing date_key is derived once more from it.
    """
    consumed_at = parse_timestamp(record["consumed_at"])
    return CoffeeEntry(
        id=str(record["id"]),
        drink_type=record["drink_type"],
        volume_ml=float(record["volume_ml"]),
        caffeine_mg=float(record["caffeine_mg"]),
        effective_caffeine_mg=float(record["effective_caffeine_mg"]),
        consumed_at=consumed_at,
        milk_type=record.get("milk_type") or "",
        date_key=record.get("date_key") or date_key(consumed_at),
    )
