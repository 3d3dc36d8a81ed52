"""
FastAPI API routes for the Kaffa coffee clock.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from kaffa.config import API_KEY, CURVE_INTERVAL_MINUTES
from kaffa.core.caffeine_engine import (
    compute_daily_consumed,
    entries_for_day,
    generate_day_curve,
    sort_newest_first,
)
from kaffa.core.database import (
    add_entry,
    delete_entries_for_day,
    delete_entry,
    get_schedule,
    load_entries,
    query_entries,
    set_schedule,
)
from kaffa.core.entries import (
    InvalidEntry,
    create_entry,
    date_key,
    entry_to_record,
    local_now,
    parse_timestamp,
)
from kaffa.core.science_windows import intake_advisories, resolve_schedule, window_status
from kaffa.core.summary import daily_summary, describe_entry, widget_snapshot
from kaffa.core.tables import COFFEE_CATALOG, MILK_MODIFIERS, UnknownDrink, catalog_as_dicts

log = logging.getLogger("kaffa.api")

router = APIRouter(prefix="/api")

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# --- Auth ---

def verify_api_key(x_api_key: str = Header(default="")):
    if API_KEY and x_api_key != API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


# --- Models ---

class CoffeeRequest(BaseModel):
    drink_type: str = Field(..., min_length=1)
    milk_type: Optional[str] = None
    volume_ml: Optional[float] = Field(None, gt=0)
    caffeine_mg: Optional[float] = Field(None, ge=0)
    timestamp: Optional[str] = None


class ScheduleRequest(BaseModel):
    wake_up_time: str = Field(..., pattern=HHMM_PATTERN)
    bed_time: str = Field(..., pattern=HHMM_PATTERN)


# --- Helpers ---

def _parse_time_param(timestamp: Optional[str]) -> datetime:
    if not timestamp:
        return local_now()
    try:
        return parse_timestamp(timestamp)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid timestamp: {timestamp}")


def _schedule_for(moment: datetime) -> tuple[datetime, datetime]:
    schedule = get_schedule()
    return resolve_schedule(moment, schedule["wake_up_time"], schedule["bed_time"])


# --- Endpoints ---

@router.get("/catalog", dependencies=[Depends(verify_api_key)])
def get_catalog():
    """Drink catalog and milk modifiers."""
    return catalog_as_dicts(COFFEE_CATALOG, MILK_MODIFIERS)


@router.post("/coffee", dependencies=[Depends(verify_api_key)])
def log_coffee(req: CoffeeRequest):
    """Log a drink. Returns the stored entry and any timing advisories."""
    consumed_at = _parse_time_param(req.timestamp)
    try:
        entry = create_entry(
            req.drink_type,
            consumed_at,
            milk_type=req.milk_type,
            volume_ml=req.volume_ml,
            caffeine_mg=req.caffeine_mg,
        )
    except UnknownDrink:
        raise HTTPException(status_code=404, detail=f"Unknown drink: {req.drink_type}")
    except InvalidEntry as e:
        raise HTTPException(status_code=422, detail=str(e))

    add_entry(entry)

    wake_up, bed = _schedule_for(entry.consumed_at)
    advisories = intake_advisories(entry.consumed_at, wake_up, bed)

    result = {
        "status": "ok",
        "entry": describe_entry(entry, MILK_MODIFIERS, entry.consumed_at, bed),
    }
    if advisories:
        result["advisories"] = advisories
    return result


@router.get("/coffee", dependencies=[Depends(verify_api_key)])
def get_coffee_entries(
    date: Optional[str] = Query(default=None, pattern=DATE_PATTERN),
    all_entries: bool = Query(default=False, alias="all"),
):
    """Entries for a day (default: today), newest first. all=true returns the full history."""
    if all_entries:
        entries = load_entries()
    else:
        entries = query_entries(date or date_key(local_now()))
    return [entry_to_record(e) for e in sort_newest_first(entries)]


@router.delete("/coffee/{entry_id}", dependencies=[Depends(verify_api_key)])
def delete_coffee_route(entry_id: str):
    """Delete a single entry by ID."""
    if not delete_entry(entry_id):
        raise HTTPException(status_code=404, detail="Entry not found")
    return {"deleted": entry_id, "status": "ok"}


@router.delete("/coffee", dependencies=[Depends(verify_api_key)])
def reset_day_route(date: Optional[str] = Query(default=None, pattern=DATE_PATTERN)):
    """Explicit day reset: delete every entry of a day (default: today)."""
    day = date or date_key(local_now())
    count = delete_entries_for_day(day)
    return {"date": day, "deleted": count, "status": "ok"}


@router.get("/caffeine", dependencies=[Depends(verify_api_key)])
def get_caffeine(timestamp: Optional[str] = None):
    """
    Active vs. consumed caffeine at a timestamp (default: now),
    computed from that day's entries.
    """
    target = _parse_time_param(timestamp)
    day = date_key(target)
    wake_up, bed = _schedule_for(target)
    return daily_summary(
        query_entries(day), MILK_MODIFIERS, target, day,
        wake_up_time=wake_up, bed_time=bed,
    )


@router.get("/caffeine/curve", dependencies=[Depends(verify_api_key)])
def get_caffeine_curve(
    date: Optional[str] = Query(default=None, pattern=DATE_PATTERN),
    interval: int = Query(default=CURVE_INTERVAL_MINUTES, ge=5, le=60),
):
    """Active caffeine curve for a full day at the given interval (minutes)."""
    if date:
        target_date = datetime.strptime(date, "%Y-%m-%d")
    else:
        target_date = local_now()

    day = date_key(target_date)
    points = generate_day_curve(target_date, query_entries(day), MILK_MODIFIERS, interval)
    return {"date": day, "interval_minutes": interval, "points": points}


@router.get("/windows", dependencies=[Depends(verify_api_key)])
def get_windows(timestamp: Optional[str] = None):
    """Cortisol and sleep windows for the day of timestamp, with current flags."""
    target = _parse_time_param(timestamp)
    wake_up, bed = _schedule_for(target)
    return window_status(target, wake_up, bed)


@router.get("/schedule", dependencies=[Depends(verify_api_key)])
def get_schedule_route():
    return get_schedule()


@router.put("/schedule", dependencies=[Depends(verify_api_key)])
def put_schedule_route(req: ScheduleRequest):
    """Set wake-up and bed time (HH:MM)."""
    return set_schedule(req.wake_up_time, req.bed_time)


@router.get("/widget", dependencies=[Depends(verify_api_key)])
def get_widget():
    """Snapshot for the home-screen widget."""
    now = local_now()
    wake_up, bed = _schedule_for(now)
    entries = query_entries(date_key(now))
    snapshot = widget_snapshot(entries, MILK_MODIFIERS, now, wake_up, bed)
    log.debug("Widget snapshot: %s mg, %d entries", snapshot["current_caffeine_mg"], len(entries))
    return snapshot


@router.get("/history", dependencies=[Depends(verify_api_key)])
def get_history(days: int = Query(default=7, ge=1, le=90)):
    """Consumed caffeine and drink count per day for the last N days."""
    today = local_now()
    entries = load_entries()
    history = []
    for offset in range(days - 1, -1, -1):
        day = date_key(today - timedelta(days=offset))
        history.append({
            "date": day,
            "consumed_mg": round(compute_daily_consumed(entries, day), 1),
            "coffee_count": len(entries_for_day(entries, day)),
        })
    return history
