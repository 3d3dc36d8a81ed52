"""Tests for kaffa.core.caffeine_engine: absorption/decay and daily totals."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from kaffa.core.caffeine_engine import (
    absorption_hours,
    compute_daily_active,
    compute_daily_consumed,
    compute_level,
    elimination_horizon,
    entries_for_day,
    generate_day_curve,
    generate_level_curve,
    half_life_time,
    has_rolled_over,
    peak_time,
    sort_newest_first,
    total_active_caffeine,
    total_consumed_caffeine,
    todays_entries,
)
from kaffa.core import entries as entries_mod
from kaffa.core.entries import create_entry
from kaffa.core.tables import MILK_MODIFIERS, MilkModifier

T0 = datetime(2025, 1, 15, 9, 0, 0)


class TestComputeLevel:
    def test_zero_at_consumption(self, make_entry):
        entry = make_entry(T0)
        assert compute_level(entry, MILK_MODIFIERS, T0) == 0.0

    def test_zero_before_consumption(self, make_entry):
        entry = make_entry(T0)
        assert compute_level(entry, MILK_MODIFIERS, T0 - timedelta(seconds=1)) == 0.0

    def test_zero_after_cutoff(self, make_entry):
        entry = make_entry(T0)
        assert compute_level(entry, MILK_MODIFIERS, T0 + timedelta(hours=25)) == 0.0

    def test_still_active_at_cutoff(self, make_entry):
        entry = make_entry(T0)
        assert compute_level(entry, MILK_MODIFIERS, T0 + timedelta(hours=24)) > 0.0

    def test_custom_cutoff(self, make_entry):
        entry = make_entry(T0)
        at = T0 + timedelta(hours=13)
        assert compute_level(entry, MILK_MODIFIERS, at) > 0.0
        assert compute_level(entry, MILK_MODIFIERS, at, cutoff_hours=12) == 0.0

    def test_linear_rise(self, make_entry):
        entry = make_entry(T0, caffeine_mg=90.0)
        # 15 of 45 minutes -> one third of the dose
        level = compute_level(entry, MILK_MODIFIERS, T0 + timedelta(minutes=15))
        assert level == pytest.approx(30.0)

    def test_continuity_at_peak(self, make_entry):
        for milk in MILK_MODIFIERS:
            entry = make_entry(T0, caffeine_mg=120.0, milk_type=milk)
            t_abs = absorption_hours(entry, MILK_MODIFIERS)
            eps = timedelta(hours=1e-6)
            peak = T0 + timedelta(hours=t_abs)
            before = compute_level(entry, MILK_MODIFIERS, peak - eps)
            after = compute_level(entry, MILK_MODIFIERS, peak + eps)
            assert before == pytest.approx(120.0, rel=1e-4)
            assert after == pytest.approx(120.0, rel=1e-4)

    def test_strictly_increasing_during_absorption(self, make_entry):
        entry = make_entry(T0, milk_type="Whole Milk")
        levels = [
            compute_level(entry, MILK_MODIFIERS, T0 + timedelta(minutes=m))
            for m in range(0, 66)
        ]
        assert all(a < b for a, b in zip(levels, levels[1:]))

    def test_strictly_decreasing_after_peak(self, make_entry):
        entry = make_entry(T0)
        levels = [
            compute_level(entry, MILK_MODIFIERS, T0 + timedelta(minutes=m))
            for m in range(46, 24 * 60 + 1, 30)
        ]
        assert all(a > b for a, b in zip(levels, levels[1:]))

    def test_half_life_law(self, make_entry):
        entry = make_entry(T0, caffeine_mg=200.0)
        at = T0 + timedelta(minutes=45) + timedelta(hours=5.5)
        assert compute_level(entry, MILK_MODIFIERS, at) == pytest.approx(100.0)

    def test_custom_half_life(self, make_entry):
        entry = make_entry(T0, caffeine_mg=100.0)
        at = T0 + timedelta(minutes=45) + timedelta(hours=4)
        level = compute_level(entry, MILK_MODIFIERS, at, half_life_hours=4.0)
        assert level == pytest.approx(50.0)

    def test_unknown_milk_falls_back_to_no_milk(self, make_entry):
        entry = make_entry(T0, milk_type="Unicorn Milk")
        assert absorption_hours(entry, MILK_MODIFIERS) == pytest.approx(0.75)
        assert compute_level(entry, MILK_MODIFIERS, T0 + timedelta(minutes=45)) == pytest.approx(75.0)

    def test_synthetic_milk_table(self, make_entry):
        table = {"No Milk": MILK_MODIFIERS["No Milk"], "Slow": MilkModifier("Slow", "Slow", 0, 0.0, 75)}
        entry = make_entry(T0, caffeine_mg=60.0, milk_type="Slow")
        # 45 + 75 = 120 min absorption; halfway at 60 min
        assert compute_level(entry, table, T0 + timedelta(hours=1)) == pytest.approx(30.0)

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -10.0])
    def test_corrupted_entry_is_zero(self, make_entry, bad):
        entry = make_entry(T0, caffeine_mg=75.0, effective_caffeine_mg=bad)
        assert compute_level(entry, MILK_MODIFIERS, T0 + timedelta(hours=1)) == 0.0


class TestTimeZones:
    def test_aware_query_time(self, monkeypatch):
        monkeypatch.setattr(entries_mod, "TIMEZONE", "UTC")
        entry = create_entry("Espresso", datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc))
        at = datetime(2025, 1, 15, 9, 45, tzinfo=timezone.utc)
        assert compute_level(entry, MILK_MODIFIERS, at) == pytest.approx(75.0)
        assert total_active_caffeine([entry], MILK_MODIFIERS, at) == pytest.approx(75.0)

    def test_aware_query_in_other_zone(self, make_entry, monkeypatch):
        monkeypatch.setattr(entries_mod, "TIMEZONE", "Asia/Tokyo")
        entry = make_entry(T0)
        # 00:45Z is 09:45 in Tokyo
        at = datetime(2025, 1, 15, 0, 45, tzinfo=timezone.utc)
        assert compute_level(entry, MILK_MODIFIERS, at) == pytest.approx(75.0)

    def test_spring_forward_night_counts_real_hours(self, make_entry, monkeypatch):
        monkeypatch.setattr(entries_mod, "TIMEZONE", "Europe/London")
        entry = make_entry(datetime(2025, 3, 30, 0, 30))
        # clocks jump 01:00 -> 02:00, so 00:30 to 03:30 is two hours
        level = compute_level(entry, MILK_MODIFIERS, datetime(2025, 3, 30, 3, 30))
        assert level == pytest.approx(75.0 * 0.5 ** ((2 - 0.75) / 5.5))

    def test_aware_curve_bounds(self, make_entry, monkeypatch):
        monkeypatch.setattr(entries_mod, "TIMEZONE", "UTC")
        start = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        points = generate_level_curve([make_entry(T0)], MILK_MODIFIERS, start, start + timedelta(minutes=45), 15)
        assert points[-1] == {"timestamp": "2025-01-15T09:45:00", "level_mg": 75.0}


class TestScenarios:
    def test_espresso(self):
        entry = create_entry("Espresso", T0, milk_type="No Milk")
        assert compute_level(entry, MILK_MODIFIERS, datetime(2025, 1, 15, 9, 45)) == pytest.approx(75.0)
        assert compute_level(entry, MILK_MODIFIERS, datetime(2025, 1, 15, 15, 15)) == pytest.approx(37.5)

    def test_flat_white_with_whole_milk(self):
        entry = create_entry("Flat White", datetime(2025, 1, 15, 7, 0), milk_type="Whole Milk")
        assert entry.effective_caffeine_mg == pytest.approx(114.4)
        assert absorption_hours(entry, MILK_MODIFIERS) == pytest.approx(65 / 60)
        assert peak_time(entry, MILK_MODIFIERS) == datetime(2025, 1, 15, 8, 5)
        level = compute_level(entry, MILK_MODIFIERS, datetime(2025, 1, 15, 8, 5))
        assert level == pytest.approx(114.4)


class TestDerivedTimes:
    def test_half_life_time(self, make_entry):
        assert half_life_time(make_entry(T0)) == T0 + timedelta(hours=5, minutes=30)

    def test_elimination_horizon_default_and_custom(self, make_entry):
        entry = make_entry(T0)
        assert elimination_horizon(entry) == T0 + timedelta(hours=12)
        assert elimination_horizon(entry, horizon_hours=8) == T0 + timedelta(hours=8)


class TestDailyAggregation:
    def test_additivity(self, make_entry):
        a = make_entry(T0, caffeine_mg=75.0)
        b = make_entry(T0 + timedelta(hours=2), caffeine_mg=130.0, milk_type="Whole Milk")
        at = T0 + timedelta(hours=3)
        expected = compute_level(a, MILK_MODIFIERS, at) + compute_level(b, MILK_MODIFIERS, at)
        assert compute_daily_active([a, b], MILK_MODIFIERS, "2025-01-15", at) == pytest.approx(expected)

    def test_other_days_excluded(self, make_entry):
        today = make_entry(T0)
        yesterday = make_entry(T0 - timedelta(days=1))
        assert entries_for_day([today, yesterday], "2025-01-15") == [today]
        assert compute_daily_consumed([today, yesterday], "2025-01-15") == 75.0

    def test_consumed_uses_base_caffeine(self, make_entry):
        entry = make_entry(T0, caffeine_mg=130.0, effective_caffeine_mg=114.4, milk_type="Whole Milk")
        assert total_consumed_caffeine([entry]) == 130.0
        at = T0 + timedelta(minutes=65)
        assert total_active_caffeine([entry], MILK_MODIFIERS, at) == pytest.approx(114.4)

    def test_empty_lists(self):
        assert total_active_caffeine([], MILK_MODIFIERS, T0) == 0.0
        assert total_consumed_caffeine([]) == 0.0
        assert compute_daily_active([], MILK_MODIFIERS, "2025-01-15", T0) == 0.0
        assert compute_daily_consumed([], "2025-01-15") == 0.0

    def test_corrupted_entry_does_not_poison_sum(self, make_entry):
        good = make_entry(T0)
        bad = make_entry(T0, caffeine_mg=math.nan, effective_caffeine_mg=math.nan)
        at = T0 + timedelta(minutes=45)
        total = total_active_caffeine([good, bad], MILK_MODIFIERS, at)
        assert total == pytest.approx(75.0)
        assert total_consumed_caffeine([good, bad]) == 75.0

    def test_future_entry_contributes_nothing(self, make_entry):
        future = make_entry(T0 + timedelta(hours=2))
        assert total_active_caffeine([future], MILK_MODIFIERS, T0) == 0.0

    def test_sort_newest_first(self, make_entry):
        early = make_entry(T0)
        late = make_entry(T0 + timedelta(hours=3))
        assert sort_newest_first([early, late]) == [late, early]


class TestRollover:
    def test_todays_entries(self, make_entry):
        today = make_entry(T0)
        yesterday = make_entry(T0 - timedelta(days=1))
        assert todays_entries([today, yesterday], T0 + timedelta(hours=5)) == [today]
        assert todays_entries([yesterday], T0) == []

    def test_has_rolled_over(self):
        assert has_rolled_over("2025-01-14", T0) is True
        assert has_rolled_over("2025-01-15", T0) is False
        assert has_rolled_over(None, T0) is False


class TestCurves:
    def test_level_curve_points(self, make_entry):
        entry = make_entry(T0)
        points = generate_level_curve([entry], MILK_MODIFIERS, T0, T0 + timedelta(hours=1), 15)
        assert [p["level_mg"] for p in points] == pytest.approx([0.0, 25.0, 50.0, 75.0, 72.67], abs=0.01)
        assert points[0]["timestamp"] == "2025-01-15T09:00:00"

    def test_invalid_interval(self, make_entry):
        with pytest.raises(ValueError):
            generate_level_curve([], MILK_MODIFIERS, T0, T0, 0)

    def test_day_curve_covers_whole_day(self, make_entry):
        points = generate_day_curve(T0, [make_entry(T0)], MILK_MODIFIERS, 15)
        assert len(points) == 96
        assert points[0]["timestamp"] == "2025-01-15T00:00:00"
        assert max(p["level_mg"] for p in points) == 75.0
