"""
Tests for the pure XP accounting rules.

Covers day classification thresholds, daily aggregate rebuilds, profile
deltas with level-ups, and streak computation.
"""

from datetime import date, timedelta

import pytest

from models import DailyLog, DayStatus, Profile
from xp_rules import (
    aggregate_completions,
    apply_xp_delta,
    build_daily_log,
    classify_day,
    compute_streaks,
    is_pass_day,
    level_for_xp,
    weekly_streak,
)


USER = "user-1"
DAY = date(2024, 3, 4)


def log(day, xp, count=1):
    return DailyLog(user_id=USER, log_date=day, total_xp=xp, quests_completed=count)


def run_of(start, values):
    return [log(start + timedelta(days=i), xp) for i, xp in enumerate(values)]


class TestClassification:

    @pytest.mark.parametrize("xp,expected", [
        (None, DayStatus.NONE),
        (0, DayStatus.NONE),
        (1, DayStatus.FAIL),
        (69, DayStatus.FAIL),
        (70, DayStatus.PASS),
        (99, DayStatus.PASS),
        (100, DayStatus.ELITE),
        (250, DayStatus.ELITE),
    ])
    def test_thresholds(self, xp, expected):
        assert classify_day(xp) == expected

    def test_elite_days_are_pass_days(self):
        assert is_pass_day(100)
        assert is_pass_day(70)
        assert not is_pass_day(69)

    def test_thresholds_follow_config(self, xp_env):
        from config import reload_config

        xp_env.setenv("XP_DAILY_GOAL", "50")
        xp_env.setenv("XP_ELITE_THRESHOLD", "80")
        reload_config()

        assert classify_day(50) == DayStatus.PASS
        assert classify_day(80) == DayStatus.ELITE
        assert classify_day(49) == DayStatus.FAIL

    def test_explicit_zero_goal_is_honored(self):
        assert classify_day(10, daily_goal=0) == DayStatus.PASS
        assert is_pass_day(0, daily_goal=0)
        assert classify_day(10, daily_goal=0, elite_threshold=0) == DayStatus.ELITE


class TestLevels:

    @pytest.mark.parametrize("total,level", [(0, 1), (499, 1), (500, 2), (999, 2), (1000, 3)])
    def test_level_for_xp(self, total, level):
        assert level_for_xp(total) == level

    def test_custom_xp_per_level(self):
        assert level_for_xp(250, xp_per_level=100) == 3


class TestDailyAggregate:

    def test_sum_of_completions(self):
        result = build_daily_log(USER, DAY, [30, 20])
        assert result.total_xp == 50
        assert result.quests_completed == 2

    def test_no_completions_is_an_empty_day(self):
        result = build_daily_log(USER, DAY, [])
        assert result.total_xp == 0
        assert result.quests_completed == 0

    def test_penalty_on_empty_day_is_clamped(self):
        result = build_daily_log(USER, DAY, [-20])
        assert result.total_xp == 0
        assert result.quests_completed == 0

    def test_penalty_reduces_total_without_counting(self):
        result = build_daily_log(USER, DAY, [30, 20, -20])
        assert result.total_xp == 30
        assert result.quests_completed == 2

    def test_neutral_quest_does_not_count(self):
        result = build_daily_log(USER, DAY, [10, 0])
        assert result.total_xp == 10
        assert result.quests_completed == 1

    def test_clamped_penalty_leaves_no_residue(self):
        # -20 then +60 on an empty day: the day is worth 40, and without the
        # penalty it is worth exactly the 60 that remains
        assert build_daily_log(USER, DAY, [-20, 60]).total_xp == 40
        assert build_daily_log(USER, DAY, [60]).total_xp == 60

    def test_rebuild_groups_by_day(self):
        entries = [(DAY, 30), (DAY, 20), (DAY, -10), (DAY + timedelta(days=1), 15)]

        rows = {row.log_date: row for row in aggregate_completions(USER, entries)}

        assert rows[DAY] == build_daily_log(USER, DAY, [30, 20, -10])
        assert rows[DAY + timedelta(days=1)].total_xp == 15

    def test_rebuild_counts_only_rewards(self):
        rows = aggregate_completions(USER, [(DAY, 30), (DAY, 0), (DAY, -20)])
        assert len(rows) == 1
        assert rows[0].total_xp == 10
        assert rows[0].quests_completed == 1


class TestProfileDelta:

    def test_positive_delta_crossing_boundary_levels_up(self):
        profile = Profile(id=USER, total_xp=490, level=1)
        updated, level_up = apply_xp_delta(profile, 20, active_date=DAY)

        assert updated.total_xp == 510
        assert updated.level == 2
        assert level_up.old_level == 1
        assert level_up.new_level == 2
        assert updated.last_active_date == DAY

    def test_no_level_up_within_level(self):
        _, level_up = apply_xp_delta(Profile(id=USER, total_xp=100), 30)
        assert level_up is None

    def test_negative_delta_clamps_and_never_levels_up(self):
        profile = Profile(id=USER, total_xp=510, level=2)
        updated, level_up = apply_xp_delta(profile, -600)

        assert updated.total_xp == 0
        assert updated.level == 1
        assert level_up is None

    def test_removal_does_not_touch_last_active(self):
        profile = Profile(id=USER, total_xp=30, last_active_date=DAY)
        updated, _ = apply_xp_delta(profile, -30)
        assert updated.last_active_date == DAY

    def test_last_active_only_moves_forward(self):
        profile = Profile(id=USER, last_active_date=DAY)
        updated, _ = apply_xp_delta(profile, 10, active_date=DAY - timedelta(days=3))
        assert updated.last_active_date == DAY


class TestStreaks:

    def test_consecutive_pass_days(self):
        streaks = compute_streaks(run_of(DAY, [70, 100, 85]))
        assert streaks.current_streak == 3
        assert streaks.longest_streak == 3

    def test_fail_day_breaks_streak(self):
        streaks = compute_streaks(run_of(DAY, [80, 80, 80, 30, 90]))
        assert streaks.current_streak == 1
        assert streaks.longest_streak == 3

    def test_calendar_gap_breaks_streak(self):
        logs = [log(DAY, 80), log(DAY + timedelta(days=2), 80)]
        streaks = compute_streaks(logs)
        assert streaks.current_streak == 1
        assert streaks.longest_streak == 1

    def test_zero_xp_rows_are_ignored(self):
        streaks = compute_streaks(run_of(DAY, [80, 80, 0]))
        assert streaks.current_streak == 2
        assert streaks.longest_streak == 2

    def test_latest_day_failed_means_no_current_streak(self):
        streaks = compute_streaks(run_of(DAY, [80, 80, 20]))
        assert streaks.current_streak == 0
        assert streaks.longest_streak == 2

    def test_order_of_input_does_not_matter(self):
        logs = run_of(DAY, [80, 90, 100])
        assert compute_streaks(reversed(logs)) == compute_streaks(logs)

    def test_explicit_zero_goal(self):
        streaks = compute_streaks(run_of(DAY, [5, 10]), daily_goal=0)
        assert streaks.current_streak == 2

    def test_empty_history(self):
        streaks = compute_streaks([])
        assert streaks.current_streak == 0
        assert streaks.longest_streak == 0


class TestWeeklyStreak:

    def test_full_week(self):
        assert weekly_streak(run_of(DAY, [70] * 7)) == 7

    def test_counts_back_from_end_until_first_miss(self):
        assert weekly_streak(run_of(DAY, [90, 20, 80, 75])) == 2

    def test_missed_last_day(self):
        assert weekly_streak(run_of(DAY, [90, 90, 10])) == 0

    def test_explicit_zero_goal(self):
        assert weekly_streak(run_of(DAY, [0, 5, 10]), daily_goal=0) == 3
