"""
XP System - XP Accounting Rules
Pure functions for daily aggregates, profile totals, levels and streaks.

Nothing in here touches the database; the ledger loads rows, runs them
through these rules and writes the results back inside one transaction.
"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from config import get_xp_config
from models import DailyLog, DayStatus, LevelUp, Profile, StreakSummary


# ============================================
# LEVELS & CLASSIFICATION
# ============================================

def level_for_xp(total_xp: int, xp_per_level: Optional[int] = None) -> int:
    """Level is floor(total_xp / xp_per_level) + 1, never below 1."""
    per_level = get_xp_config().xp_per_level if xp_per_level is None else xp_per_level
    return max(0, total_xp) // per_level + 1


def classify_day(
    total_xp: Optional[int],
    daily_goal: Optional[int] = None,
    elite_threshold: Optional[int] = None
) -> DayStatus:
    """
    Classify a day by its total XP.

    None or 0 -> none, below goal -> fail, goal..elite-1 -> pass,
    elite and above -> elite.
    """
    config = get_xp_config()
    goal = config.daily_goal if daily_goal is None else daily_goal
    elite = config.elite_threshold if elite_threshold is None else elite_threshold

    if not total_xp or total_xp <= 0:
        return DayStatus.NONE
    if total_xp >= elite:
        return DayStatus.ELITE
    if total_xp >= goal:
        return DayStatus.PASS
    return DayStatus.FAIL


def is_pass_day(total_xp: int, daily_goal: Optional[int] = None) -> bool:
    """Elite days are pass days too."""
    goal = get_xp_config().daily_goal if daily_goal is None else daily_goal
    return total_xp >= goal


# ============================================
# DAILY AGGREGATE
# ============================================

def build_daily_log(user_id: str, log_date: date, xp_values: Iterable[int]) -> DailyLog:
    """
    Aggregate row for one day from the xp_earned of its extant completions.

    total_xp is the clamped sum; only reward completions (xp > 0) count
    toward quests_completed.
    Recording and removal both rebuild the day this way.
    """
    values = list(xp_values)
    return DailyLog(
        user_id=user_id,
        log_date=log_date,
        total_xp=max(0, sum(values)),
        quests_completed=sum(1 for v in values if v > 0)
    )


def aggregate_completions(
    user_id: str,
    completions: Iterable[Tuple[date, int]]
) -> List[DailyLog]:
    """
    Rebuild daily aggregates from (completion_date, xp_earned) pairs.

    Used by the repair path and by tests to check the incremental rows.
    """
    days: Dict[date, List[int]] = {}
    for completion_date, xp_earned in sorted(completions, key=lambda c: c[0]):
        days.setdefault(completion_date, []).append(xp_earned)

    return [build_daily_log(user_id, log_date, values) for log_date, values in days.items()]


# ============================================
# PROFILE
# ============================================

def apply_xp_delta(
    profile: Profile,
    delta: int,
    active_date: Optional[date] = None
) -> Tuple[Profile, Optional[LevelUp]]:
    """
    Add a signed XP delta to a profile.

    Returns the new profile and a LevelUp when a positive delta crossed a
    level boundary. last_active_date only moves forward, and only when an
    active_date is given (insertions, not removals).
    """
    old_level = level_for_xp(profile.total_xp)
    new_total = max(0, profile.total_xp + delta)
    new_level = level_for_xp(new_total)

    updates = {"total_xp": new_total, "level": new_level}
    if active_date is not None:
        if profile.last_active_date is None or active_date > profile.last_active_date:
            updates["last_active_date"] = active_date

    level_up = None
    if delta > 0 and new_level > old_level:
        level_up = LevelUp(old_level=old_level, new_level=new_level)

    return profile.model_copy(update=updates), level_up


# ============================================
# STREAKS
# ============================================

def compute_streaks(
    logs: Iterable[DailyLog],
    daily_goal: Optional[int] = None
) -> StreakSummary:
    """
    Canonical streak computation over a user's full aggregate history.

    A streak is a run of calendar-consecutive pass days. The current streak
    is the run ending at the most recent day with any XP; longest is the
    best run ever. Rows with zero XP count as not logged.
    """
    goal = get_xp_config().daily_goal if daily_goal is None else daily_goal
    logged = sorted((log for log in logs if log.total_xp > 0), key=lambda log: log.log_date)

    longest = 0
    run = 0
    previous: Optional[date] = None
    for log in logged:
        if log.total_xp >= goal:
            if previous is not None and run > 0 and log.log_date - previous == timedelta(days=1):
                run += 1
            else:
                run = 1
            longest = max(longest, run)
        else:
            run = 0
        previous = log.log_date

    current = 0
    expected: Optional[date] = None
    for log in reversed(logged):
        if log.total_xp < goal:
            break
        if expected is not None and log.log_date != expected:
            break
        current += 1
        expected = log.log_date - timedelta(days=1)

    return StreakSummary(current_streak=current, longest_streak=longest)


def weekly_streak(logs: Iterable[DailyLog], daily_goal: Optional[int] = None) -> int:
    """
    Count pass days backward from the end of a window until the first miss.

    Window-local variant used by the weekly summary; it does not check
    calendar gaps inside the window.
    """
    goal = get_xp_config().daily_goal if daily_goal is None else daily_goal
    ordered = sorted(logs, key=lambda log: log.log_date)

    streak = 0
    for log in reversed(ordered):
        if log.total_xp >= goal:
            streak += 1
        else:
            break
    return streak
