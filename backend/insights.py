"""
XP System - Insights Engine
Read-only analytics over a user's daily aggregates: day classification,
weekday averages, best/worst days and heuristic suggestions.
"""

import math
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from config import get_xp_config
from database import get_daily_logs, get_profile
from ledger import today as utc_today
from models import DailyLog, DayStatus, DayXP, InsightsReport, StreakSummary
from xp_rules import classify_day


WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

EMPTY_SUGGESTION = "Start logging to see insights!"


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative averages."""
    return int(math.floor(value + 0.5))


def sunday_index(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


# ============================================
# PURE DERIVATIONS
# ============================================

def classify_days(
    logs: Iterable[DailyLog],
    start: date,
    end: date
) -> Dict[date, DayStatus]:
    """Status for every calendar day in [start, end]; missing days are none."""
    by_date = {log.log_date: log.total_xp for log in logs}
    statuses = {}
    day = start
    while day <= end:
        statuses[day] = classify_day(by_date.get(day))
        day += timedelta(days=1)
    return statuses


def weekday_averages(logs: Iterable[DailyLog]) -> Dict[str, int]:
    """Average XP per weekday, Sun..Sat, rounded; empty weekdays report 0."""
    buckets: Dict[int, List[int]] = {i: [] for i in range(7)}
    for log in logs:
        buckets[sunday_index(log.log_date)].append(log.total_xp)

    return {
        WEEKDAY_NAMES[i]: round_half_up(sum(values) / len(values)) if values else 0
        for i, values in buckets.items()
    }


def best_and_worst(logs: List[DailyLog]):
    """Stable descending sort on XP: first is best, last is worst."""
    if not logs:
        return None, None
    ranked = sorted(logs, key=lambda log: -log.total_xp)
    best, worst = ranked[0], ranked[-1]
    return DayXP(date=best.log_date, xp=best.total_xp), DayXP(date=worst.log_date, xp=worst.total_xp)


def build_suggestions(
    weekday_avg: Dict[str, int],
    average_xp: int,
    pass_days: int,
    elite_days: int,
    current_streak: int
) -> List[str]:
    config = get_xp_config()
    goal = config.daily_goal
    suggestions = []

    if weekday_avg:
        # min() keeps the first of equal values, so ties go to the earlier weekday
        weakest = min(weekday_avg.items(), key=lambda item: item[1])
        if weakest[1] < goal:
            suggestions.append(
                f"{weakest[0]} is your weakest day ({weakest[1]} avg). Plan extra focus."
            )

    if average_xp < goal:
        suggestions.append(
            f"Average XP is below {goal}. Consider simplifying your quest list or stacking early wins."
        )

    if elite_days < pass_days * config.elite_ratio:
        suggestions.append(
            f"Few elite days. Push for {config.elite_threshold}+ XP on strong days to boost momentum."
        )

    if current_streak >= config.insight_streak_days:
        suggestions.append(f"You're on a {current_streak}-day streak. Don't break the chain!")

    return suggestions


def build_insights(
    logs: Iterable[DailyLog],
    streaks: Optional[StreakSummary] = None
) -> InsightsReport:
    """
    Summarize a window of daily aggregates.

    Pure function of its inputs; the same logs always give the same report.
    """
    logs = sorted(logs, key=lambda log: log.log_date)
    streaks = streaks or StreakSummary()

    if not logs:
        return InsightsReport(
            currentStreak=streaks.current_streak,
            longestStreak=streaks.longest_streak,
            suggestions=[EMPTY_SUGGESTION]
        )

    statuses = [classify_day(log.total_xp) for log in logs]
    elite_days = statuses.count(DayStatus.ELITE)
    pass_days = elite_days + statuses.count(DayStatus.PASS)
    fail_days = statuses.count(DayStatus.FAIL)

    total_xp = sum(log.total_xp for log in logs)
    average_xp = round_half_up(total_xp / len(logs))
    best, worst = best_and_worst(logs)
    weekday_avg = weekday_averages(logs)

    return InsightsReport(
        totalDays=len(logs),
        passDays=pass_days,
        eliteDays=elite_days,
        failDays=fail_days,
        averageXP=average_xp,
        bestDay=best,
        worstDay=worst,
        currentStreak=streaks.current_streak,
        longestStreak=streaks.longest_streak,
        weekdayAvg=weekday_avg,
        suggestions=build_suggestions(
            weekday_avg, average_xp, pass_days, elite_days, streaks.current_streak
        )
    )


# ============================================
# LOADERS
# ============================================

async def get_insights(
    user_id: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None
) -> InsightsReport:
    """Insights for a window; defaults to the current calendar year."""
    today = today or utc_today()
    start = start or date(today.year, 1, 1)

    rows = await get_daily_logs(user_id, start=start, end=end, newest_first=False)
    profile = await get_profile(user_id) or {}

    streaks = StreakSummary(
        current_streak=profile.get("current_streak") or 0,
        longest_streak=profile.get("longest_streak") or 0
    )
    return build_insights([DailyLog.model_validate(row) for row in rows], streaks)
