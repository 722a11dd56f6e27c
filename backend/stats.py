"""
XP System - Stats & Leaderboard
Lifetime statistics and a friends leaderboard built from profiles and aggregates
"""

from datetime import date
from typing import Dict, Iterable, List, Optional

from database import db, get_daily_logs, get_profile
from insights import round_half_up
from ledger import query_completions, today as utc_today
from models import Completion, DailyLog, LeaderboardEntry, Profile, StatsReport
from xp_rules import is_pass_day


# ============================================
# DATABASE INITIALIZATION
# ============================================

async def ensure_social_tables() -> None:
    """Friends table read by the leaderboard. One row per pair."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS friends (
            id SERIAL PRIMARY KEY,
            user_id TEXT NOT NULL,
            friend_id TEXT NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            UNIQUE(user_id, friend_id)
        )
    """)


# ============================================
# STATS
# ============================================

def build_stats(
    profile: Profile,
    logs: List[DailyLog],
    completions: Iterable[Completion],
    quest_count: int,
    today: date
) -> StatsReport:
    """Lifetime overview, category breakdown and quest frequency."""
    total_days = len(logs)
    total_xp = profile.total_xp
    goals_achieved = sum(1 for log in logs if is_pass_day(log.total_xp))

    best_day = None
    for log in logs:
        if best_day is None or log.total_xp > best_day.total_xp:
            best_day = log

    last_7_days_xp = sum(
        log.total_xp for log in logs
        if 0 <= (today - log.log_date).days < 7
    )

    categories: Dict[str, Dict[str, int]] = {}
    quest_frequency: Dict[str, int] = {}
    completion_count = 0
    for completion in completions:
        completion_count += 1
        category = completion.quest_category or "Other"
        bucket = categories.setdefault(category, {"count": 0, "xp": 0})
        bucket["count"] += 1
        bucket["xp"] += completion.xp_earned

        name = completion.quest_name or "Unknown"
        quest_frequency[name] = quest_frequency.get(name, 0) + 1

    return StatsReport(
        profile={
            "total_xp": total_xp,
            "level": profile.level,
            "current_streak": profile.current_streak,
            "longest_streak": profile.longest_streak,
        },
        overview={
            "total_days_tracked": total_days,
            "average_xp_per_day": round_half_up(total_xp / total_days) if total_days else 0,
            "goals_achieved": goals_achieved,
            "completion_rate": round_half_up(goals_achieved / total_days * 100) if total_days else 0,
            "best_day": (
                {"date": best_day.log_date.isoformat(), "xp": best_day.total_xp}
                if best_day else None
            ),
            "last_7_days_xp": last_7_days_xp,
        },
        categories=categories,
        quest_frequency=quest_frequency,
        total_quests=quest_count,
        total_completions=completion_count
    )


async def get_stats(user_id: str, today: Optional[date] = None) -> StatsReport:
    today = today or utc_today()
    profile_row = await get_profile(user_id)
    profile = Profile.model_validate(profile_row) if profile_row else Profile(id=user_id)

    logs = [DailyLog.model_validate(row) for row in await get_daily_logs(user_id)]
    completions = await query_completions(user_id)
    quest_count = await db.fetch_one(
        "SELECT COUNT(*) AS count FROM quests WHERE is_global = true OR user_id = $1",
        user_id
    )

    return build_stats(profile, logs, completions, (quest_count or {}).get("count", 0), today)


# ============================================
# LEADERBOARD
# ============================================

def build_leaderboard(
    user_id: str,
    profiles: Iterable[dict],
    today_xp: Dict[str, int]
) -> List[LeaderboardEntry]:
    """Order by lifetime XP, attach today's XP and flag the caller."""
    ranked = sorted(profiles, key=lambda p: p.get("total_xp") or 0, reverse=True)
    return [
        LeaderboardEntry(
            id=p["id"],
            username=p.get("username"),
            total_xp=p.get("total_xp") or 0,
            level=p.get("level") or 1,
            current_streak=p.get("current_streak") or 0,
            longest_streak=p.get("longest_streak") or 0,
            today_xp=today_xp.get(p["id"], 0),
            is_you=p["id"] == user_id
        )
        for p in ranked
    ]


async def get_friend_ids(user_id: str) -> List[str]:
    rows = await db.fetch("""
        SELECT user_id, friend_id FROM friends
        WHERE (user_id = $1 OR friend_id = $1) AND status = 'accepted'
    """, user_id)

    friend_ids = set()
    for row in rows:
        friend_ids.add(row["friend_id"] if row["user_id"] == user_id else row["user_id"])
    friend_ids.discard(user_id)
    return sorted(friend_ids)


async def get_leaderboard(user_id: str, today: Optional[date] = None) -> List[LeaderboardEntry]:
    """The caller plus accepted friends."""
    today = today or utc_today()
    all_ids = [user_id] + await get_friend_ids(user_id)

    profiles = await db.fetch("""
        SELECT id, username, total_xp, level, current_streak, longest_streak
        FROM profiles WHERE id = ANY($1::text[])
    """, all_ids)

    today_logs = await db.fetch("""
        SELECT user_id, total_xp FROM daily_logs
        WHERE user_id = ANY($1::text[]) AND log_date = $2
    """, all_ids, today)

    return build_leaderboard(
        user_id, profiles, {row["user_id"]: row["total_xp"] for row in today_logs}
    )
