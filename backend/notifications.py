"""
XP System - Notification Content
Builds daily check-in, inactivity, weekly summary and daily reminder messages
from profiles and daily aggregates. Content is queued, never delivered here.
"""

from datetime import date, timedelta
from html import escape
from typing import Dict, Iterable, List, Optional, Tuple

from config import get_notification_config, get_xp_config
from database import db, get_daily_log, get_daily_logs, get_profile, to_json
from exceptions import NotFoundError
from insights import round_half_up
from ledger import today as utc_today
from logger import logger
from models import (
    DailyLog,
    DayStatus,
    EmailContent,
    NotificationType,
    Profile,
    WeeklyStats,
    WeekTier,
)
from quests import list_quests
from xp_rules import classify_day, is_pass_day, weekly_streak


NEVER_ACTIVE_DAYS = 999

TIER_MESSAGES = {
    WeekTier.PERFECT: "🏆 PERFECT WEEK! You're a LEGEND!",
    WeekTier.GREAT: "💪 Great week! Keep pushing!",
    WeekTier.IMPROVEMENT: "📈 Room for improvement. You got this!",
}


def _html_block(title: str, lines: Iterable[str], items: Optional[List[str]] = None) -> str:
    parts = ['<div style="font-family: Inter, system-ui; color: #0f172a;">']
    parts.append(f'<h2 style="margin:0 0 8px;">{escape(title)}</h2>')
    for line in lines:
        parts.append(f'<p style="margin:0 0 8px;">{escape(line)}</p>')
    if items is not None:
        parts.append('<ul style="padding-left:18px; margin:0;">')
        parts.extend(f"<li>{escape(item)}</li>" for item in items)
        parts.append("</ul>")
    parts.append("</div>")
    return "\n".join(parts)


# ============================================
# CONTENT BUILDERS (pure)
# ============================================

def daily_check_in(profile: Profile, today_log: Optional[DailyLog]) -> EmailContent:
    """Status snapshot for today against the daily goal."""
    goal = get_xp_config().daily_goal
    app_url = get_notification_config().app_url

    today_xp = today_log.total_xp if today_log else 0
    quests_done = today_log.quests_completed if today_log else 0
    closing = (
        "MISSION COMPLETE! Keep crushing it!" if today_xp >= goal
        else "Keep going! You got this!"
    )

    lines = [
        f"Today's XP: {today_xp} / {goal} XP",
        f"Quests Completed: {quests_done}",
        f"Total XP: {profile.total_xp}",
        f"Current Level: {profile.level}",
        f"Streak Days: {profile.current_streak}",
    ]
    body = "\n".join(
        ["Hey Champion!", "", "Daily Status Check:"]
        + [f"- {line}" for line in lines]
        + ["", closing, "", f"Check your dashboard: {app_url}"]
    )

    return EmailContent(
        subject="XP System Daily Check-In",
        body=body,
        html=_html_block("Daily Check-In", lines + [closing])
    )


def days_since_active(last_active_date: Optional[date], today: date) -> int:
    """Whole days since last activity; NEVER_ACTIVE_DAYS when never active."""
    if last_active_date is None:
        return NEVER_ACTIVE_DAYS
    return max(0, (today - last_active_date).days)


def inactivity_reminder(profile: Profile, today: date) -> Optional[EmailContent]:
    """Reminder after inactivity_days without activity; None when not due."""
    days_inactive = days_since_active(profile.last_active_date, today)
    if days_inactive < get_xp_config().inactivity_days:
        return None

    app_url = get_notification_config().app_url
    lines = [
        f"It's been {days_inactive} days since you last logged your XP.",
        f"Total XP: {profile.total_xp}",
        f"Level: {profile.level}",
        f"Streak: {profile.current_streak} days (at risk!)",
    ]
    body = "\n".join([
        "Hey Champion!",
        "",
        lines[0],
        "",
        "Your stats are waiting:",
        *[f"- {line}" for line in lines[1:]],
        "",
        "Don't let your streak die! Every day counts.",
        "",
        f"Get back on track: {app_url}",
        "",
        "Remember: Small consistent actions > Big sporadic efforts",
    ])

    return EmailContent(
        subject="XP System - We Miss You!",
        body=body,
        html=_html_block("We Miss You!", lines)
    )


def weekly_stats(logs: Iterable[DailyLog], end: date) -> WeeklyStats:
    """Stats over the trailing window ending at `end` (inclusive)."""
    config = get_xp_config()
    window = config.weekly_window_days
    start = end - timedelta(days=window - 1)

    week_logs = sorted(
        (log for log in logs if start <= log.log_date <= end),
        key=lambda log: log.log_date
    )

    total_xp = sum(log.total_xp for log in week_logs)
    days_logged = len(week_logs)
    days_goal_met = sum(1 for log in week_logs if is_pass_day(log.total_xp))
    elite_days = sum(1 for log in week_logs if classify_day(log.total_xp) == DayStatus.ELITE)

    if days_goal_met >= window:
        tier = WeekTier.PERFECT
    elif days_goal_met >= 5:
        tier = WeekTier.GREAT
    else:
        tier = WeekTier.IMPROVEMENT

    return WeeklyStats(
        start_date=start,
        end_date=end,
        total_week_xp=total_xp,
        days_logged=days_logged,
        days_goal_met=days_goal_met,
        elite_days=elite_days,
        avg_xp=round_half_up(total_xp / days_logged) if days_logged else 0,
        weekly_streak=weekly_streak(week_logs),
        perfect_week=tier == WeekTier.PERFECT,
        tier=tier
    )


def weekly_summary(
    profile: Profile,
    logs: Iterable[DailyLog],
    end: date
) -> Tuple[EmailContent, WeeklyStats]:
    """Weekly report with a per-day breakdown and a tiered closing message."""
    config = get_xp_config()
    app_url = get_notification_config().app_url
    logs = list(logs)
    stats = weekly_stats(logs, end)
    window = config.weekly_window_days

    breakdown = [
        f"{log.log_date.isoformat()}: {log.total_xp} XP ({log.quests_completed} quests)"
        for log in sorted(logs, key=lambda log: log.log_date)
        if stats.start_date <= log.log_date <= stats.end_date
    ]
    overview = [
        f"Range: {stats.start_date.isoformat()} -> {stats.end_date.isoformat()}",
        f"Total XP This Week: {stats.total_week_xp}",
        f"Days Logged: {stats.days_logged}/{window}",
        f"Goals Met: {stats.days_goal_met}/{window} days ({config.daily_goal}+ XP)",
        f"Elite Days: {stats.elite_days} ({config.elite_threshold}+ XP)",
        f"Average Daily XP: {stats.avg_xp}",
        f"Current Week Streak: {stats.weekly_streak} day(s)",
    ]
    profile_lines = [
        f"Total XP: {profile.total_xp}",
        f"Level: {profile.level}",
        f"Current Streak: {profile.current_streak} days",
    ]
    closing = TIER_MESSAGES[stats.tier]

    body = "\n".join([
        "Weekly Performance Report",
        "========================",
        "",
        "OVERVIEW:",
        *[f"- {line}" for line in overview],
        "",
        "PROFILE STATUS:",
        *[f"- {line}" for line in profile_lines],
        "",
        "WEEKLY BREAKDOWN:",
        *([f"- {line}" for line in breakdown] or ["No data"]),
        "",
        closing,
        "",
        f"View full analytics: {app_url}/analytics",
    ])

    content = EmailContent(
        subject=(
            f"XP System Weekly Report - {stats.total_week_xp} XP Earned! "
            f"({stats.days_goal_met} pass / {stats.elite_days} elite)"
        ),
        body=body,
        html=_html_block(
            "Weekly XP Report",
            overview + [closing],
            breakdown or ["No data this week."]
        )
    )
    return content, stats


def daily_reminder(
    quests: Iterable[dict],
    completed_quest_ids: Iterable,
    today: date
) -> EmailContent:
    """Pending reward quests, today's reward XP and the penalty to avoid."""
    goal = get_xp_config().daily_goal
    quests = list(quests)
    done = {str(quest_id) for quest_id in completed_quest_ids}

    positive = [q for q in quests if q["xp_value"] > 0]
    penalty = next((q for q in quests if q["xp_value"] < 0), None)
    daily_xp = sum(q["xp_value"] for q in positive if str(q["id"]) in done)
    pending = [f"{q['name']} (+{q['xp_value']} XP)" for q in positive if str(q["id"]) not in done]

    lines = [f"Date: {today.isoformat()}", f"Total XP Today: {daily_xp} / {goal}"]
    if penalty:
        lines.append(f"Penalty: {penalty['name']} ({penalty['xp_value']} XP)")

    body = "\n".join(
        ["Daily XP Briefing", ""]
        + lines
        + ["", "Pending Quests:"]
        + ([f"- {item}" for item in pending] or ["- All clear. Great job!"])
        + ["", "Keep pushing. One more quest can change the day."]
    )

    return EmailContent(
        subject=f"XP System • Daily Reminder ({daily_xp} XP)",
        body=body,
        html=_html_block("Daily XP Briefing", lines, pending or ["All clear. Great job!"])
    )


# ============================================
# DATABASE OPERATIONS
# ============================================

async def ensure_notification_tables() -> None:
    """Create the notification queue table if it doesn't exist."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            user_id TEXT NOT NULL,
            notification_type VARCHAR(50) NOT NULL,
            recipient VARCHAR(255),
            email_content JSONB,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            scheduled_for TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            sent_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_pending
        ON notifications(status, scheduled_for)
    """)


async def queue_notification(
    user_id: str,
    notification_type: NotificationType,
    content: EmailContent
) -> dict:
    """Store content as a pending notification for the dispatch collaborator."""
    config = get_notification_config()
    notification = await db.execute_returning("""
        INSERT INTO notifications (user_id, notification_type, recipient, email_content, status)
        VALUES ($1, $2, $3, $4::jsonb, 'pending')
        RETURNING id, user_id, notification_type, recipient, status, scheduled_for, created_at
    """, user_id, notification_type.value, config.email_to or None, to_json(content.model_dump()))

    logger.info(f"Queued {notification_type.value} notification for {user_id}")
    return notification


async def _load_profile(user_id: str) -> Profile:
    row = await get_profile(user_id)
    if not row:
        logger.warning(f"Notification skipped: profile {user_id} not found")
        raise NotFoundError("profile", user_id)
    return Profile.model_validate(row)


async def create_check_in(user_id: str, today: Optional[date] = None) -> Dict:
    today = today or utc_today()
    profile = await _load_profile(user_id)
    row = await get_daily_log(user_id, today)
    content = daily_check_in(profile, DailyLog.model_validate(row) if row else None)

    notification = await queue_notification(user_id, NotificationType.DAILY_CHECK_IN, content)
    return {"success": True, "email": content, "notification": notification}


async def create_inactivity_reminder(user_id: str, today: Optional[date] = None) -> Dict:
    today = today or utc_today()
    profile = await _load_profile(user_id)
    days_inactive = days_since_active(profile.last_active_date, today)

    content = inactivity_reminder(profile, today)
    if content is None:
        return {
            "success": False,
            "message": f"User active {days_inactive} days ago. No reminder needed.",
            "days_inactive": days_inactive,
        }

    notification = await queue_notification(user_id, NotificationType.INACTIVITY_REMINDER, content)
    return {
        "success": True,
        "email": content,
        "days_inactive": days_inactive,
        "notification": notification,
    }


async def create_weekly_summary(user_id: str, today: Optional[date] = None) -> Dict:
    today = today or utc_today()
    profile = await _load_profile(user_id)
    window = get_xp_config().weekly_window_days

    rows = await get_daily_logs(
        user_id, start=today - timedelta(days=window - 1), end=today, newest_first=False
    )
    content, stats = weekly_summary(profile, [DailyLog.model_validate(r) for r in rows], today)

    notification = await queue_notification(user_id, NotificationType.WEEKLY_SUMMARY, content)
    return {"success": True, "email": content, "stats": stats, "notification": notification}


async def create_daily_reminder(user_id: str, today: Optional[date] = None) -> Dict:
    today = today or utc_today()
    quests = await list_quests(user_id)
    completed = await db.fetch("""
        SELECT DISTINCT quest_id FROM quest_completions
        WHERE user_id = $1 AND completion_date = $2 AND quest_id IS NOT NULL
    """, user_id, today)

    content = daily_reminder(quests, [row["quest_id"] for row in completed], today)
    notification = await queue_notification(user_id, NotificationType.DAILY_REMINDER, content)
    return {"success": True, "email": content, "notification": notification}
