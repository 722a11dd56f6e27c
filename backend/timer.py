"""
XP System - Focus Timer
Daily focus sessions tracked against a target number of hours
"""

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from config import get_xp_config
from database import db
from exceptions import InvalidInputError, NotFoundError
from logger import logger
from models import TimerAction, TimerSummary


# ============================================
# DATABASE INITIALIZATION
# ============================================

async def ensure_timer_tables() -> None:
    """Create the focus session table if it doesn't exist."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS timer_sessions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            session_date DATE NOT NULL,
            duration_seconds INTEGER NOT NULL DEFAULT 0 CHECK (duration_seconds >= 0),
            started_at TIMESTAMP WITH TIME ZONE,
            ended_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_timer_sessions_user_date
        ON timer_sessions(user_id, session_date)
    """)


# ============================================
# PROGRESS
# ============================================

def summarize_sessions(
    sessions: Iterable[dict],
    session_date: date,
    target_hours: Optional[float] = None
) -> TimerSummary:
    """Total focus time for a day and progress toward the target, capped at 100%."""
    target = get_xp_config().focus_target_hours if target_hours is None else target_hours
    sessions = list(sessions)
    total_seconds = sum(s.get("duration_seconds") or 0 for s in sessions)

    progress = min(total_seconds / (target * 3600) * 100, 100) if target > 0 else 100.0

    return TimerSummary(
        session_date=session_date,
        sessions=sessions,
        total_seconds=total_seconds,
        total_hours=round(total_seconds / 3600, 2),
        target_hours=target,
        progress_percent=round(progress, 1)
    )


async def get_timer_summary(user_id: str, session_date: date) -> TimerSummary:
    sessions = await db.fetch("""
        SELECT * FROM timer_sessions
        WHERE user_id = $1 AND session_date = $2
        ORDER BY created_at DESC
    """, user_id, session_date)
    return summarize_sessions(sessions, session_date)


# ============================================
# SESSION OPERATIONS
# ============================================

async def start_session(user_id: str, session_date: date) -> dict:
    """Open a session with zero elapsed time."""
    session = await db.execute_returning("""
        INSERT INTO timer_sessions (user_id, session_date, duration_seconds, started_at)
        VALUES ($1, $2, 0, NOW())
        RETURNING *
    """, user_id, session_date)

    logger.info(f"Focus session started for {user_id} on {session_date}")
    return session


async def update_session(
    user_id: str,
    session_id: Optional[UUID],
    duration_seconds: Optional[int]
) -> dict:
    """Record the elapsed time of a session and stamp its end."""
    if session_id is None:
        raise InvalidInputError("session_id required", field="session_id")
    if duration_seconds is None or duration_seconds < 0:
        raise InvalidInputError(
            "duration_seconds must be zero or more", field="duration_seconds"
        )

    session = await db.execute_returning("""
        UPDATE timer_sessions
        SET duration_seconds = $1, ended_at = NOW()
        WHERE id = $2 AND user_id = $3
        RETURNING *
    """, duration_seconds, session_id, user_id)

    if not session:
        raise NotFoundError("timer session", session_id)
    return session


async def reset_sessions(user_id: str, session_date: date) -> int:
    """Delete every session for the day. Returns count of deleted."""
    result = await db.execute(
        "DELETE FROM timer_sessions WHERE user_id = $1 AND session_date = $2",
        user_id, session_date
    )
    removed = int(result.split()[-1]) if result else 0

    logger.info(f"Focus timer reset for {user_id} on {session_date} ({removed} sessions)")
    return removed


async def handle_timer_action(
    user_id: str,
    action: Optional[str],
    session_date: date,
    session_id: Optional[UUID] = None,
    duration_seconds: Optional[int] = None
) -> dict:
    """Dispatch a start/update/reset request from the dashboard timer."""
    if action == TimerAction.START.value:
        return {"success": True, "session": await start_session(user_id, session_date)}

    if action == TimerAction.UPDATE.value:
        session = await update_session(user_id, session_id, duration_seconds)
        return {"success": True, "session": session}

    if action == TimerAction.RESET.value:
        removed = await reset_sessions(user_id, session_date)
        return {"success": True, "message": "Timer reset", "sessions_removed": removed}

    raise InvalidInputError("Invalid action", field="action")
