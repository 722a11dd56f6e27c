"""
XP System - Completion Ledger
Record and undo quest completions while keeping daily_logs and profiles in step.

Every mutation runs in a single transaction: the user's profile row is
locked first, which serializes concurrent toggles for the same user, then
the day's aggregate row is locked, updated and the profile is rewritten.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from activity import (
    DailyResetDetails,
    LevelUpDetails,
    QuestCompletedDetails,
    QuestUncheckedDetails,
    log_activity,
)
from config import get_xp_config
from database import db, lock_profile, save_profile
from exceptions import DuplicateCompletionError, NotFoundError
from logger import logger
from models import (
    Completion,
    CompletionResult,
    DailyLog,
    Profile,
    RemovalResult,
    ResetResult,
)
from xp_rules import (
    aggregate_completions,
    apply_xp_delta,
    build_daily_log,
    compute_streaks,
    level_for_xp,
)


COMPLETION_SELECT = """
    SELECT c.*, q.name AS quest_name, q.category AS quest_category
    FROM quest_completions c
    LEFT JOIN quests q ON c.quest_id = q.id
"""

DAILY_LOG_COLUMNS = "user_id, log_date, total_xp, quests_completed"


def today() -> date:
    """Current UTC date; completion dates default to this."""
    return datetime.now(timezone.utc).date()


# ============================================
# DATABASE INITIALIZATION
# ============================================

async def ensure_ledger_tables() -> None:
    """Create profile, completion and daily aggregate tables if they don't exist."""

    await db.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            username VARCHAR(100),
            email VARCHAR(255),
            total_xp INTEGER NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            level INTEGER NOT NULL DEFAULT 1,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_active_date DATE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS quest_completions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            quest_id UUID REFERENCES quests(id) ON DELETE SET NULL,
            completion_date DATE NOT NULL,
            xp_earned INTEGER NOT NULL,
            completed_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS daily_logs (
            id SERIAL PRIMARY KEY,
            user_id TEXT NOT NULL,
            log_date DATE NOT NULL,
            total_xp INTEGER NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            quests_completed INTEGER NOT NULL DEFAULT 0 CHECK (quests_completed >= 0),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            UNIQUE(user_id, log_date)
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_quest_completions_user_date
        ON quest_completions(user_id, completion_date)
    """)


# ============================================
# ROW HELPERS (caller holds the transaction)
# ============================================

async def _lock_daily_log(conn, user_id: str, log_date: date) -> Optional[DailyLog]:
    row = await conn.fetchrow(
        f"""SELECT {DAILY_LOG_COLUMNS} FROM daily_logs
            WHERE user_id = $1 AND log_date = $2
            FOR UPDATE""",
        user_id, log_date
    )
    return DailyLog.model_validate(dict(row)) if row else None


async def _save_daily_log(conn, log: DailyLog) -> DailyLog:
    row = await conn.fetchrow(
        f"""INSERT INTO daily_logs (user_id, log_date, total_xp, quests_completed)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (user_id, log_date) DO UPDATE SET
                total_xp = EXCLUDED.total_xp,
                quests_completed = EXCLUDED.quests_completed,
                updated_at = NOW()
            RETURNING {DAILY_LOG_COLUMNS}""",
        log.user_id, log.log_date, log.total_xp, log.quests_completed
    )
    return DailyLog.model_validate(dict(row))


async def _refresh_profile(conn, profile: Profile) -> Profile:
    """Recompute streaks over the full history and persist the profile."""
    rows = await conn.fetch(
        f"SELECT {DAILY_LOG_COLUMNS} FROM daily_logs WHERE user_id = $1 ORDER BY log_date",
        profile.id
    )
    streaks = compute_streaks(DailyLog.model_validate(dict(row)) for row in rows)
    profile = profile.model_copy(update=streaks.model_dump())
    return Profile.model_validate(await save_profile(conn, profile))


async def _rebuild_daily_log(
    conn,
    user_id: str,
    log_date: date,
    previous: Optional[DailyLog]
) -> Tuple[Optional[DailyLog], int]:
    """
    Rewrite a day's row from its remaining completions.

    Returns the saved row (None when the day never had one and has nothing
    to record) and the change in total_xp to apply to the profile.
    """
    rows = await conn.fetch(
        """SELECT xp_earned FROM quest_completions
           WHERE user_id = $1 AND completion_date = $2""",
        user_id, log_date
    )
    if previous is None and not rows:
        return None, 0

    log = await _save_daily_log(
        conn, build_daily_log(user_id, log_date, [row["xp_earned"] for row in rows])
    )
    return log, log.total_xp - (previous.total_xp if previous else 0)


async def _remove_locked(conn, profile: Profile, completion: Completion) -> RemovalResult:
    previous = await _lock_daily_log(conn, profile.id, completion.completion_date)
    await conn.execute("DELETE FROM quest_completions WHERE id = $1", completion.id)

    log, delta = await _rebuild_daily_log(
        conn, profile.id, completion.completion_date, previous
    )
    profile, _ = apply_xp_delta(profile, delta)
    profile = await _refresh_profile(conn, profile)

    await log_activity(
        conn, profile.id,
        QuestUncheckedDetails(quest_id=completion.quest_id, quest_name=completion.quest_name),
        -completion.xp_earned
    )

    return RemovalResult(
        completion=completion,
        daily_log=log,
        profile=profile,
        xp_deducted=completion.xp_earned
    )


# ============================================
# LEDGER OPERATIONS
# ============================================

async def record_completion(
    user_id: str,
    quest_id: UUID,
    completion_date: Optional[date] = None
) -> CompletionResult:
    """
    Record a quest completion for a date (default: today).

    xp_earned is a snapshot of the quest's xp_value at record time. The
    day's aggregate and the profile are updated in the same transaction.
    Raises NotFoundError for an unknown quest, DuplicateCompletionError when
    the once_per_day policy is active and the quest is already done.
    """
    config = get_xp_config()
    completion_date = completion_date or today()

    async with db.transaction() as conn:
        quest = await conn.fetchrow("SELECT * FROM quests WHERE id = $1", quest_id)
        if not quest or (not quest["is_global"] and quest["user_id"] != user_id):
            logger.warning(f"Completion rejected: quest {quest_id} not found for {user_id}")
            raise NotFoundError("quest", quest_id)

        profile = Profile.model_validate(await lock_profile(conn, user_id))

        if config.completion_policy == "once_per_day":
            already_done = await conn.fetchval(
                """SELECT COUNT(*) FROM quest_completions
                   WHERE user_id = $1 AND quest_id = $2 AND completion_date = $3""",
                user_id, quest_id, completion_date
            )
            if already_done:
                raise DuplicateCompletionError(quest_id, completion_date)

        xp_earned = quest["xp_value"]
        row = await conn.fetchrow(
            """INSERT INTO quest_completions (user_id, quest_id, completion_date, xp_earned)
               VALUES ($1, $2, $3, $4)
               RETURNING *""",
            user_id, quest_id, completion_date, xp_earned
        )
        completion = Completion.model_validate({
            **dict(row),
            "quest_name": quest["name"],
            "quest_category": quest["category"],
        })

        previous = await _lock_daily_log(conn, user_id, completion_date)
        log, delta = await _rebuild_daily_log(conn, user_id, completion_date, previous)

        profile, level_up = apply_xp_delta(profile, delta, active_date=completion_date)
        profile = await _refresh_profile(conn, profile)

        await log_activity(
            conn, user_id,
            QuestCompletedDetails(quest_id=quest_id, quest_name=quest["name"]),
            xp_earned
        )
        if level_up:
            await log_activity(
                conn, user_id,
                LevelUpDetails(old_level=level_up.old_level, new_level=level_up.new_level)
            )

    logger.info(
        f"Recorded completion of '{quest['name']}' for {user_id} on {completion_date} "
        f"({xp_earned:+d} XP, day total {log.total_xp})"
    )
    if level_up:
        logger.info(f"{user_id} reached level {level_up.new_level}")

    return CompletionResult(
        completion=completion,
        daily_log=log,
        profile=profile,
        xp_earned=xp_earned,
        level_up=level_up
    )


async def remove_completion(user_id: str, completion_id: UUID) -> RemovalResult:
    """
    Undo a completion: delete it and reverse its aggregate and profile effect.

    Raises NotFoundError when the completion doesn't exist for this user.
    """
    async with db.transaction() as conn:
        profile = Profile.model_validate(await lock_profile(conn, user_id))

        row = await conn.fetchrow(
            COMPLETION_SELECT + " WHERE c.id = $1 AND c.user_id = $2",
            completion_id, user_id
        )
        if not row:
            logger.warning(f"Removal rejected: completion {completion_id} not found for {user_id}")
            raise NotFoundError("completion", completion_id)

        result = await _remove_locked(conn, profile, Completion.model_validate(dict(row)))

    logger.info(f"Removed completion {completion_id} for {user_id} ({-result.xp_deducted:+d} XP)")
    return result


async def uncheck_quest(
    user_id: str,
    quest_id: UUID,
    completion_date: Optional[date] = None
) -> RemovalResult:
    """Remove the latest completion of a quest on a date (dashboard toggle-off)."""
    completion_date = completion_date or today()

    async with db.transaction() as conn:
        profile = Profile.model_validate(await lock_profile(conn, user_id))

        row = await conn.fetchrow(
            COMPLETION_SELECT + """
            WHERE c.user_id = $1 AND c.quest_id = $2 AND c.completion_date = $3
            ORDER BY c.completed_at DESC
            LIMIT 1""",
            user_id, quest_id, completion_date
        )
        if not row:
            raise NotFoundError("completion", quest_id)

        result = await _remove_locked(conn, profile, Completion.model_validate(dict(row)))

    logger.info(f"Unchecked quest {quest_id} for {user_id} on {completion_date}")
    return result


async def reset_day(user_id: str, log_date: Optional[date] = None) -> ResetResult:
    """
    Delete every completion and the aggregate row for a date.

    The profile loses exactly what the day's aggregate held.
    """
    log_date = log_date or today()

    async with db.transaction() as conn:
        profile = Profile.model_validate(await lock_profile(conn, user_id))
        log = await _lock_daily_log(conn, user_id, log_date)

        status = await conn.execute(
            "DELETE FROM quest_completions WHERE user_id = $1 AND completion_date = $2",
            user_id, log_date
        )
        await conn.execute(
            "DELETE FROM daily_logs WHERE user_id = $1 AND log_date = $2",
            user_id, log_date
        )

        xp_removed = log.total_xp if log else 0
        profile, _ = apply_xp_delta(profile, -xp_removed)
        profile = await _refresh_profile(conn, profile)

        await log_activity(conn, user_id, DailyResetDetails(date=log_date), -xp_removed)

    removed = int(status.split()[-1]) if status else 0
    logger.info(f"Reset {log_date} for {user_id}: {removed} completions, {-xp_removed:+d} XP")

    return ResetResult(
        log_date=log_date,
        completions_removed=removed,
        xp_removed=xp_removed,
        profile=profile
    )


async def recompute_aggregates(user_id: str) -> Dict[str, Any]:
    """
    Rebuild daily_logs and profile totals from the completion ledger.

    Repair path for drift; the hot path stays incremental.
    """
    async with db.transaction() as conn:
        profile = Profile.model_validate(await lock_profile(conn, user_id))

        rows = await conn.fetch(
            "SELECT completion_date, xp_earned FROM quest_completions WHERE user_id = $1",
            user_id
        )
        logs = aggregate_completions(
            user_id, [(row["completion_date"], row["xp_earned"]) for row in rows]
        )

        await conn.execute("DELETE FROM daily_logs WHERE user_id = $1", user_id)
        if logs:
            await conn.executemany(
                """INSERT INTO daily_logs (user_id, log_date, total_xp, quests_completed)
                   VALUES ($1, $2, $3, $4)""",
                [(log.user_id, log.log_date, log.total_xp, log.quests_completed) for log in logs]
            )

        total_xp = sum(log.total_xp for log in logs)
        profile = profile.model_copy(update={
            "total_xp": total_xp,
            "level": level_for_xp(total_xp),
        })
        profile = await _refresh_profile(conn, profile)

    logger.info(f"Recomputed {len(logs)} daily logs for {user_id} (total {total_xp} XP)")
    return {"days_rebuilt": len(logs), "profile": profile}


async def query_completions(
    user_id: str,
    on: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None
) -> List[Completion]:
    """
    Completions for an exact date, or an inclusive [start, end] range when
    no exact date is given. Most recent first.
    """
    conditions = ["c.user_id = $1"]
    params: List[Any] = [user_id]

    if on:
        params.append(on)
        conditions.append(f"c.completion_date = ${len(params)}")
    else:
        if start:
            params.append(start)
            conditions.append(f"c.completion_date >= ${len(params)}")
        if end:
            params.append(end)
            conditions.append(f"c.completion_date <= ${len(params)}")

    rows = await db.fetch(
        COMPLETION_SELECT
        + f" WHERE {' AND '.join(conditions)} ORDER BY c.completed_at DESC",
        *params
    )
    return [Completion.model_validate(row) for row in rows]
