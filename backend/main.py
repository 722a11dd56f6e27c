"""
XP System - FastAPI Backend
Quest catalog, completion ledger, insights, daily trackers and notification content
"""

from datetime import date
from contextlib import asynccontextmanager
from typing import Optional, List
from uuid import UUID

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from activity import ensure_activity_tables, get_activity
from config import get_config_summary, get_xp_config
from database import db, ensure_profile, get_daily_logs, ping
from exceptions import InvalidInputError, UnauthorizedError, XPSystemError
from goals import create_goal, delete_goal, ensure_goal_tables, list_goals, update_goal
from insights import classify_days, get_insights
from journal import ensure_journal_tables, get_journal_entry, save_journal_entry
from ledger import (
    ensure_ledger_tables, query_completions, recompute_aggregates,
    record_completion, remove_completion, reset_day, today, uncheck_quest
)
from logger import logger
from models import (
    CompletionCreate, DailyLog, GoalCreate, GoalUpdate, HealthStatus, InsightsReport,
    JournalEntryInput, Profile, QuestCreate, QuestUpdate, StatsReport, TimerRequest,
    TimerSummary
)
from notifications import (
    create_check_in, create_daily_reminder, create_inactivity_reminder,
    create_weekly_summary, ensure_notification_tables
)
from quests import (
    create_quest, delete_quest, ensure_quest_tables, get_quest,
    list_quests, seed_default_quests, update_quest
)
from stats import ensure_social_tables, get_leaderboard, get_stats
from timer import ensure_timer_tables, get_timer_summary, handle_timer_action


VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    await db.connect()

    await ensure_quest_tables()
    await ensure_ledger_tables()
    await ensure_activity_tables()
    await ensure_notification_tables()
    await ensure_social_tables()
    await ensure_journal_tables()
    await ensure_timer_tables()
    await ensure_goal_tables()

    seeded = await seed_default_quests()
    await ensure_profile(get_xp_config().personal_user_id, "Player")

    logger.info(f"Server started (v{VERSION}, {seeded} quests seeded)")
    yield
    # Shutdown
    logger.info("Server shutting down")
    await db.disconnect()


app = FastAPI(
    title="XP System",
    description="Gamified daily quest tracking with XP, levels and streaks",
    version=VERSION,
    lifespan=lifespan
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(XPSystemError)
async def xp_error_handler(request: Request, exc: XPSystemError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message}
    )


async def current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity from X-User-Id, or the configured personal user."""
    if x_user_id is None:
        return get_xp_config().personal_user_id
    if not x_user_id.strip():
        raise UnauthorizedError("Missing user identity")
    return x_user_id.strip()


# ============================================
# HEALTH & CONFIG
# ============================================

@app.get("/health", response_model=HealthStatus)
@app.get("/api/health", response_model=HealthStatus)
async def health_check():
    """Check API and database health."""
    try:
        database = "connected" if await ping() else "error"
    except XPSystemError:
        database = "disconnected"

    return HealthStatus(
        status="healthy" if database == "connected" else "degraded",
        version=VERSION,
        database=database
    )


@app.get("/api/config")
async def read_config():
    """Active XP rules and notification settings."""
    return get_config_summary()


# ============================================
# QUEST CATALOG
# ============================================

@app.get("/api/quests", response_model=List[dict])
async def list_quests_endpoint(user_id: str = Depends(current_user)):
    """Global quests plus the caller's custom quests."""
    return await list_quests(user_id)


@app.post("/api/quests", status_code=201)
async def create_quest_endpoint(quest: QuestCreate, user_id: str = Depends(current_user)):
    """Create a custom (or global) quest."""
    return await create_quest(
        name=quest.name,
        xp_value=quest.xp_value,
        user_id=user_id,
        category=quest.category,
        description=quest.description,
        icon=quest.icon,
        sort_order=quest.sort_order,
        is_global=quest.is_global
    )


@app.get("/api/quests/{quest_id}")
async def get_quest_endpoint(quest_id: UUID, user_id: str = Depends(current_user)):
    return await get_quest(quest_id, user_id)


@app.patch("/api/quests/{quest_id}")
async def update_quest_endpoint(
    quest_id: UUID,
    updates: QuestUpdate,
    user_id: str = Depends(current_user)
):
    """Update a quest. Past completions keep their recorded XP."""
    return await update_quest(quest_id, user_id, **updates.model_dump(exclude_unset=True))


@app.delete("/api/quests/{quest_id}")
async def delete_quest_endpoint(quest_id: UUID, user_id: str = Depends(current_user)):
    await delete_quest(quest_id, user_id)
    return {"success": True}


# ============================================
# COMPLETION LEDGER
# ============================================

@app.get("/api/completions")
async def list_completions(
    on: Optional[date] = Query(None, alias="date"),
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    user_id: str = Depends(current_user)
):
    """Completions on a date, or within [from, to]."""
    return await query_completions(user_id, on=on, start=start, end=end)


@app.post("/api/completions", status_code=201)
async def create_completion(body: CompletionCreate, user_id: str = Depends(current_user)):
    """Record a quest completion; returns the XP earned and any level-up."""
    if body.quest_id is None:
        raise InvalidInputError("quest_id required", field="quest_id")

    result = await record_completion(user_id, body.quest_id, body.completion_date)
    return {
        "success": True,
        "xp_earned": result.xp_earned,
        "completion": result.completion,
        "daily_log": result.daily_log,
        "profile": result.profile,
        "level_up": result.level_up,
    }


@app.post("/api/completions/uncheck")
async def uncheck_completion(body: CompletionCreate, user_id: str = Depends(current_user)):
    """Remove the latest completion of a quest on a date."""
    if body.quest_id is None:
        raise InvalidInputError("quest_id required", field="quest_id")

    result = await uncheck_quest(user_id, body.quest_id, body.completion_date)
    return {"success": True, "xp_deducted": result.xp_deducted, "profile": result.profile}


@app.post("/api/completions/reset")
async def reset_completions(
    on: Optional[date] = Query(None, alias="date"),
    user_id: str = Depends(current_user)
):
    """Clear every completion for a day (default today)."""
    return await reset_day(user_id, on)


@app.post("/api/completions/recompute")
async def recompute_completions(user_id: str = Depends(current_user)):
    """Rebuild daily logs and profile totals from the ledger."""
    return await recompute_aggregates(user_id)


@app.delete("/api/completions/{completion_id}")
async def delete_completion(completion_id: UUID, user_id: str = Depends(current_user)):
    result = await remove_completion(user_id, completion_id)
    return {
        "success": True,
        "xp_deducted": result.xp_deducted,
        "daily_log": result.daily_log,
        "profile": result.profile,
    }


# ============================================
# AGGREGATES & ANALYTICS
# ============================================

@app.get("/api/logs", response_model=List[dict])
async def list_logs(
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    user_id: str = Depends(current_user)
):
    """Daily aggregates, newest first."""
    return await get_daily_logs(user_id, start=start, end=end, limit=limit)


@app.get("/api/profile", response_model=Profile)
async def read_profile(user_id: str = Depends(current_user)):
    return Profile.model_validate(await ensure_profile(user_id))


@app.get("/api/insights", response_model=InsightsReport)
async def read_insights(
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    user_id: str = Depends(current_user)
):
    """Insights for a window; defaults to the current year."""
    return await get_insights(user_id, start=start, end=end, today=today())


@app.get("/api/calendar")
async def read_calendar(
    start: date = Query(..., alias="from"),
    end: date = Query(..., alias="to"),
    user_id: str = Depends(current_user)
):
    """Status (elite/pass/fail/none) for every day in [from, to]."""
    if end < start:
        raise InvalidInputError("'to' must not be before 'from'", field="to")
    if (end - start).days > 366:
        raise InvalidInputError("Calendar range is limited to one year", field="to")

    rows = await get_daily_logs(user_id, start=start, end=end, newest_first=False)
    statuses = classify_days([DailyLog.model_validate(r) for r in rows], start, end)
    return {day.isoformat(): status.value for day, status in statuses.items()}


@app.get("/api/stats", response_model=StatsReport)
async def read_stats(user_id: str = Depends(current_user)):
    return await get_stats(user_id)


@app.get("/api/leaderboard")
async def read_leaderboard(user_id: str = Depends(current_user)):
    """The caller and accepted friends ranked by lifetime XP."""
    return await get_leaderboard(user_id)


@app.get("/api/activity", response_model=List[dict])
async def read_activity(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(current_user)
):
    return await get_activity(user_id, limit, offset)


# ============================================
# JOURNAL, FOCUS TIMER & GOALS
# ============================================

@app.get("/api/journal")
async def read_journal(
    on: Optional[date] = Query(None, alias="date"),
    user_id: str = Depends(current_user)
):
    """The journal entry for a date (default today), or null."""
    return {"entry": await get_journal_entry(user_id, on or today())}


@app.post("/api/journal")
async def write_journal(body: JournalEntryInput, user_id: str = Depends(current_user)):
    """Create or replace the entry for a date."""
    entry = await save_journal_entry(
        user_id,
        body.entry_date or today(),
        content=body.content,
        mood=body.mood,
        energy=body.energy
    )
    return {"success": True, "entry": entry}


@app.get("/api/timer", response_model=TimerSummary)
async def read_timer(user_id: str = Depends(current_user)):
    """Today's focus sessions and progress toward the daily target."""
    return await get_timer_summary(user_id, today())


@app.post("/api/timer")
async def timer_action(body: TimerRequest, user_id: str = Depends(current_user)):
    """start, update (session_id + duration_seconds) or reset today's sessions."""
    return await handle_timer_action(
        user_id,
        body.action,
        today(),
        session_id=body.session_id,
        duration_seconds=body.duration_seconds
    )


@app.get("/api/goals")
async def read_goals(user_id: str = Depends(current_user)):
    return {"goals": await list_goals(user_id)}


@app.post("/api/goals", status_code=201)
async def create_goal_endpoint(goal: GoalCreate, user_id: str = Depends(current_user)):
    created = await create_goal(
        user_id, goal.name, goal.target_value, unit=goal.unit, deadline=goal.deadline
    )
    return {"success": True, "goal": created}


@app.patch("/api/goals/{goal_id}")
async def update_goal_endpoint(
    goal_id: UUID,
    updates: GoalUpdate,
    user_id: str = Depends(current_user)
):
    """Update progress or status; completing a goal stamps completed_at."""
    goal = await update_goal(
        user_id, goal_id, current_value=updates.current_value, status=updates.status
    )
    return {"success": True, "goal": goal}


@app.delete("/api/goals/{goal_id}")
async def delete_goal_endpoint(goal_id: UUID, user_id: str = Depends(current_user)):
    await delete_goal(user_id, goal_id)
    return {"success": True}


# ============================================
# NOTIFICATIONS
# ============================================

@app.post("/api/notifications/check-in")
async def notify_check_in(user_id: str = Depends(current_user)):
    """Queue today's check-in message."""
    return await create_check_in(user_id, today())


@app.post("/api/notifications/inactive")
async def notify_inactive(user_id: str = Depends(current_user)):
    """Queue an inactivity reminder when one is due."""
    return await create_inactivity_reminder(user_id, today())


@app.post("/api/notifications/weekly")
async def notify_weekly(user_id: str = Depends(current_user)):
    """Queue the weekly summary for the trailing window."""
    return await create_weekly_summary(user_id, today())


@app.post("/api/notifications/daily")
async def notify_daily(user_id: str = Depends(current_user)):
    """Queue the daily quest reminder."""
    return await create_daily_reminder(user_id, today())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
