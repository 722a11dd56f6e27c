"""
XP System - Pydantic Models (v2 syntax)
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


# ============================================
# ENUMS
# ============================================

class DayStatus(str, Enum):
    ELITE = "elite"
    PASS = "pass"
    FAIL = "fail"
    NONE = "none"


class NotificationType(str, Enum):
    DAILY_CHECK_IN = "daily_check_in"
    INACTIVITY_REMINDER = "inactivity_reminder"
    WEEKLY_SUMMARY = "weekly_summary"
    DAILY_REMINDER = "daily_reminder"


class WeekTier(str, Enum):
    PERFECT = "perfect"
    GREAT = "great"
    IMPROVEMENT = "improvement"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


class TimerAction(str, Enum):
    START = "start"
    UPDATE = "update"
    RESET = "reset"


# ============================================
# QUEST MODELS
# ============================================

class QuestBase(BaseModel):
    name: str
    xp_value: int
    category: str = "custom"
    description: Optional[str] = None
    icon: Optional[str] = None


class QuestCreate(QuestBase):
    name: Optional[str] = None
    xp_value: Optional[int] = None
    sort_order: Optional[int] = None
    is_global: bool = False


class QuestUpdate(BaseModel):
    name: Optional[str] = None
    xp_value: Optional[int] = None
    category: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = None


class Quest(QuestBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sort_order: int = 100
    user_id: Optional[str] = None
    is_global: bool = True
    created_at: Optional[datetime] = None


# ============================================
# LEDGER MODELS
# ============================================

class CompletionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quest_id: Optional[UUID] = None
    completion_date: Optional[date] = Field(default=None, alias="date")


class Completion(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    quest_id: Optional[UUID] = None
    completion_date: date
    xp_earned: int
    completed_at: datetime
    quest_name: Optional[str] = None
    quest_category: Optional[str] = None


class DailyLog(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    log_date: date
    total_xp: int = 0
    quests_completed: int = 0


class Profile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: Optional[str] = None
    total_xp: int = 0
    level: int = 1
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[date] = None


class LevelUp(BaseModel):
    old_level: int
    new_level: int


class StreakSummary(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0


class CompletionResult(BaseModel):
    completion: Completion
    daily_log: DailyLog
    profile: Profile
    xp_earned: int
    level_up: Optional[LevelUp] = None


class RemovalResult(BaseModel):
    completion: Completion
    daily_log: Optional[DailyLog] = None
    profile: Profile
    xp_deducted: int


class ResetResult(BaseModel):
    log_date: date
    completions_removed: int
    xp_removed: int
    profile: Profile


# ============================================
# JOURNAL, TIMER & GOAL MODELS
# ============================================

class JournalEntryInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entry_date: Optional[date] = Field(default=None, alias="date")
    content: Optional[str] = None
    mood: Optional[int] = None
    energy: Optional[int] = None


class TimerRequest(BaseModel):
    action: Optional[str] = None
    session_id: Optional[UUID] = None
    duration_seconds: Optional[int] = None


class TimerSummary(BaseModel):
    session_date: date
    sessions: List[Dict[str, Any]] = Field(default_factory=list)
    total_seconds: int = 0
    total_hours: float = 0.0
    target_hours: float = 4.0
    progress_percent: float = 0.0


class GoalCreate(BaseModel):
    name: Optional[str] = None
    target_value: Optional[int] = None
    unit: Optional[str] = None
    deadline: Optional[date] = None


class GoalUpdate(BaseModel):
    current_value: Optional[int] = None
    status: Optional[str] = None


# ============================================
# ANALYTICS MODELS
# ============================================

class DayXP(BaseModel):
    date: date
    xp: int


class InsightsReport(BaseModel):
    totalDays: int = 0
    passDays: int = 0
    eliteDays: int = 0
    failDays: int = 0
    averageXP: int = 0
    bestDay: Optional[DayXP] = None
    worstDay: Optional[DayXP] = None
    currentStreak: int = 0
    longestStreak: int = 0
    weekdayAvg: Dict[str, int] = Field(default_factory=dict)
    suggestions: List[str] = Field(default_factory=list)


class WeeklyStats(BaseModel):
    start_date: date
    end_date: date
    total_week_xp: int
    days_logged: int
    days_goal_met: int
    elite_days: int
    avg_xp: int
    weekly_streak: int
    perfect_week: bool
    tier: WeekTier


class EmailContent(BaseModel):
    subject: str
    body: str
    html: str


class HealthStatus(BaseModel):
    status: str = "healthy"
    version: str = "1.0.0"
    database: str = "connected"


class LeaderboardEntry(BaseModel):
    id: str
    username: Optional[str] = None
    total_xp: int = 0
    level: int = 1
    current_streak: int = 0
    longest_streak: int = 0
    today_xp: int = 0
    is_you: bool = False


class StatsReport(BaseModel):
    profile: Dict[str, Any]
    overview: Dict[str, Any]
    categories: Dict[str, Dict[str, int]]
    quest_frequency: Dict[str, int]
    total_quests: int
    total_completions: int
