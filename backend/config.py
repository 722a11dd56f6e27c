"""
XP System - Configuration Management
Supports .env files and runtime configuration for XP rules and notification content.
"""

from typing import Dict, Any, Literal
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


# ============================================
# XP RULES CONFIGURATION
# ============================================

class XPConfig(BaseSettings):
    """
    XP accounting rules.
    Thresholds drive day classification, streaks and level derivation.
    """
    personal_user_id: str = Field(
        default="00000000-0000-0000-0000-000000000001",
        min_length=1,
        description="Identity used by single-player flows when no user header is sent"
    )
    daily_goal: int = Field(
        default=70,
        ge=1,
        description="Daily XP needed for a pass day"
    )
    elite_threshold: int = Field(
        default=100,
        ge=1,
        description="Daily XP needed for an elite day"
    )
    xp_per_level: int = Field(
        default=500,
        ge=1,
        description="XP per level; level = total_xp // xp_per_level + 1"
    )
    completion_policy: Literal["repeatable", "once_per_day"] = Field(
        default="repeatable",
        description="Whether a quest may be completed more than once per day"
    )
    inactivity_days: int = Field(
        default=2,
        ge=1,
        description="Days without activity before an inactivity reminder is produced"
    )
    weekly_window_days: int = Field(
        default=7,
        ge=1,
        le=31,
        description="Length of the weekly summary window"
    )
    insight_streak_days: int = Field(
        default=7,
        ge=1,
        description="Streak length that earns a positive insight"
    )
    elite_ratio: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Minimum elite/pass day ratio before an insight is raised"
    )
    focus_target_hours: float = Field(
        default=4.0,
        gt=0,
        description="Daily focus timer target in hours"
    )
    mood_scale_max: int = Field(
        default=5,
        ge=1,
        description="Upper bound of the 1..N journal mood and energy ratings"
    )

    model_config = {
        "env_prefix": "XP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# NOTIFICATION CONFIGURATION
# ============================================

class NotificationConfig(BaseSettings):
    """Notification content settings. Delivery is handled elsewhere."""

    app_url: str = Field(
        default="http://localhost:3000",
        description="Dashboard URL linked from notification bodies"
    )
    email_from: str = Field(
        default="XP System <no-reply@example.com>",
        description="Sender recorded with queued notifications"
    )
    email_to: str = Field(
        default="",
        description="Default recipient recorded with queued notifications"
    )

    model_config = {
        "env_prefix": "NOTIFY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# LOGGING CONFIGURATION
# ============================================

class LoggingConfig(BaseSettings):
    """Console and rotating file log settings."""

    level: str = Field(default="INFO", description="Root level for the XPSystem logger")
    dir: str = Field(default="", description="Log directory; empty means backend/logs")
    file_name: str = Field(default="xp_system.log")
    max_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)
    backup_count: int = Field(default=5, ge=0)
    color: bool = Field(default=True, description="ANSI colors on the console handler")

    model_config = {
        "env_prefix": "XP_LOG_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# CACHED CONFIGURATION INSTANCES
# ============================================

@lru_cache()
def get_xp_config() -> XPConfig:
    """Get cached XP configuration instance."""
    return XPConfig()


@lru_cache()
def get_notification_config() -> NotificationConfig:
    """Get cached notification configuration instance."""
    return NotificationConfig()


@lru_cache()
def get_logging_config() -> LoggingConfig:
    """Get cached logging configuration instance."""
    return LoggingConfig()


def reload_config():
    """Clear configuration cache and reload from environment."""
    get_xp_config.cache_clear()
    get_notification_config.cache_clear()
    get_logging_config.cache_clear()


# ============================================
# CONFIGURATION SUMMARY
# ============================================

def get_config_summary() -> Dict[str, Any]:
    """
    Get a summary of all configuration values.
    Useful for debugging and settings display.
    """
    xp = get_xp_config()
    notify = get_notification_config()

    return {
        "xp": {
            "daily_goal": xp.daily_goal,
            "elite_threshold": xp.elite_threshold,
            "xp_per_level": xp.xp_per_level,
            "completion_policy": xp.completion_policy,
            "inactivity_days": xp.inactivity_days,
            "weekly_window_days": xp.weekly_window_days,
            "focus_target_hours": xp.focus_target_hours,
        },
        "notifications": {
            "app_url": notify.app_url,
            "has_recipient": bool(notify.email_to),
        },
    }
