"""
XP System - Activity Log
Append-only history of ledger actions with typed payloads
"""

import json
from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from database import db, to_json


# ============================================
# PAYLOAD MODELS
# ============================================

class QuestCompletedDetails(BaseModel):
    action: Literal["quest_completed"] = "quest_completed"
    quest_id: Optional[UUID] = None
    quest_name: Optional[str] = None


class QuestUncheckedDetails(BaseModel):
    action: Literal["quest_unchecked"] = "quest_unchecked"
    quest_id: Optional[UUID] = None
    quest_name: Optional[str] = None


class LevelUpDetails(BaseModel):
    action: Literal["level_up"] = "level_up"
    old_level: int
    new_level: int


class DailyResetDetails(BaseModel):
    action: Literal["daily_reset"] = "daily_reset"
    date: date


class OtherDetails(BaseModel):
    """Anything not covered above; the raw payload is kept as-is."""
    action: Literal["other"] = "other"
    action_type: str = "other"
    data: Dict[str, Any] = Field(default_factory=dict)


ActivityDetails = Annotated[
    Union[
        QuestCompletedDetails,
        QuestUncheckedDetails,
        LevelUpDetails,
        DailyResetDetails,
        OtherDetails,
    ],
    Field(discriminator="action"),
]

_details_adapter = TypeAdapter(ActivityDetails)

KNOWN_ACTIONS = {"quest_completed", "quest_unchecked", "level_up", "daily_reset"}


def parse_details(action_type: str, payload: Optional[Any]) -> ActivityDetails:
    """
    Parse a stored payload into its typed variant.

    Unknown action types or payloads that don't fit their variant fall back
    to OtherDetails carrying the raw map.
    """
    if isinstance(payload, str):
        payload = json.loads(payload)
    payload = dict(payload or {})

    if action_type not in KNOWN_ACTIONS:
        return OtherDetails(action_type=action_type, data=payload)
    try:
        return _details_adapter.validate_python({**payload, "action": action_type})
    except ValidationError:
        return OtherDetails(action_type=action_type, data=payload)


def details_action_type(details: ActivityDetails) -> str:
    if isinstance(details, OtherDetails):
        return details.action_type
    return details.action


# ============================================
# DATABASE OPERATIONS
# ============================================

async def ensure_activity_tables() -> None:
    """Create the activity log table if it doesn't exist."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS activity_log (
            id SERIAL PRIMARY KEY,
            user_id TEXT NOT NULL,
            action_type VARCHAR(50) NOT NULL,
            action_details JSONB,
            xp_change INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_activity_log_user
        ON activity_log(user_id, created_at DESC)
    """)


async def log_activity(conn, user_id: str, details: ActivityDetails, xp_change: int = 0) -> None:
    """Append an activity row on the caller's connection (same transaction)."""
    if isinstance(details, OtherDetails):
        payload = details.data
    else:
        payload = details.model_dump(mode="json", exclude={"action"})

    await conn.execute("""
        INSERT INTO activity_log (user_id, action_type, action_details, xp_change)
        VALUES ($1, $2, $3::jsonb, $4)
    """, user_id, details_action_type(details), to_json(payload), xp_change)


async def get_activity(user_id: str, limit: int = 50, offset: int = 0) -> List[dict]:
    rows = await db.fetch("""
        SELECT * FROM activity_log
        WHERE user_id = $1
        ORDER BY created_at DESC, id DESC
        LIMIT $2 OFFSET $3
    """, user_id, limit, offset)

    for row in rows:
        details = parse_details(row["action_type"], row.get("action_details"))
        row["action_details"] = details.model_dump(mode="json")
    return rows
