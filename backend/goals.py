"""
XP System - Goals
Longer-term targets (e.g. "10,000 XP by June") with progress and status
"""

from datetime import date
from typing import Optional, List
from uuid import UUID

from database import db
from exceptions import InvalidInputError, NotFoundError
from logger import logger
from models import GoalStatus


GOAL_SELECT = """
    SELECT
        g.*,
        CASE
            WHEN g.target_value > 0
            THEN ROUND(g.current_value::NUMERIC / g.target_value * 100, 1)
            ELSE 0
        END as progress_percent,
        CASE
            WHEN g.deadline IS NOT NULL
            THEN g.deadline - CURRENT_DATE
            ELSE NULL
        END as days_remaining
    FROM goals g
"""


# ============================================
# DATABASE INITIALIZATION
# ============================================

async def ensure_goal_tables() -> None:
    """Create the goals table if it doesn't exist."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS goals (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            name VARCHAR(200) NOT NULL,
            target_value INTEGER NOT NULL,
            current_value INTEGER NOT NULL DEFAULT 0,
            unit VARCHAR(30) NOT NULL DEFAULT 'XP',
            deadline DATE,
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            completed_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """)


# ============================================
# GOAL OPERATIONS
# ============================================

async def list_goals(user_id: str) -> List[dict]:
    """All of a user's goals, newest first."""
    return await db.fetch(
        GOAL_SELECT + " WHERE g.user_id = $1 ORDER BY g.created_at DESC",
        user_id
    )


async def get_goal(user_id: str, goal_id: UUID) -> dict:
    goal = await db.fetch_one(
        GOAL_SELECT + " WHERE g.id = $1 AND g.user_id = $2",
        goal_id, user_id
    )
    if not goal:
        raise NotFoundError("goal", goal_id)
    return goal


async def create_goal(
    user_id: str,
    name: Optional[str],
    target_value: Optional[int],
    unit: Optional[str] = None,
    deadline: Optional[date] = None
) -> dict:
    """Create a goal. A missing or zero target is rejected."""
    if not name or not name.strip() or not target_value:
        raise InvalidInputError("name and target_value required")

    goal = await db.execute_returning("""
        INSERT INTO goals (user_id, name, target_value, unit, deadline)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING *
    """, user_id, name.strip(), target_value, unit or "XP", deadline)

    logger.info(f"Created goal '{goal['name']}' for {user_id}")
    return goal


async def update_goal(
    user_id: str,
    goal_id: UUID,
    current_value: Optional[int] = None,
    status: Optional[str] = None
) -> dict:
    """
    Update progress and/or status.

    Moving to completed stamps completed_at.
    """
    updates = {}
    if current_value is not None:
        updates["current_value"] = current_value
    if status is not None:
        if status not in {s.value for s in GoalStatus}:
            raise InvalidInputError(f"Unknown goal status '{status}'", field="status")
        updates["status"] = status

    if not updates:
        return await get_goal(user_id, goal_id)

    set_parts = []
    values = []
    for i, (k, v) in enumerate(updates.items(), 1):
        set_parts.append(f"{k} = ${i}")
        values.append(v)
    if status == GoalStatus.COMPLETED.value:
        set_parts.append("completed_at = NOW()")
    values.extend([goal_id, user_id])
    set_clause = ", ".join(set_parts)

    goal = await db.execute_returning(
        f"UPDATE goals SET {set_clause} "
        f"WHERE id = ${len(values) - 1} AND user_id = ${len(values)} RETURNING *",
        *values
    )
    if not goal:
        raise NotFoundError("goal", goal_id)
    return goal


async def delete_goal(user_id: str, goal_id: UUID) -> bool:
    result = await db.execute(
        "DELETE FROM goals WHERE id = $1 AND user_id = $2", goal_id, user_id
    )
    if "DELETE 1" not in result:
        raise NotFoundError("goal", goal_id)
    logger.info(f"Deleted goal {goal_id}")
    return True
