"""
XP System - Quest Catalog
Global and per-user quest definitions with XP values
"""

from typing import Optional, List
from uuid import UUID

from database import db
from exceptions import InvalidInputError, NotFoundError
from logger import logger


UPDATABLE_FIELDS = ("name", "xp_value", "category", "description", "icon", "sort_order")

DEFAULT_QUESTS = [
    # (name, xp_value, category, icon, sort_order)
    ("Wake up before 7 AM", 10, "discipline", "🌅", 1),
    ("Workout 30+ minutes", 20, "health", "💪", 2),
    ("Deep work 2 hours", 30, "focus", "🧠", 3),
    ("Read 20 pages", 15, "growth", "📚", 4),
    ("Hit protein target", 10, "health", "🥩", 5),
    ("Drink 3L water", 5, "health", "💧", 6),
    ("Journal entry", 10, "mind", "📝", 7),
    ("No social media scrolling", 10, "discipline", "📵", 8),
    ("Log meals", 0, "health", "🍽️", 9),
    ("Junk food / skipped workout", -20, "penalty", "⚠️", 99),
]


# ============================================
# DATABASE INITIALIZATION
# ============================================

async def ensure_quest_tables() -> None:
    """Create the quest catalog table if it doesn't exist."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS quests (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(200) NOT NULL,
            xp_value INTEGER NOT NULL,
            category VARCHAR(50) NOT NULL DEFAULT 'custom',
            description TEXT,
            icon VARCHAR(20),
            sort_order INTEGER NOT NULL DEFAULT 100,
            user_id TEXT,
            is_global BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_quests_owner
        ON quests(user_id, sort_order)
    """)


async def seed_default_quests() -> int:
    """Seed the global catalog when it is empty. Returns count of inserted."""
    existing = await db.fetch_one("SELECT COUNT(*) AS count FROM quests WHERE is_global = true")
    if existing and existing["count"] > 0:
        return 0

    for name, xp_value, category, icon, sort_order in DEFAULT_QUESTS:
        await db.execute("""
            INSERT INTO quests (name, xp_value, category, icon, sort_order, is_global)
            VALUES ($1, $2, $3, $4, $5, true)
        """, name, xp_value, category, icon, sort_order)

    logger.info(f"Seeded {len(DEFAULT_QUESTS)} default quests")
    return len(DEFAULT_QUESTS)


# ============================================
# QUEST OPERATIONS
# ============================================

async def list_quests(user_id: Optional[str] = None) -> List[dict]:
    """Global quests plus the user's own custom quests."""
    if user_id:
        return await db.fetch("""
            SELECT * FROM quests
            WHERE is_global = true OR user_id = $1
            ORDER BY sort_order, name
        """, user_id)
    return await db.fetch(
        "SELECT * FROM quests WHERE is_global = true ORDER BY sort_order, name"
    )


async def get_quest(quest_id: UUID, user_id: Optional[str] = None) -> dict:
    """A quest by id. With user_id, another user's custom quest reads as missing."""
    quest = await db.fetch_one("SELECT * FROM quests WHERE id = $1", quest_id)
    if not quest or (user_id and not quest["is_global"] and quest["user_id"] != user_id):
        logger.warning(f"Quest {quest_id} not found")
        raise NotFoundError("quest", quest_id)
    return quest


async def create_quest(
    name: Optional[str],
    xp_value: Optional[int],
    user_id: Optional[str] = None,
    category: Optional[str] = None,
    description: Optional[str] = None,
    icon: Optional[str] = None,
    sort_order: Optional[int] = None,
    is_global: bool = False
) -> dict:
    """
    Create a quest.

    Custom quests belong to user_id and are appended after the owner's
    current last quest; global quests default to sort order 100.
    """
    if not name or not name.strip():
        raise InvalidInputError("name and xp_value required", field="name")
    if xp_value is None:
        raise InvalidInputError("name and xp_value required", field="xp_value")

    owner = None if is_global else user_id
    if not is_global and not owner:
        raise InvalidInputError("Custom quests need an owner", field="user_id")

    if sort_order is None:
        if owner:
            max_order = await db.fetch_one(
                "SELECT MAX(sort_order) AS last FROM quests WHERE user_id = $1", owner
            )
            sort_order = ((max_order or {}).get("last") or 100) + 1
        else:
            sort_order = 100

    quest = await db.execute_returning("""
        INSERT INTO quests (name, xp_value, category, description, icon, sort_order, user_id, is_global)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        RETURNING *
    """, name.strip(), xp_value, category or "custom", description,
        icon or "⭐", sort_order, owner, is_global)

    logger.info(f"Created quest '{quest['name']}' ({xp_value:+d} XP)")
    return quest


async def update_quest(quest_id: UUID, user_id: Optional[str] = None, **updates) -> dict:
    """
    Update a quest definition.

    Recorded completions keep their own xp_earned, so changing xp_value
    only affects future completions. With user_id, only global quests and
    that user's own custom quests match.
    """
    updates = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS and v is not None}
    if not updates:
        return await get_quest(quest_id, user_id)
    if "name" in updates and not str(updates["name"]).strip():
        raise InvalidInputError("Quest name cannot be empty", field="name")

    set_parts = []
    values = []
    for i, (k, v) in enumerate(updates.items(), 1):
        set_parts.append(f"{k} = ${i}")
        values.append(v)
    values.append(quest_id)
    set_clause = ", ".join(set_parts)
    where_clause = f"id = ${len(values)}"

    if user_id:
        values.append(user_id)
        where_clause += f" AND (is_global = true OR user_id = ${len(values)})"

    quest = await db.execute_returning(
        f"UPDATE quests SET {set_clause} WHERE {where_clause} RETURNING *",
        *values
    )
    if not quest:
        raise NotFoundError("quest", quest_id)
    return quest


async def delete_quest(quest_id: UUID, user_id: Optional[str] = None) -> bool:
    """Delete a quest. Completions referencing it are detached, not removed."""
    if user_id:
        result = await db.execute(
            "DELETE FROM quests WHERE id = $1 AND (is_global = true OR user_id = $2)",
            quest_id, user_id
        )
    else:
        result = await db.execute("DELETE FROM quests WHERE id = $1", quest_id)
    if "DELETE 1" not in result:
        raise NotFoundError("quest", quest_id)
    logger.info(f"Deleted quest {quest_id}")
    return True
