"""
XP System - Daily Journal
One entry per user per day with free text plus mood and energy ratings
"""

from datetime import date
from typing import Optional

from config import get_xp_config
from database import db
from exceptions import InvalidInputError
from logger import logger


# ============================================
# DATABASE INITIALIZATION
# ============================================

async def ensure_journal_tables() -> None:
    """Create the journal table if it doesn't exist."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS journal_entries (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            entry_date DATE NOT NULL,
            content TEXT,
            mood SMALLINT,
            energy SMALLINT,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            UNIQUE(user_id, entry_date)
        )
    """)


# ============================================
# JOURNAL OPERATIONS
# ============================================

def _check_rating(field: str, value: Optional[int]) -> None:
    scale = get_xp_config().mood_scale_max
    if value is not None and not 1 <= value <= scale:
        raise InvalidInputError(f"{field} must be between 1 and {scale}", field=field)


async def get_journal_entry(user_id: str, entry_date: date) -> Optional[dict]:
    """The entry for a date, or None when nothing was written."""
    return await db.fetch_one(
        "SELECT * FROM journal_entries WHERE user_id = $1 AND entry_date = $2",
        user_id, entry_date
    )


async def save_journal_entry(
    user_id: str,
    entry_date: date,
    content: Optional[str] = None,
    mood: Optional[int] = None,
    energy: Optional[int] = None
) -> dict:
    """
    Write the day's entry, replacing whatever was saved for that date.

    Fields sent as None are stored as None, so a save always reflects the
    full state of the form.
    """
    _check_rating("mood", mood)
    _check_rating("energy", energy)

    entry = await db.execute_returning("""
        INSERT INTO journal_entries (user_id, entry_date, content, mood, energy)
        VALUES ($1, $2, $3, $4, $5)
        ON CONFLICT (user_id, entry_date) DO UPDATE SET
            content = EXCLUDED.content,
            mood = EXCLUDED.mood,
            energy = EXCLUDED.energy,
            updated_at = NOW()
        RETURNING *
    """, user_id, entry_date, content, mood, energy)

    logger.info(f"Saved journal entry for {user_id} on {entry_date}")
    return entry
