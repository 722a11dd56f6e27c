"""
PostgreSQL fixtures for integration tests.

The container is shared by the module; each test gets its own pool (pools
are bound to the test's event loop) and a truncated schema.
"""

import pytest
import pytest_asyncio

from activity import ensure_activity_tables
from database import db
from goals import ensure_goal_tables
from journal import ensure_journal_tables
from ledger import ensure_ledger_tables
from notifications import ensure_notification_tables
from quests import ensure_quest_tables
from stats import ensure_social_tables
from timer import ensure_timer_tables


@pytest.fixture(scope="session")
def postgres_url():
    """Start a PostgreSQL container, or skip when Docker is unavailable."""
    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer(image="postgres:16-alpine", driver=None)
        container.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL container unavailable: {e}")

    yield container.get_connection_url()
    container.stop()


@pytest_asyncio.fixture
async def database(postgres_url):
    await db.connect(postgres_url)

    await ensure_quest_tables()
    await ensure_ledger_tables()
    await ensure_activity_tables()
    await ensure_notification_tables()
    await ensure_social_tables()
    await ensure_journal_tables()
    await ensure_timer_tables()
    await ensure_goal_tables()
    await db.execute("""
        TRUNCATE quest_completions, daily_logs, activity_log, notifications,
                 friends, profiles, quests, journal_entries, timer_sessions, goals
        RESTART IDENTITY CASCADE
    """)

    yield db
    await db.disconnect()
