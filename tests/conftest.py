"""
Shared fixtures for the XP System tests.

Unit tests run the ledger against FakeConnection, an in-memory stand-in for
an asyncpg connection that understands the statements the ledger issues.
Integration tests (tests/integration) use a real PostgreSQL container.
"""

import json
import os
import tempfile
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest


def pytest_configure(config):
    """Keep test log files out of the source tree."""
    os.environ.setdefault("XP_LOG_DIR", tempfile.mkdtemp(prefix="xp-logs-"))
    os.environ.setdefault("XP_LOG_LEVEL", "DEBUG")


def _normalize(query: str) -> str:
    return " ".join(query.split())


class FakeConnection:
    """In-memory tables keyed the way the real schema constrains them."""

    def __init__(self):
        self.quests = {}
        self.profiles = {}
        self.completions = {}
        self.daily_logs = {}
        self.activity = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # -- test helpers --------------------------------------------------

    def add_quest(self, name, xp_value, category="custom", user_id=None, is_global=True):
        quest = {
            "id": uuid4(),
            "name": name,
            "xp_value": xp_value,
            "category": category,
            "description": None,
            "icon": None,
            "sort_order": 100,
            "user_id": user_id,
            "is_global": is_global,
            "created_at": self._clock,
        }
        self.quests[quest["id"]] = quest
        return quest

    def add_profile(self, user_id, **fields):
        profile = self._new_profile(user_id)
        profile.update(fields)
        self.profiles[user_id] = profile
        return profile

    def activity_types(self, user_id):
        return [entry["action_type"] for entry in self.activity if entry["user_id"] == user_id]

    def _new_profile(self, user_id):
        return {
            "id": user_id,
            "username": None,
            "total_xp": 0,
            "level": 1,
            "current_streak": 0,
            "longest_streak": 0,
            "last_active_date": None,
        }

    def _tick(self):
        self._clock += timedelta(seconds=1)
        return self._clock

    def _joined(self, completion):
        quest = self.quests.get(completion["quest_id"]) or {}
        return {
            **completion,
            "quest_name": quest.get("name"),
            "quest_category": quest.get("category"),
        }

    def _user_logs(self, user_id):
        return sorted(
            (dict(log) for (uid, _), log in self.daily_logs.items() if uid == user_id),
            key=lambda log: log["log_date"]
        )

    # -- asyncpg surface -----------------------------------------------

    async def fetchrow(self, query, *args):
        q = _normalize(query)

        if q.startswith("SELECT * FROM quests WHERE id = $1"):
            quest = self.quests.get(args[0])
            return dict(quest) if quest else None

        if q.startswith("SELECT * FROM profiles WHERE id = $1 FOR UPDATE"):
            return dict(self.profiles[args[0]])

        if q.startswith("INSERT INTO quest_completions"):
            user_id, quest_id, completion_date, xp_earned = args
            row = {
                "id": uuid4(),
                "user_id": user_id,
                "quest_id": quest_id,
                "completion_date": completion_date,
                "xp_earned": xp_earned,
                "completed_at": self._tick(),
            }
            self.completions[row["id"]] = row
            return dict(row)

        if q.startswith("SELECT") and "FROM daily_logs" in q and "FOR UPDATE" in q:
            log = self.daily_logs.get((args[0], args[1]))
            return dict(log) if log else None

        if q.startswith("INSERT INTO daily_logs"):
            user_id, log_date, total_xp, quests_completed = args
            row = {
                "user_id": user_id,
                "log_date": log_date,
                "total_xp": total_xp,
                "quests_completed": quests_completed,
            }
            self.daily_logs[(user_id, log_date)] = row
            return dict(row)

        if q.startswith("UPDATE profiles"):
            total_xp, level, current, longest, last_active, user_id = args
            self.profiles[user_id].update({
                "total_xp": total_xp,
                "level": level,
                "current_streak": current,
                "longest_streak": longest,
                "last_active_date": last_active,
            })
            return dict(self.profiles[user_id])

        if "FROM quest_completions c" in q:
            if "c.id = $1" in q:
                completion_id, user_id = args
                row = self.completions.get(completion_id)
                if row and row["user_id"] == user_id:
                    return self._joined(row)
                return None

            user_id, quest_id, completion_date = args
            matches = sorted(
                (
                    row for row in self.completions.values()
                    if row["user_id"] == user_id
                    and row["quest_id"] == quest_id
                    and row["completion_date"] == completion_date
                ),
                key=lambda row: row["completed_at"],
                reverse=True
            )
            return self._joined(matches[0]) if matches else None

        raise AssertionError(f"unexpected fetchrow: {q}")

    async def fetch(self, query, *args):
        q = _normalize(query)

        if "FROM daily_logs WHERE user_id = $1 ORDER BY log_date" in q:
            return self._user_logs(args[0])

        if q.startswith("SELECT completion_date, xp_earned FROM quest_completions"):
            return [
                {"completion_date": row["completion_date"], "xp_earned": row["xp_earned"]}
                for row in self.completions.values() if row["user_id"] == args[0]
            ]

        if q.startswith("SELECT xp_earned FROM quest_completions"):
            user_id, completion_date = args
            return [
                {"xp_earned": row["xp_earned"]}
                for row in self.completions.values()
                if row["user_id"] == user_id and row["completion_date"] == completion_date
            ]

        raise AssertionError(f"unexpected fetch: {q}")

    async def fetchval(self, query, *args):
        q = _normalize(query)

        if q.startswith("SELECT COUNT(*) FROM quest_completions"):
            user_id, quest_id, completion_date = args
            return sum(
                1 for row in self.completions.values()
                if row["user_id"] == user_id
                and row["quest_id"] == quest_id
                and row["completion_date"] == completion_date
            )

        raise AssertionError(f"unexpected fetchval: {q}")

    async def execute(self, query, *args):
        q = _normalize(query)

        if q.startswith("INSERT INTO profiles (id)"):
            if args[0] in self.profiles:
                return "INSERT 0 0"
            self.profiles[args[0]] = self._new_profile(args[0])
            return "INSERT 0 1"

        if q.startswith("INSERT INTO activity_log"):
            user_id, action_type, details, xp_change = args
            self.activity.append({
                "user_id": user_id,
                "action_type": action_type,
                "action_details": json.loads(details) if details else None,
                "xp_change": xp_change,
            })
            return "INSERT 0 1"

        if q.startswith("DELETE FROM quest_completions WHERE id = $1"):
            removed = self.completions.pop(args[0], None)
            return f"DELETE {1 if removed else 0}"

        if q.startswith("DELETE FROM quest_completions WHERE user_id = $1 AND completion_date = $2"):
            doomed = [
                key for key, row in self.completions.items()
                if row["user_id"] == args[0] and row["completion_date"] == args[1]
            ]
            for key in doomed:
                del self.completions[key]
            return f"DELETE {len(doomed)}"

        if q.startswith("DELETE FROM daily_logs WHERE user_id = $1 AND log_date = $2"):
            removed = self.daily_logs.pop((args[0], args[1]), None)
            return f"DELETE {1 if removed else 0}"

        if q.startswith("DELETE FROM daily_logs WHERE user_id = $1"):
            doomed = [key for key in self.daily_logs if key[0] == args[0]]
            for key in doomed:
                del self.daily_logs[key]
            return f"DELETE {len(doomed)}"

        raise AssertionError(f"unexpected execute: {q}")

    async def executemany(self, query, rows):
        q = _normalize(query)
        if not q.startswith("INSERT INTO daily_logs"):
            raise AssertionError(f"unexpected executemany: {q}")
        for user_id, log_date, total_xp, quests_completed in rows:
            self.daily_logs[(user_id, log_date)] = {
                "user_id": user_id,
                "log_date": log_date,
                "total_xp": total_xp,
                "quests_completed": quests_completed,
            }


# ============================================
# FIXTURES
# ============================================

@pytest.fixture(autouse=True)
def xp_env(monkeypatch):
    """Default XP rules for every test; tests override with setenv + reload."""
    from config import reload_config

    for key in list(os.environ):
        if key.startswith("XP_") and not key.startswith("XP_LOG_"):
            monkeypatch.delenv(key, raising=False)
        if key.startswith("NOTIFY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("NOTIFY_APP_URL", "http://xp.test")

    reload_config()
    yield monkeypatch
    reload_config()


@pytest.fixture
def fake_conn(mocker):
    """Route db.transaction() to a fresh FakeConnection."""
    from database import db

    conn = FakeConnection()

    @asynccontextmanager
    async def transaction():
        yield conn

    mocker.patch.object(db, "transaction", transaction)
    return conn


@pytest.fixture
def user_id():
    return "user-1"
