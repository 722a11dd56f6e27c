"""Tests for notification content and the pending queue."""

import json
from datetime import date, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from database import db
from exceptions import NotFoundError
from models import DailyLog, EmailContent, NotificationType, Profile, WeekTier
from notifications import (
    NEVER_ACTIVE_DAYS,
    create_inactivity_reminder,
    create_weekly_summary,
    daily_check_in,
    daily_reminder,
    days_since_active,
    inactivity_reminder,
    queue_notification,
    weekly_stats,
    weekly_summary,
)


USER = "user-1"
SUNDAY = date(2024, 1, 7)


def week(values, end=SUNDAY):
    start = end - timedelta(days=len(values) - 1)
    return [
        DailyLog(user_id=USER, log_date=start + timedelta(days=i), total_xp=xp, quests_completed=2)
        for i, xp in enumerate(values)
    ]


class TestWeeklyStats:

    def test_perfect_week(self):
        stats = weekly_stats(week([70] * 7), SUNDAY)

        assert stats.start_date == SUNDAY - timedelta(days=6)
        assert stats.total_week_xp == 490
        assert stats.days_logged == 7
        assert stats.days_goal_met == 7
        assert stats.elite_days == 0
        assert stats.avg_xp == 70
        assert stats.weekly_streak == 7
        assert stats.perfect_week is True
        assert stats.tier == WeekTier.PERFECT

    def test_great_week(self):
        stats = weekly_stats(week([100, 100, 80, 80, 75, 10, 0]), SUNDAY)

        assert stats.days_goal_met == 5
        assert stats.elite_days == 2
        assert stats.weekly_streak == 0
        assert stats.tier == WeekTier.GREAT

    def test_logs_outside_window_are_ignored(self):
        logs = week([200] * 3, end=SUNDAY - timedelta(days=10)) + week([80, 90], SUNDAY)
        stats = weekly_stats(logs, SUNDAY)

        assert stats.days_logged == 2
        assert stats.total_week_xp == 170
        assert stats.tier == WeekTier.IMPROVEMENT

    def test_empty_week(self):
        stats = weekly_stats([], SUNDAY)
        assert stats.avg_xp == 0
        assert stats.weekly_streak == 0


class TestWeeklySummary:

    def test_subject_and_closing(self):
        profile = Profile(id=USER, total_xp=1200, level=3, current_streak=7)
        content, stats = weekly_summary(profile, week([70] * 7), SUNDAY)

        assert content.subject.startswith("XP System Weekly Report - 490 XP Earned!")
        assert "🏆 PERFECT WEEK! You're a LEGEND!" in content.body
        assert "2024-01-01: 70 XP (2 quests)" in content.body
        assert "http://xp.test/analytics" in content.body
        assert stats.perfect_week

    def test_empty_week_breakdown(self):
        content, _ = weekly_summary(Profile(id=USER), [], SUNDAY)
        assert "No data this week." in content.html
        assert "Days Logged: 0/7" in content.body


class TestCheckIn:

    def test_goal_met(self):
        profile = Profile(id=USER, total_xp=600, level=2, current_streak=3)
        today = DailyLog(user_id=USER, log_date=SUNDAY, total_xp=70, quests_completed=3)

        content = daily_check_in(profile, today)

        assert content.subject == "XP System Daily Check-In"
        assert "Today's XP: 70 / 70 XP" in content.body
        assert "MISSION COMPLETE! Keep crushing it!" in content.body
        assert "Streak Days: 3" in content.body

    def test_nothing_logged_today(self):
        content = daily_check_in(Profile(id=USER), None)

        assert "Today's XP: 0 / 70 XP" in content.body
        assert "Keep going! You got this!" in content.body


class TestInactivity:

    def test_recently_active(self):
        profile = Profile(id=USER, last_active_date=SUNDAY - timedelta(days=1))
        assert inactivity_reminder(profile, SUNDAY) is None

    def test_inactive_for_threshold(self):
        profile = Profile(id=USER, total_xp=300, last_active_date=SUNDAY - timedelta(days=2))
        content = inactivity_reminder(profile, SUNDAY)

        assert content.subject == "XP System - We Miss You!"
        assert "It's been 2 days since you last logged your XP." in content.body

    def test_never_active(self):
        assert days_since_active(None, SUNDAY) == NEVER_ACTIVE_DAYS
        content = inactivity_reminder(Profile(id=USER), SUNDAY)
        assert "999 days" in content.body

    async def test_no_reminder_is_not_queued(self, mocker):
        mocker.patch(
            "notifications.get_profile",
            AsyncMock(return_value={"id": USER, "last_active_date": SUNDAY})
        )
        queue = mocker.patch("notifications.queue_notification", AsyncMock())

        result = await create_inactivity_reminder(USER, SUNDAY)

        assert result["success"] is False
        assert result["days_inactive"] == 0
        queue.assert_not_awaited()

    async def test_unknown_profile(self, mocker):
        mocker.patch("notifications.get_profile", AsyncMock(return_value=None))
        with pytest.raises(NotFoundError):
            await create_inactivity_reminder(USER, SUNDAY)


class TestDailyReminder:

    def test_pending_and_penalty(self):
        done_id, pending_id = uuid4(), uuid4()
        quests = [
            {"id": done_id, "name": "Workout", "xp_value": 20},
            {"id": pending_id, "name": "Read 20 pages", "xp_value": 15},
            {"id": uuid4(), "name": "Log meals", "xp_value": 0},
            {"id": uuid4(), "name": "Junk food", "xp_value": -20},
        ]

        content = daily_reminder(quests, [done_id], SUNDAY)

        assert content.subject == "XP System • Daily Reminder (20 XP)"
        assert "Total XP Today: 20 / 70" in content.body
        assert "- Read 20 pages (+15 XP)" in content.body
        assert "Workout (+20 XP)" not in content.body
        assert "Log meals" not in content.body
        assert "Penalty: Junk food (-20 XP)" in content.body

    def test_all_clear(self):
        quest_id = uuid4()
        content = daily_reminder([{"id": quest_id, "name": "Workout", "xp_value": 20}], [quest_id], SUNDAY)
        assert "All clear. Great job!" in content.body

    def test_quest_names_are_escaped_in_html(self):
        quests = [{"id": uuid4(), "name": "<b>Read</b>", "xp_value": 15}]
        content = daily_reminder(quests, [], SUNDAY)
        assert "&lt;b&gt;Read&lt;/b&gt;" in content.html
        assert "<b>Read</b>" not in content.html


class TestQueue:

    async def test_queue_stores_pending_row(self, mocker):
        execute = mocker.patch.object(
            db, "execute_returning", AsyncMock(return_value={"id": 1, "status": "pending"})
        )
        content = EmailContent(subject="s", body="b", html="<p>b</p>")

        row = await queue_notification(USER, NotificationType.WEEKLY_SUMMARY, content)

        assert row["status"] == "pending"
        query, user_id, notification_type, recipient, payload = execute.call_args.args
        assert "INSERT INTO notifications" in query
        assert user_id == USER
        assert notification_type == "weekly_summary"
        assert recipient is None
        assert json.loads(payload) == {"subject": "s", "body": "b", "html": "<p>b</p>"}

    async def test_weekly_summary_queues_report(self, mocker):
        mocker.patch(
            "notifications.get_profile",
            AsyncMock(return_value={"id": USER, "total_xp": 490, "level": 1})
        )
        get_logs = mocker.patch(
            "notifications.get_daily_logs",
            AsyncMock(return_value=[log.model_dump() for log in week([70] * 7)])
        )
        queue = mocker.patch("notifications.queue_notification", AsyncMock(return_value={"id": 7}))

        result = await create_weekly_summary(USER, SUNDAY)

        assert result["stats"].perfect_week
        assert get_logs.call_args.kwargs["start"] == SUNDAY - timedelta(days=6)
        assert queue.call_args.args[1] == NotificationType.WEEKLY_SUMMARY
