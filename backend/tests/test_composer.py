"""Tests for reminder message composition."""
import json

import pytest

from notifier.services.attendance import AttendanceSnapshot
from notifier.services.composer import (
    TIER_ALERT,
    TIER_EXCELLENT,
    TIER_GOOD,
    TIER_NO_DATA,
    TIER_WARNING,
    attendance_tier,
    compose_class_reminder,
    compose_daily_message,
    custom_message,
)


def snapshot(percentage: int, minimum: int = 75) -> AttendanceSnapshot:
    return AttendanceSnapshot(user_id="u1", percentage=percentage, minimum_required=minimum)


class TestAttendanceTier:
    @pytest.mark.parametrize(
        "percentage,tier",
        [
            (100, TIER_EXCELLENT),
            (90, TIER_EXCELLENT),
            (89, TIER_GOOD),
            (75, TIER_GOOD),
            (74, TIER_ALERT),
            (65, TIER_ALERT),
            (64, TIER_WARNING),
            (1, TIER_WARNING),
            (0, TIER_NO_DATA),
        ],
    )
    def test_boundaries(self, percentage, tier):
        assert attendance_tier(percentage, 75) == tier


class TestNoClassesTomorrow:
    def test_excellent(self):
        message = compose_daily_message([], snapshot(90))
        assert "Excellent" in message.title
        assert message.data["tier"] == TIER_EXCELLENT

    def test_warning_mentions_points_needed(self):
        message = compose_daily_message([], snapshot(50))
        assert message.data["tier"] == TIER_WARNING
        assert "need 25% more" in message.body

    def test_alert_tier(self):
        message = compose_daily_message([], snapshot(70))
        assert message.data["tier"] == TIER_ALERT
        assert "70%" in message.body

    def test_no_data_nudge(self):
        message = compose_daily_message([], snapshot(0))
        assert message.data["tier"] == TIER_NO_DATA
        assert "marking your attendance" in message.body

    def test_custom_minimum_shifts_tiers(self):
        message = compose_daily_message([], snapshot(80, minimum=85))
        assert message.data["tier"] == TIER_ALERT
        assert message.data["minimumRequired"] == "85"

    def test_data_values_are_strings(self):
        message = compose_daily_message([], snapshot(90))
        assert all(isinstance(v, str) for v in message.data.values())
        assert message.data["percentage"] == "90"
        assert message.data["classCount"] == "0"


class TestClassesTomorrow:
    CLASSES = [
        {"subject": "Maths", "start_time": "09:00 AM", "class_type": "lecture"},
        {"subject": "Physics", "start_time": "11:00 AM", "class_type": "lab"},
    ]

    def test_lab_is_preferred(self):
        message = compose_daily_message(self.CLASSES, snapshot(80))
        assert message.title == "🔬 You have Physics Lab Tomorrow!"
        assert message.body == "Physics lab at 11:00 AM. Your overall attendance is 80%."
        assert message.data["subject"] == "Physics"

    def test_first_class_without_lab(self):
        classes = [
            {"subject": "Maths", "start_time": "09:00 AM", "class_type": "lecture"},
            {"subject": "English", "start_time": "10:00 AM", "class_type": "tutorial"},
        ]
        message = compose_daily_message(classes, snapshot(80))
        assert message.title == "📚 You have Maths Lecture Tomorrow!"
        assert message.body.startswith("Maths lecture at 09:00 AM.")
        assert message.data["classCount"] == "2"

    def test_low_attendance_suffix(self):
        message = compose_daily_message(self.CLASSES, snapshot(60))
        assert message.body.endswith("⚠️ Attendance below 75%!")

    def test_no_suffix_at_minimum(self):
        message = compose_daily_message(self.CLASSES, snapshot(75))
        assert "below" not in message.body


class TestClassReminder:
    def test_lab_reminder(self):
        entry = {"subject": "Chemistry", "start_time": "02:00 PM", "class_type": "lab"}
        message = compose_class_reminder(entry, 10, snapshot(82))
        assert message.title == "🔬 Chemistry Lab Starting Soon!"
        assert message.body == (
            "Your Chemistry lab starts in 10 minutes at 02:00 PM. Overall attendance: 82%."
        )
        assert message.data["type"] == "class_reminder"
        assert message.data["minutesBefore"] == "10"

    def test_class_reminder(self):
        entry = {"subject": "History", "start_time": "09:00 AM", "class_type": "seminar"}
        message = compose_class_reminder(entry, 30, snapshot(70))
        assert message.title == "📚 History Class Starting Soon!"
        assert "starts in 30 minutes" in message.body


class TestCustomMessage:
    def test_none_without_title_or_body(self):
        assert custom_message(None, None, {"a": 1}) is None

    def test_data_is_serialized(self):
        message = custom_message("Hi", None, {"count": 3, "nested": {"a": [1, 2]}, "skip": None})
        assert message.body == ""
        assert message.data == {"count": "3", "nested": json.dumps({"a": [1, 2]}, separators=(",", ":"))}
