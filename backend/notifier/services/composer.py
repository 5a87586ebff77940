"""Reminder message composition.

Daily reminders pick a template from tomorrow's classes and the user's
attendance; class reminders announce a class starting in N minutes.
"""
from typing import Optional, Sequence

from .attendance import AttendanceSnapshot
from .payload import NotificationMessage

# Percentage points above the minimum that count as "excellent"
EXCELLENT_MARGIN = 15

# Percentage points below the minimum that are still only "alert"
ALERT_MARGIN = 10

TIER_EXCELLENT = "excellent"
TIER_GOOD = "good"
TIER_ALERT = "alert"
TIER_WARNING = "warning"
TIER_NO_DATA = "no_data"


def _field(entry, name: str, camel: str):
    if isinstance(entry, dict):
        value = entry.get(name)
        return value if value is not None else entry.get(camel)
    return getattr(entry, name)


def _subject(entry) -> str:
    return _field(entry, "subject", "subject")


def _start_time(entry) -> str:
    return _field(entry, "start_time", "startTime")


def _class_type(entry) -> str:
    value = _field(entry, "class_type", "type")
    return (value or "lecture").lower()


def attendance_tier(percentage: int, minimum_required: int) -> str:
    """Pick the daily reminder tier for a user with no classes tomorrow."""
    if percentage >= minimum_required + EXCELLENT_MARGIN:
        return TIER_EXCELLENT
    if percentage >= minimum_required:
        return TIER_GOOD
    if percentage >= minimum_required - ALERT_MARGIN:
        return TIER_ALERT
    if percentage > 0:
        return TIER_WARNING
    return TIER_NO_DATA


def _no_classes_message(attendance: AttendanceSnapshot) -> NotificationMessage:
    p = attendance.percentage
    m = attendance.minimum_required
    tier = attendance_tier(p, m)

    if tier == TIER_EXCELLENT:
        title = "🌟 Excellent Attendance!"
        body = (
            f"No classes tomorrow! Your attendance is {p}%, well above your {m}% target. "
            f"Enjoy your day off!"
        )
    elif tier == TIER_GOOD:
        title = "🎉 No Classes Tomorrow!"
        body = f"Your attendance is {p}%, above your {m}% target. Enjoy your day off!"
    elif tier == TIER_ALERT:
        title = "⚠️ Attendance Alert"
        body = (
            f"No classes tomorrow. Your attendance is {p}%, just below your {m}% target. "
            f"Don't miss the next ones!"
        )
    elif tier == TIER_WARNING:
        needed = m - p
        title = "🚨 Attendance Warning"
        body = (
            f"No classes tomorrow. Your attendance is {p}% and you need {needed}% more "
            f"to reach your {m}% target. Plan to attend every class!"
        )
    else:
        title = "📅 No Classes Tomorrow!"
        body = "Start marking your attendance in the app to get personalized reminders."

    return NotificationMessage.build(
        title,
        body,
        {
            "type": "daily_reminder",
            "tier": tier,
            "percentage": p,
            "minimumRequired": m,
            "classCount": 0,
        },
    )


def compose_daily_message(
    classes: Sequence,
    attendance: AttendanceSnapshot,
) -> NotificationMessage:
    """Compose the evening reminder for tomorrow.

    Args:
        classes: Tomorrow's timetable entries, sorted by start time
        attendance: The user's current attendance snapshot
    """
    if not classes:
        return _no_classes_message(attendance)

    p = attendance.percentage
    m = attendance.minimum_required

    first_class = classes[0]
    lab_class = next((c for c in classes if _class_type(c) == "lab"), None)

    if lab_class is not None:
        announced = lab_class
        title = f"🔬 You have {_subject(lab_class)} Lab Tomorrow!"
        body = (
            f"{_subject(lab_class)} lab at {_start_time(lab_class)}. "
            f"Your overall attendance is {p}%."
        )
    else:
        announced = first_class
        class_type = _class_type(first_class).capitalize()
        title = f"📚 You have {_subject(first_class)} {class_type} Tomorrow!"
        body = (
            f"{_subject(first_class)} {class_type.lower()} at {_start_time(first_class)}. "
            f"Your overall attendance is {p}%."
        )

    if p < m:
        body += f" ⚠️ Attendance below {m}%!"

    return NotificationMessage.build(
        title,
        body,
        {
            "type": "daily_reminder",
            "percentage": p,
            "minimumRequired": m,
            "classCount": len(classes),
            "subject": _subject(announced),
            "startTime": _start_time(announced),
            "classType": _class_type(announced),
        },
    )


def compose_class_reminder(
    entry,
    minutes_before: int,
    attendance: AttendanceSnapshot,
) -> NotificationMessage:
    """Compose the "starting in N minutes" reminder for one class."""
    is_lab = _class_type(entry) == "lab"
    label = "Lab" if is_lab else "Class"
    emoji = "🔬" if is_lab else "📚"
    subject = _subject(entry)
    start_time = _start_time(entry)

    return NotificationMessage.build(
        f"{emoji} {subject} {label} Starting Soon!",
        (
            f"Your {subject} {label.lower()} starts in {minutes_before} minutes at {start_time}. "
            f"Overall attendance: {attendance.percentage}%."
        ),
        {
            "type": "class_reminder",
            "minutesBefore": minutes_before,
            "subject": subject,
            "startTime": start_time,
            "classType": _class_type(entry),
            "percentage": attendance.percentage,
        },
    )


def custom_message(
    title: Optional[str],
    body: Optional[str],
    data: Optional[dict] = None,
) -> Optional[NotificationMessage]:
    """Message from caller-supplied fields, or None when neither title nor body is set."""
    if not title and not body:
        return None
    return NotificationMessage.build(title or "", body or "", data)


def broadcast_message() -> NotificationMessage:
    """Default message for broadcasts without caller-supplied content."""
    return NotificationMessage.build(
        "📢 Attendance Reminder",
        "Keep your attendance up to date in the app.",
        {"type": "broadcast"},
    )
