"""Attendance reminder push-notification service."""
