"""Attendance domain services."""
