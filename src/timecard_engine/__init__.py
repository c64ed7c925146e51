"""Tutor timecard engine: clock sessions, schedule reconciliation, and approvals."""

__version__ = "0.1.0"
