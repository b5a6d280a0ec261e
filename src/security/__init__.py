"""Compliance jobs and subscribers — audit trail, deadline reminders, data export, erasure."""
