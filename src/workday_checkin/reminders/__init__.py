"""Reminder windows and the self-re-arming reminder scheduler."""
