"""Scheduler building blocks: utilities for time zones and logging."""
