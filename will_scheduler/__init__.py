"""Lifecycle scheduler for Will commitment cycles."""
