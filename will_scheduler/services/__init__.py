"""Lifecycle scheduler services: pure rules, coordinators, adapters and tick wiring."""
