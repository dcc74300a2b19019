"""Scheduling and reconciliation."""
