"""Snapshot publishers."""
