"""Periodic metric collectors."""
