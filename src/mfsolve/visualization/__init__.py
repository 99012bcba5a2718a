"""Presentation helpers for solver results."""
