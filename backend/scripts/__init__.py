"""Operator scripts (scheduled sync, gateway setup)."""
