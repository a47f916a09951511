"""Orchestration and result cache for remote workflow computations."""
