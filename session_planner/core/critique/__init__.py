"""Heuristic plan critique (scores, issues, risks, recommendations).

All thresholds and penalties come from CritiqueConfig so tests and callers can
probe boundary values without patching module constants.
"""
