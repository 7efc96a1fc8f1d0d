"""
neurotrack - behavioral telemetry pipeline for interactive learning activities.

Turns per-interaction events into session metrics, cognitive domain scores,
prioritized recommendations and cross-session progression.
"""

__version__ = "1.0.0"
