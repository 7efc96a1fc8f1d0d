"""
Session Module - Live session registry and background monitoring.

Components:
- store: SessionStore, lifecycle transitions and per-session locking
- aggregates: Aggregate/signal derivation from an event log
- monitor: SessionMonitor background thread
"""

from neurotrack.session.monitor import SessionMonitor
from neurotrack.session.store import DuplicatePolicy, SessionStore

__all__ = [
    "DuplicatePolicy",
    "SessionMonitor",
    "SessionStore",
]
