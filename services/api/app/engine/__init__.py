"""Estimation session engine package."""

from .liveness import LivenessMonitor
from .session_engine import SessionEngine
from .state import Phase, Session
from .ws import Connection, SessionBroadcaster

__all__ = [
    "Connection",
    "LivenessMonitor",
    "Phase",
    "Session",
    "SessionBroadcaster",
    "SessionEngine",
]
