"""
Agent worker package — tracking sessions and their orchestration.

A TrackingSession drives one block source for one target token; the
SessionManager keeps sessions by handle and runs each as an asyncio task.
"""

from acquisition_tracker.agent_worker.manager import SessionManager
from acquisition_tracker.agent_worker.session import SessionState, TrackingSession

__all__ = ["SessionManager", "SessionState", "TrackingSession"]
