"""Review Engine - Lifecycle rules for review and sign-off"""
from .lock_manager import LockManager
from .state_machine import ReviewStateMachine, TransitionOutcome
from .reviewer_assignment import ReviewerAssignment
from .history_writer import HistoryWriter
from .event_publisher import ReviewEventPublisher

__all__ = [
    "LockManager",
    "ReviewStateMachine",
    "TransitionOutcome",
    "ReviewerAssignment",
    "HistoryWriter",
    "ReviewEventPublisher",
]
