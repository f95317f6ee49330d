"""
JobState Value Object

Immutable representation of a download job's position in its lifecycle.
"""

from enum import Enum


class JobState(str, Enum):
    """
    Download job state enum.

    Jobs move strictly forward: received -> preparing -> running, then
    exactly one of completed/failed. There are no retries; a failed job
    must be resubmitted by the client.
    """

    RECEIVED = "received"
    PREPARING = "preparing"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        """Check if this state is terminal (no further transitions)."""
        return self in {JobState.COMPLETED, JobState.FAILED}

    def can_transition_to(self, new_state: "JobState") -> bool:
        """
        Check if transition to new state is valid.

        Args:
            new_state: Target state

        Returns:
            True if transition is allowed
        """
        valid_transitions = {
            JobState.RECEIVED: {JobState.PREPARING, JobState.FAILED},
            JobState.PREPARING: {JobState.RUNNING, JobState.FAILED},
            JobState.RUNNING: {JobState.COMPLETED, JobState.FAILED},
            JobState.COMPLETED: set(),
            JobState.FAILED: set(),
        }

        return new_state in valid_transitions.get(self, set())
