"""Abstract base class for feedback/rating service providers.

Defines the contract for persisting visitor feedback (thumbs up/down) on
assistant answers.  Implementations may use SQLite (local), PostgreSQL,
or any other storage backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.chat import Feedback


class IFeedbackProvider(ABC):
    """Contract for user-feedback persistence services.

    All operations are async to support network-backed stores.
    """

    @abstractmethod
    async def submit_feedback(self, feedback: Feedback) -> Feedback:
        """Store one feedback entry.

        Parameters
        ----------
        feedback:
            The rating for a single assistant message.  ``rating`` is
            already restricted to ``up`` / ``down`` by the model.

        Returns
        -------
        Feedback
            The stored entry with ``created_at`` populated.

        Raises
        ------
        src.utils.errors.StoreError
            If the write fails.
        """

    @abstractmethod
    async def get_feedback(self, session_id: str) -> list[Feedback]:
        """Return all feedback for *session_id*, newest first."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
