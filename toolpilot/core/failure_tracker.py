"""Detection of identical tool calls that keep failing."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class FailureTracker:
    """Tracks the last failed tool-call fingerprint and how often it repeated.

    A repeat of the last failed call counts as another failure as soon as it
    is attempted, so with the default threshold of 2 the run stops on the
    second identical failing call and the executor never sees it again.
    """

    def __init__(self, threshold: int = 2):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self.last_failed: Optional[str] = None
        self.count = 0

    def note_attempt(self, fingerprint: str) -> bool:
        """Register an attempt; return True when the repeat limit is reached."""
        if fingerprint != self.last_failed:
            return False
        self.count += 1
        logger.debug(f"Repeated failing call ({self.count}/{self.threshold}): {fingerprint[:120]}")
        return self.count >= self.threshold

    def record_failure(self, fingerprint: str) -> None:
        """Remember a failed call. A different call restarts the count."""
        if fingerprint != self.last_failed:
            self.last_failed = fingerprint
            self.count = 1

    def record_success(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.last_failed = None
        self.count = 0
