"""Observer channel for agent steps."""

import logging
from typing import Callable, Optional

from .models import AgentStep

logger = logging.getLogger(__name__)

StepCallback = Callable[[AgentStep], None]


class EventChannel:
    """Fans agent steps out to any number of independent observers.

    Observers are called synchronously in subscription order. A failing
    observer is logged and skipped so it cannot break the run.
    """

    def __init__(self):
        self._subscribers: list[StepCallback] = []
        self._primary: Optional[StepCallback] = None

    def subscribe(self, callback: StepCallback) -> Callable[[], None]:
        """Register an observer and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set_primary(self, callback: Optional[StepCallback]) -> None:
        """Replace the primary observer (the UI slot). None removes it."""
        if self._primary is not None and self._primary in self._subscribers:
            self._subscribers.remove(self._primary)
        self._primary = callback
        if callback is not None:
            self._subscribers.insert(0, callback)

    def emit(self, step: AgentStep) -> None:
        for callback in list(self._subscribers):
            try:
                callback(step)
            except Exception:
                logger.exception(f"Step observer failed on {step.type.value} step")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
