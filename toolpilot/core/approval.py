"""Single-slot approval handshake for sensitive tool calls."""

import asyncio
import logging
from typing import Optional

from .errors import ApprovalPendingError
from .models import ToolCall

logger = logging.getLogger(__name__)


class ApprovalGate:
    """Blocks a sensitive tool call until someone allows or denies it.

    Only one request can be outstanding at a time. Resolving when nothing is
    pending is a no-op.
    """

    def __init__(self):
        self._future: Optional[asyncio.Future] = None
        self._call: Optional[ToolCall] = None

    @property
    def pending(self) -> bool:
        return self._future is not None and not self._future.done()

    @property
    def pending_call(self) -> Optional[ToolCall]:
        return self._call if self.pending else None

    def open(self, call: ToolCall) -> asyncio.Future:
        """Open the slot for ``call`` without waiting on it.

        Raises:
            ApprovalPendingError: If another request is still outstanding.
        """
        if self.pending:
            raise ApprovalPendingError(
                f"Approval already pending for {self._call.name if self._call else 'another call'}"
            )

        future = asyncio.get_running_loop().create_future()
        self._future = future
        self._call = call
        logger.info(f"Waiting for approval: {call.name}")
        return future

    async def wait(self, future: asyncio.Future) -> bool:
        """Wait for a decision on a slot returned by :meth:`open`."""
        try:
            allowed = await future
        finally:
            if self._future is future:
                self._future = None
                self._call = None

        logger.info(f"Approval {'granted' if allowed else 'denied'}")
        return allowed

    async def request(self, call: ToolCall) -> bool:
        """Wait for a decision on ``call``. Returns True when allowed."""
        return await self.wait(self.open(call))

    def approve(self) -> bool:
        """Allow the pending call. Returns whether a request was resolved."""
        return self._resolve(True)

    def deny(self) -> bool:
        """Deny the pending call. Returns whether a request was resolved."""
        return self._resolve(False)

    def cancel(self) -> bool:
        """Resolve an outstanding request as denied (used when stopping)."""
        return self._resolve(False)

    def _resolve(self, allowed: bool) -> bool:
        if not self.pending:
            return False
        self._future.set_result(allowed)
        return True
