"""
Correlation table for server-initiated requests awaiting a client reply.
"""

import asyncio
import itertools
import threading
from typing import Any, Dict, Tuple

from ..core.errors import MCPServerError, SessionClosedError
from ..logging import get_logger


class PendingRequestTable:
    """
    Maps outbound request ids to the futures their callers await

    Shared by the exchange side (create) and the inbound reader (resolve,
    reject). Every entry completes exactly once; late or duplicate replies
    are reported as unmatched.
    """

    def __init__(self, prefix: str, max_pending: int = 100):
        self.prefix = prefix
        self.max_pending = max_pending
        self.logger = get_logger(__name__)
        self._pending: Dict[str, asyncio.Future] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._closed = False

    def create(self) -> Tuple[str, asyncio.Future]:
        """Allocate a fresh id and its future; must run on the event loop"""
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._closed:
                raise SessionClosedError("Session is closed, cannot send requests")
            if len(self._pending) >= self.max_pending:
                raise MCPServerError(f"Too many pending requests ({self.max_pending})")
            request_id = f"{self.prefix}-{next(self._counter)}"
            future = loop.create_future()
            self._pending[request_id] = future
        return request_id, future

    def resolve(self, request_id: Any, result: Any) -> bool:
        future = self._take(request_id)
        if future is None or future.done():
            return False
        future.set_result(result)
        return True

    def reject(self, request_id: Any, error: BaseException) -> bool:
        future = self._take(request_id)
        if future is None or future.done():
            return False
        future.set_exception(error)
        return True

    def discard(self, request_id: str) -> None:
        with self._lock:
            self._pending.pop(request_id, None)

    def fail_all(self, error: BaseException) -> int:
        """Reject every pending request and refuse new ones"""
        with self._lock:
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()

        failed = 0
        for future in pending:
            if not future.done():
                future.set_exception(error)
                failed += 1
        if failed:
            self.logger.info(f"Failed {failed} pending requests: {error}")
        return failed

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, request_id: Any) -> bool:
        with self._lock:
            return str(request_id) in self._pending

    def _take(self, request_id: Any):
        with self._lock:
            return self._pending.pop(str(request_id), None)
