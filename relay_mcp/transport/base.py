"""
Transport contract and the in-memory transport used for tests and embedding
"""

import asyncio
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from ..utils import fast_json as json


@runtime_checkable
class Transport(Protocol):
    """What a session needs from its byte transport"""

    async def send(self, message: Dict[str, Any]) -> None:
        """Deliver one outbound JSON-RPC frame to the client"""
        ...

    async def close(self) -> None:
        """Disconnect; called once by the session during teardown"""
        ...


class MemoryTransport:
    """
    Loopback transport that queues outbound frames for the caller to read

    Frames are encoded and decoded with fast_json on the way out so anything
    that would not survive a real wire fails here too.
    """

    def __init__(self):
        self.outbound: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self.closed = False

    async def send(self, message: Dict[str, Any]) -> None:
        if self.closed:
            raise ConnectionError("Transport is closed")
        await self.outbound.put(json.loads(json.dumps(message)))

    async def close(self) -> None:
        self.closed = True

    async def next_message(self, timeout: Optional[float] = 1.0) -> Dict[str, Any]:
        """Wait for the next outbound frame"""
        return await asyncio.wait_for(self.outbound.get(), timeout)

    def drain(self) -> List[Dict[str, Any]]:
        """All frames sent so far and not yet read"""
        messages = []
        while not self.outbound.empty():
            messages.append(self.outbound.get_nowait())
        return messages
