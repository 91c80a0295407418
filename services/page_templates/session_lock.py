"""
Single-flight guard for generations against one design session.

The host document is the one shared mutable resource; two generations
against the same session would interleave insertions, so they are either
queued behind each other or rejected.
"""

import asyncio
from typing import Awaitable, Callable, Dict, TypeVar

from setup_logging_optimized import get_logger

from .exceptions import GenerationInProgressError

logger = get_logger(__name__)

T = TypeVar("T")


class GenerationSessionLock:
    """Serializes generation runs per design session."""

    def __init__(self, queue_when_busy: bool = True):
        self.queue_when_busy = queue_when_busy
        self._locks: Dict[str, asyncio.Lock] = {}
        self._sessions_in_generation: set = set()

    def is_generating(self, session_id: str) -> bool:
        return session_id in self._sessions_in_generation

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    async def run(self, session_id: str, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run operation while holding the session's lock.

        Raises:
            GenerationInProgressError: the session is busy and queueing is off
        """
        lock = self._lock_for(session_id)
        if lock.locked():
            if not self.queue_when_busy:
                logger.warning(f"Session {session_id} is already generating, rejecting request")
                raise GenerationInProgressError(session_id)
            logger.info(f"Session {session_id} is busy, queueing generation")

        async with lock:
            self._sessions_in_generation.add(session_id)
            try:
                return await operation()
            finally:
                self._sessions_in_generation.discard(session_id)
                logger.debug(f"Released generation lock for session {session_id}")
