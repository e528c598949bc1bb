"""
Progress broadcaster service.

Session-scoped registry of live progress subscribers. Events published for
a session reach only that session's subscribers.
"""

import asyncio
from collections import OrderedDict
from typing import Dict, Set, Optional

from shared.errors import SessionClosedError, SubscriberLimitError
from shared.logging import get_logger
from shared.models.video import ProgressEvent

logger = get_logger(__name__)

MAX_SUBSCRIBERS_PER_SESSION = 10

# How many finished session IDs are remembered for rejecting late subscribers
FINISHED_SESSION_MEMORY = 1024


class SubscriberHandle:
    """One live subscriber; events are queued for the transport to drain."""

    def __init__(self, maxsize: int = 0):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def deliver(self, event: ProgressEvent) -> bool:
        """
        Queue an event for this subscriber.

        Returns:
            False if the handle is closed or its queue is full
        """
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> ProgressEvent:
        return await self.queue.get()

    def close(self) -> None:
        self.closed = True


class ProgressBroadcaster:
    """
    Session registry with per-session fan-out.

    Methods never await; call them from the event loop thread.
    """

    def __init__(
        self,
        max_subscribers_per_session: int = MAX_SUBSCRIBERS_PER_SESSION,
        finished_memory: int = FINISHED_SESSION_MEMORY
    ):
        self.max_subscribers_per_session = max_subscribers_per_session
        self._finished_memory = finished_memory
        self._sessions: Dict[str, Set[SubscriberHandle]] = {}
        self._finished: "OrderedDict[str, None]" = OrderedDict()

    def subscribe(self, session_id: str, handle: SubscriberHandle) -> None:
        """
        Attach a subscriber to a session, creating the session if needed.

        Args:
            session_id: Session to observe
            handle: Subscriber handle

        Raises:
            SessionClosedError: If the session already delivered its terminal event
            SubscriberLimitError: If the session is at its subscriber limit
        """
        if session_id in self._finished:
            raise SessionClosedError(
                "Session has already finished",
                session_id=session_id,
                details="Progress is only available while a run is active"
            )

        handles = self._sessions.setdefault(session_id, set())
        if handle in handles:
            return
        if len(handles) >= self.max_subscribers_per_session:
            raise SubscriberLimitError(
                f"Maximum {self.max_subscribers_per_session} subscribers per session exceeded",
                session_id=session_id
            )

        handles.add(handle)
        logger.debug(
            "Subscriber added",
            extra={"session_id": session_id, "total": len(handles)}
        )

    def unsubscribe(self, handle: SubscriberHandle, close: bool = True) -> None:
        """
        Detach a subscriber from every session it belongs to.

        Sessions left without subscribers are removed.

        Args:
            handle: Subscriber handle
            close: Also close the handle; False keeps it usable for a later subscribe
        """
        if close:
            handle.close()
        for session_id, handles in list(self._sessions.items()):
            if handle in handles:
                handles.discard(handle)
                logger.debug("Subscriber removed", extra={"session_id": session_id})
            if not handles:
                del self._sessions[session_id]

    def publish(self, session_id: str, event: ProgressEvent) -> int:
        """
        Deliver an event to every subscriber of a session.

        Terminal events close the session after delivery.

        Args:
            session_id: Target session
            event: Event to deliver

        Returns:
            Number of subscribers the event was delivered to
        """
        handles = list(self._sessions.get(session_id, ()))

        delivered = 0
        for handle in handles:
            if handle.deliver(event):
                delivered += 1
            elif not handle.closed:
                logger.warning(
                    "Subscriber queue full, event dropped",
                    extra={"session_id": session_id, "step": event.step.value}
                )

        if event.is_terminal:
            self._sessions.pop(session_id, None)
            self._mark_finished(session_id)

        return delivered

    def _mark_finished(self, session_id: str) -> None:
        self._finished[session_id] = None
        self._finished.move_to_end(session_id)
        while len(self._finished) > self._finished_memory:
            self._finished.popitem(last=False)

    def is_finished(self, session_id: str) -> bool:
        return session_id in self._finished

    def session_count(self) -> int:
        """Number of sessions with at least one live subscriber."""
        return len(self._sessions)

    def subscriber_count(self, session_id: Optional[str] = None) -> int:
        """Live subscribers of one session, or across all sessions."""
        if session_id is not None:
            return len(self._sessions.get(session_id, ()))
        return sum(len(h) for h in self._sessions.values())
