# core/uploads/channel.py
import threading
from typing import Any, Dict, List, Protocol

from .logutil import get_logger

logger = get_logger("channel")


class Subscriber(Protocol):
    async def send_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        ...


class SubscriberRegistry:
    """
    Owned mapping of session id -> connected subscribers.
    Connections register on connect and deregister on disconnect.
    """

    def __init__(self):
        self._subs: Dict[str, List[Subscriber]] = {}
        self._lock = threading.RLock()

    def register(self, session_id: str, subscriber: Subscriber) -> None:
        with self._lock:
            subs = self._subs.setdefault(session_id, [])
            if subscriber not in subs:
                subs.append(subscriber)

    def unregister(self, session_id: str, subscriber: Subscriber) -> bool:
        with self._lock:
            subs = self._subs.get(session_id)
            if not subs or subscriber not in subs:
                return False
            subs.remove(subscriber)
            if not subs:
                del self._subs[session_id]
            return True

    def subscribers(self, session_id: str) -> List[Subscriber]:
        with self._lock:
            return list(self._subs.get(session_id, ()))

    def sessions(self) -> List[str]:
        with self._lock:
            return list(self._subs)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._subs

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)


class ProgressChannel:
    """Session scoped push: an event reaches only the subscribers of its session."""

    def __init__(self, registry: SubscriberRegistry):
        self.registry = registry

    async def broadcast_to_session(self, session_id: str, event_name: str, payload: Dict[str, Any]) -> int:
        """Deliver once to each current subscriber; returns how many got it."""
        subs = self.registry.subscribers(session_id)
        if not subs:
            # progress is advisory, the listing is the source of truth
            logger.debug(f"no subscriber for session {session_id}, dropped {event_name}")
            return 0

        delivered = 0
        for sub in subs:
            try:
                await sub.send_event(event_name, payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"push to session {session_id} failed: {e!r}")
        return delivered
