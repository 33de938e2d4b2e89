"""Topic-based event bus between the inference backend and its listeners.

Topics are ``"<kind>:<plan_id>"`` for ``kind`` in chunk, done and error.
"""

import threading
from collections import defaultdict
from typing import Any, Callable

CHUNK = "chunk"
DONE = "done"
ERROR = "error"
STREAM_KINDS = (CHUNK, DONE, ERROR)

Handler = Callable[[dict[str, Any]], None]


def topic(kind: str, plan_id: str) -> str:
    """Build the topic name for an event kind and plan."""
    return f"{kind}:{plan_id}"


class EventBus:
    """Synchronous publish/subscribe keyed by topic name.

    Handlers run on the emitting thread; listeners that live on an event loop
    must hop back onto it themselves.
    """

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic_name: str, handler: Handler) -> Callable[[], None]:
        """Register a handler.

        Returns:
            Unsubscribe function; calling it more than once is harmless
        """
        with self._lock:
            self._handlers[topic_name].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(topic_name)
                if handlers and handler in handlers:
                    handlers.remove(handler)
                    if not handlers:
                        del self._handlers[topic_name]

        return unsubscribe

    def emit(self, topic_name: str, payload: dict[str, Any]) -> int:
        """Deliver a payload to every current subscriber of a topic.

        Returns:
            Number of handlers called
        """
        with self._lock:
            handlers = list(self._handlers.get(topic_name, ()))
        for handler in handlers:
            handler(payload)
        return len(handlers)

    def subscriber_count(self, topic_name: str) -> int:
        with self._lock:
            return len(self._handlers.get(topic_name, ()))
