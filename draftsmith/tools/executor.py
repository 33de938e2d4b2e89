"""Streaming plan execution over the event bus."""

import asyncio
import inspect
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from draftsmith.errors import StreamError
from draftsmith.events import DONE, ERROR, STREAM_KINDS, EventBus, Handler, topic

# Sends the execution request; events arrive on the bus, not as a return value
Transport = Callable[[str, list[dict]], Awaitable[None]]
ChunkCallback = Callable[[str], Any]


@dataclass
class ExecutionResult:
    """Final text and usage of one successful execution."""

    full_text: str
    input_tokens: int
    output_tokens: int
    model: str


class StreamSubscription:
    """The chunk, done and error subscriptions for one plan.

    ``close`` tears all three down and reports whether this call was the one
    that did it, so the first terminal event can claim the teardown.
    """

    def __init__(self, bus: EventBus, plan_id: str):
        self.bus = bus
        self.plan_id = plan_id
        self._unsubscribers: list[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._closed = False

    def open(self, on_chunk: Handler, on_done: Handler, on_error: Handler) -> None:
        for kind, handler in zip(STREAM_KINDS, (on_chunk, on_done, on_error)):
            self._unsubscribers.append(self.bus.subscribe(topic(kind, self.plan_id), handler))

    def close(self) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            unsubscribers = self._unsubscribers
            self._unsubscribers = []

        for unsubscribe in unsubscribers:
            unsubscribe()
        return True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed


class StreamingExecutor:
    """Runs a plan through the transport and waits for its terminal event.

    Subscriptions are in place before the request is sent. Chunk events are
    relayed to ``on_chunk`` for progress only; the result is built from the
    ``done`` payload alone, so duplicated or reordered chunks cannot corrupt
    it. The first terminal event wins and later ones are ignored.
    """

    def __init__(
        self,
        bus: EventBus,
        transport: Transport,
        timeout: Optional[float] = None,
        settle_timeout: float = 5.0,
    ):
        """Initialize executor.

        Args:
            bus: Event bus the transport publishes on
            transport: Coroutine function that sends (plan_id, history)
            timeout: Seconds to wait for a terminal event (None waits forever)
            settle_timeout: Seconds to wait for a terminal event once the
                transport has returned
        """
        self.bus = bus
        self.transport = transport
        self.timeout = timeout
        self.settle_timeout = settle_timeout

    async def execute(
        self,
        plan_id: str,
        history: list[dict],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> ExecutionResult:
        """Execute a plan and return its result.

        Args:
            plan_id: Plan to execute
            history: Conversation messages ({role, content})
            on_chunk: Optional progress callback (sync or async) for text deltas

        Returns:
            ExecutionResult from the done event

        Raises:
            StreamError: On an error event, transport failure or timeout
        """
        loop = asyncio.get_running_loop()
        terminal: asyncio.Future = loop.create_future()
        chunks: asyncio.Queue = asyncio.Queue()
        subscription = StreamSubscription(self.bus, plan_id)

        def settle(kind: str, payload: dict) -> None:
            if not terminal.done():
                terminal.set_result((kind, payload))

        def terminal_handler(kind: str) -> Handler:
            def handler(payload: dict) -> None:
                if subscription.close():
                    loop.call_soon_threadsafe(settle, kind, payload)
            return handler

        def chunk_handler(payload: dict) -> None:
            loop.call_soon_threadsafe(chunks.put_nowait, payload.get("text", ""))

        subscription.open(chunk_handler, terminal_handler(DONE), terminal_handler(ERROR))
        relay = asyncio.create_task(self._relay(chunks, on_chunk))
        send = asyncio.create_task(self.transport(plan_id, list(history)))

        try:
            kind, payload = await self._await_terminal(plan_id, terminal, send)
        finally:
            subscription.close()
            if not send.done():
                send.cancel()
            elif not send.cancelled():
                send.exception()  # Already handled or superseded by the terminal event
            chunks.put_nowait(None)
            await relay

        if kind == ERROR:
            reason = payload.get("reason") or payload.get("error") or "unknown error"
            raise StreamError(plan_id, str(reason))

        try:
            return ExecutionResult(
                full_text=payload["full_text"],
                input_tokens=int(payload.get("input_tokens", 0)),
                output_tokens=int(payload.get("output_tokens", 0)),
                model=payload.get("model", ""),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StreamError(plan_id, f"malformed done event: {e}") from e

    async def _await_terminal(
        self, plan_id: str, terminal: asyncio.Future, send: asyncio.Task
    ) -> tuple[str, dict]:
        done, _ = await asyncio.wait(
            {terminal, send}, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED
        )

        if terminal in done:
            return terminal.result()

        if send in done:
            if not send.cancelled() and send.exception() is not None:
                error = send.exception()
                raise StreamError(plan_id, f"transport failed: {error}") from error

            # The transport finished; its terminal event may still be in flight
            try:
                return await asyncio.wait_for(asyncio.shield(terminal), self.settle_timeout)
            except asyncio.TimeoutError:
                raise StreamError(plan_id, "stream ended without a terminal event") from None

        raise StreamError(plan_id, f"no terminal event within {self.timeout}s")

    async def _relay(self, chunks: asyncio.Queue, on_chunk: Optional[ChunkCallback]) -> None:
        while True:
            text = await chunks.get()
            if text is None:
                return
            if on_chunk is None:
                continue
            try:
                result = on_chunk(text)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # Progress only; the terminal event decides the outcome
                on_chunk = None
