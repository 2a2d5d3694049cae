# core/readiness.py
"""
Process-wide client handles that become ready in the background.

Each external client (queue, object store, chat platform) is constructed
exactly once per process, off the event loop, as soon as the process starts.
Code that needs a client awaits its handle; only the awaiting coroutine is
suspended, request handling and other tasks keep running.

A construction failure is fatal: the registry logs it and hands it to the
`on_failure` callback, which by default asks the process to shut down.
"""

import asyncio
import signal
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from core.logger import logger

T = TypeVar("T")

FailureCallback = Callable[[str, BaseException], None]


def terminate_process(name: str, error: BaseException) -> None:
    """
    Default failure callback. SIGTERM runs the same shutdown path as an
    operator stop, for both uvicorn and the worker.
    """
    logger.critical(f"Client '{name}' could not be constructed, shutting down: {error}")
    signal.raise_signal(signal.SIGTERM)


class ClientHandle(Generic[T]):
    """Write-once, read-many reference to a lazily constructed client."""

    def __init__(self, name: str, factory: Callable[[], T]):
        self.name = name
        self._factory = factory
        self._task: Optional[asyncio.Task] = None

    def start(self, on_failure: FailureCallback = terminate_process) -> None:
        """Schedule the single construction attempt. Later calls are no-ops."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._construct(), name=f"client-{self.name}")
        self._task.add_done_callback(lambda task: self._report(task, on_failure))

    async def _construct(self) -> T:
        client = await asyncio.to_thread(self._factory)
        logger.info(f"Client '{self.name}' ready")
        return client

    def _report(self, task: asyncio.Task, on_failure: FailureCallback) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            on_failure(self.name, error)

    @property
    def state(self) -> str:
        if self._task is None or not self._task.done():
            return "pending"
        if self._task.cancelled() or self._task.exception() is not None:
            return "failed"
        return "ready"

    async def get(self) -> T:
        """
        Wait for construction and return the client.

        Raises whatever the factory raised if construction failed.
        """
        if self._task is None:
            raise RuntimeError(f"client '{self.name}' was never started")
        # shield: cancelling one waiter must not cancel construction for everyone
        return await asyncio.shield(self._task)

    def peek(self) -> Optional[T]:
        """The client if it is ready, else None. Never waits."""
        if self.state != "ready":
            return None
        return self._task.result()


class ClientRegistry:
    """The three process-wide client handles."""

    def __init__(
        self,
        queue_factory: Callable[[], Any],
        storage_factory: Callable[[], Any],
        chat_factory: Callable[[], Any],
        on_failure: FailureCallback = terminate_process,
    ):
        self.queue = ClientHandle("queue", queue_factory)
        self.storage = ClientHandle("storage", storage_factory)
        self.chat = ClientHandle("chat", chat_factory)
        self._on_failure = on_failure

    @property
    def handles(self) -> Dict[str, ClientHandle]:
        return {h.name: h for h in (self.queue, self.storage, self.chat)}

    def start(self) -> None:
        """Begin constructing every client. Must be called inside a running loop."""
        for handle in self.handles.values():
            handle.start(self._on_failure)

    def readiness(self) -> Dict[str, str]:
        return {name: handle.state for name, handle in self.handles.items()}

    async def aclose(self) -> None:
        for handle in self.handles.values():
            client = handle.peek()
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await asyncio.to_thread(close)
            except Exception as e:
                logger.warning(f"Closing client '{handle.name}' failed: {e}")
