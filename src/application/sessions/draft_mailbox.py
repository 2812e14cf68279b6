"""
Single-writer queue for draft mutations.

User actions and upload results all arrive as commands on one asyncio.Queue.
A single consumer task applies them one at a time, in arrival order, so no
reader ever observes a half-applied change and two upload results can never
interleave their writes to the slot sequence.
"""
import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Command = Callable[[], Any]
Listener = Callable[[], None]


class MailboxClosedError(Exception):
    """Raised when a command is posted to, or still queued on, a closed mailbox."""


class DraftMailbox:
    def __init__(self, name: str = "draft") -> None:
        self._name = name
        self._queue: asyncio.Queue[tuple[Command, asyncio.Future[Any]]] = asyncio.Queue()
        self._listeners: list[Listener] = []
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> None:
        """Call `listener` after every successfully applied command."""
        self._listeners.append(listener)

    async def post(self, command: Callable[[], T]) -> T:
        """Queue `command` and wait for its result (or exception)."""
        if self._closed:
            raise MailboxClosedError(f"Mailbox {self._name} is closed.")
        self._ensure_worker()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        await self._queue.put((command, future))
        return await future

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            if not future.done():
                future.set_exception(MailboxClosedError(f"Mailbox {self._name} is closed."))
        logger.debug("mailbox_closed", mailbox=self._name)

    def _ensure_worker(self) -> None:
        if self._worker is None:
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            command, future = await self._queue.get()
            try:
                result = command()
            except Exception as exc:
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
                self._notify()
            finally:
                self._queue.task_done()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                # Subscriber errors are logged and skipped
                logger.exception("mailbox_listener_failed", mailbox=self._name)
