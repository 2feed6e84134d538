# SPDX-License-Identifier: Apache-2.0

"""
Event loop runtime for the satellite services.

Flask handles requests on worker threads while the satellite services are
asyncio code sharing per-terminal locks and background delivery tasks. All
of them run on a single loop owned by a daemon thread; request handlers
submit coroutines and block on the result.
"""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


class AsyncRuntime:
    """Background event loop thread."""

    def __init__(self, name: str = "satcom-loop", timeout: Optional[float] = None):
        self.name = name
        self.timeout = timeout
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._loop is not None

    def start(self) -> "AsyncRuntime":
        if self.running:
            return self

        self._started.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        self._started.wait()
        logger.info("Async runtime started", extra={"extra_fields": {"thread": self.name}})
        return self

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._started.set()
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def run(self, coro: Awaitable, timeout: Optional[float] = None) -> Any:
        """
        Run a coroutine on the runtime loop and wait for its result.

        Exceptions raised by the coroutine propagate to the caller.
        """
        if not self.running:
            self.start()
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout if timeout is not None else self.timeout)

    def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a plain callable on the runtime loop so it never overlaps a suspended coroutine."""
        async def invoke():
            return func(*args, **kwargs)

        return self.run(invoke())

    def stop(self, service=None) -> None:
        """Stop the loop, letting the service cancel its background work first."""
        if not self.running:
            return

        if service is not None:
            try:
                self.run(service.shutdown(), timeout=5)
            except Exception as e:
                logger.error(
                    "Service shutdown failed",
                    extra={"extra_fields": {"error": str(e)}},
                    exc_info=True
                )

        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._thread = None
        self._loop = None
        logger.info("Async runtime stopped", extra={"extra_fields": {"thread": self.name}})
