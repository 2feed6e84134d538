# SPDX-License-Identifier: Apache-2.0

"""
Tests for the background event loop runtime.
"""

import asyncio
import threading

import pytest

from domain.errors import NotFoundError
from services.runtime import AsyncRuntime


@pytest.fixture
def runtime():
    runtime = AsyncRuntime(name="runtime-test-loop").start()
    yield runtime
    runtime.stop()


class TestAsyncRuntime:
    def test_run_coroutine(self, runtime):
        async def answer():
            await asyncio.sleep(0)
            return threading.current_thread().name

        assert runtime.run(answer()) == "runtime-test-loop"

    def test_call_runs_on_loop_thread(self, runtime):
        def where(prefix, suffix=""):
            asyncio.get_running_loop()
            return f"{prefix}{threading.current_thread().name}{suffix}"

        assert runtime.call(where, "on ", suffix="!") == "on runtime-test-loop!"

    def test_call_propagates_errors(self, runtime):
        def missing():
            raise NotFoundError("SOS alert", "sos-9")

        with pytest.raises(NotFoundError):
            runtime.call(missing)

    def test_stop(self):
        runtime = AsyncRuntime().start()
        assert runtime.running

        runtime.stop()

        assert not runtime.running
