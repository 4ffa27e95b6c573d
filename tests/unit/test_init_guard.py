"""Tests for single-flight initialization."""

import asyncio

import pytest

from app.core.init_guard import InitializeOnce


class TestInitializeOnce:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_initialization(self):
        """N simultaneous first requests run the initializer once."""
        calls = 0

        async def init():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)

        guard = InitializeOnce(init, name="store")
        await asyncio.gather(*(guard.ensure() for _ in range(20)))

        assert calls == 1
        assert guard.attempts == 1
        assert guard.initialized

    @pytest.mark.asyncio
    async def test_already_initialized_skips_initializer(self):
        calls = 0

        async def init():
            nonlocal calls
            calls += 1

        guard = InitializeOnce(init)
        await guard.ensure()
        await guard.ensure()
        assert calls == 1

    @pytest.mark.asyncio
    async def test_failure_clears_task_so_next_call_retries(self):
        outcomes = [RuntimeError("store unreachable"), None]

        async def init():
            outcome = outcomes.pop(0)
            if outcome:
                raise outcome

        guard = InitializeOnce(init)
        with pytest.raises(RuntimeError):
            await guard.ensure()
        assert not guard.initialized

        await guard.ensure()
        assert guard.initialized
        assert guard.attempts == 2

    @pytest.mark.asyncio
    async def test_concurrent_waiters_all_see_failure(self):
        async def init():
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")

        guard = InitializeOnce(init)
        results = await asyncio.gather(
            *(guard.ensure() for _ in range(5)), return_exceptions=True
        )
        assert all(isinstance(r, RuntimeError) for r in results)
        assert guard.attempts == 1

    @pytest.mark.asyncio
    async def test_reinitialize_runs_initializer_again(self):
        calls = 0

        async def init():
            nonlocal calls
            calls += 1

        guard = InitializeOnce(init)
        await guard.ensure()
        await guard.reinitialize()
        assert calls == 2
        assert guard.initialized
