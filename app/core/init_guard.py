"""Single-flight initialization for shared resources.

Concurrent first requests must not race to initialize the backing store.
The first caller installs one in-flight task; every other caller awaits
that same task. A failed attempt clears the task so a later call retries.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class InitializeOnce:
    """Run an async initializer exactly once, even under concurrent callers."""

    def __init__(self, init_fn: Callable[[], Awaitable[None]], name: str = "resource"):
        self._init_fn = init_fn
        self._name = name
        self._initialized = False
        self._task: asyncio.Task | None = None
        self.attempts = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def _run(self) -> None:
        self.attempts += 1
        logger.info(f"Initializing {self._name} (attempt {self.attempts})")
        try:
            await self._init_fn()
        except Exception as e:
            logger.error(f"Initialization of {self._name} failed: {e}")
            self._task = None
            raise
        self._initialized = True
        logger.info(f"{self._name} initialized")

    async def ensure(self) -> None:
        """Initialize if needed; all concurrent callers share one attempt."""
        if self._initialized:
            return

        # No await between the check and the assignment, so only one task is created
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())

        # Shield so one cancelled caller does not cancel everyone's initialization
        await asyncio.shield(self._task)

    async def reinitialize(self) -> None:
        """Force a fresh initialization, e.g. after tables were cleared externally."""
        if self._task is not None and not self._task.done():
            await asyncio.shield(self._task)
            return
        self._initialized = False
        self._task = None
        await self.ensure()
