"""
Fire-and-forget work (mail delivery, usage tracking) that must never fail a request
"""
import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class BackgroundTaskManager:
    """Keeps references to detached tasks until they finish"""

    def __init__(self):
        self.tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        """Schedule coro; its failure is logged, never propagated"""
        task = asyncio.create_task(self._run(coro, name), name=name)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    async def _run(self, coro: Awaitable, name: str):
        try:
            await coro
        except asyncio.CancelledError:
            logger.info(f"Cancelled task: {name}")
            raise
        except Exception as e:
            logger.error(f"Background task {name} failed: {e}", exc_info=True)

    async def drain(self):
        """Wait for every pending task"""
        while self.tasks:
            await asyncio.gather(*list(self.tasks), return_exceptions=True)

    async def stop(self):
        """Cancel pending tasks on shutdown"""
        for task in list(self.tasks):
            task.cancel()
        if self.tasks:
            await asyncio.gather(*list(self.tasks), return_exceptions=True)
        self.tasks.clear()
        logger.info("Background tasks stopped")


background_manager = BackgroundTaskManager()
