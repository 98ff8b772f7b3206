import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class DeferredTask:
    """
    A cancellable piece of delayed work on the running event loop.

    The callback runs after `delay` seconds unless cancel() is called first.
    Callbacks that take a lock should re-check `cancelled` once they hold it.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]], name: str = "deferred"):
        self.delay = delay
        self.name = name
        self.cancelled = False
        self.fired = False
        self._callback = callback
        self._task: Optional[asyncio.Task] = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        if self.cancelled:
            return
        self.fired = True
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Deferred task {self.name} failed: {e}", exc_info=True)

    def cancel(self) -> None:
        """Cancel the pending work. Safe to call more than once."""
        if self.cancelled:
            return
        self.cancelled = True
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # A callback cancelling its own handle must not interrupt itself
        if self._task and not self._task.done() and self._task is not current:
            self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "fired" if self.fired else "pending"
        return f"<DeferredTask {self.name} {self.delay}s {state}>"
