"""Single-owner execution context for shared state."""

import logging
import queue
from typing import Any, Callable

logger = logging.getLogger(__name__)


class PrimaryContext:
    """
    Serial task queue drained by one thread.

    Watcher events and enrichment completions arrive on other threads; they
    post work here instead of touching the store or cursor directly.
    """

    def __init__(self):
        self._queue: "queue.Queue[tuple]" = queue.Queue()

    def post(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Schedule func to run on the primary context."""
        self._queue.put((func, args, kwargs))

    def run_pending(self, timeout: float = 0.0) -> int:
        """
        Run queued tasks.

        Blocks up to timeout for the first task, then drains whatever is
        already queued without waiting.

        Returns:
            Number of tasks run.
        """
        ran = 0
        block = timeout > 0
        while True:
            try:
                func, args, kwargs = self._queue.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                break
            block = False
            try:
                func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in primary context task {func!r}: {e}", exc_info=True)
            ran += 1
        return ran

    def __len__(self) -> int:
        return self._queue.qsize()
