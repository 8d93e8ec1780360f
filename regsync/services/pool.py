"""
Bounded worker pool for regsync.

Fans units out to a ThreadPoolExecutor while never keeping more than
``max_workers`` of them in flight. When the pool is full, ``submit``
blocks until any unit finishes and hands back the completions it
collected, so the caller can account for them before dispatching more.
"""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..config import default_max_workers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completion:
    """Outcome of one dispatched unit: a result or the exception it raised."""
    key: Any
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedPool:
    """
    Fixed-size fan-out with one completion per dispatched unit.

    Example:
        with BoundedPool(4) as pool:
            for item in items:
                for completion in pool.submit(item, work, item):
                    handle(completion)
            for completion in pool.drain():
                handle(completion)
    """

    def __init__(self, max_workers: Optional[int] = None):
        bound = default_max_workers()
        self.max_workers = min(max_workers, bound) if max_workers else bound
        self.max_workers = max(self.max_workers, 1)
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="regsync",
        )
        self._inflight: Dict[Future, Any] = {}
        self._lock = threading.Lock()
        self.peak_in_flight = 0

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    def submit(self, key: Any, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> List[Completion]:
        """
        Dispatch ``fn(*args, **kwargs)``, waiting for a free slot first.

        Returns:
            Completions of units that finished while waiting for the slot
        """
        finished: List[Completion] = []
        while len(self._inflight) >= self.max_workers:
            finished.extend(self._collect(FIRST_COMPLETED))

        future = self._executor.submit(fn, *args, **kwargs)
        with self._lock:
            self._inflight[future] = key
            self.peak_in_flight = max(self.peak_in_flight, len(self._inflight))
        return finished

    def drain(self) -> List[Completion]:
        """Wait for every in-flight unit and return their completions."""
        finished: List[Completion] = []
        while self._inflight:
            finished.extend(self._collect(ALL_COMPLETED))
        return finished

    def _collect(self, return_when: str) -> List[Completion]:
        done, _ = wait(list(self._inflight), return_when=return_when)
        completions = []
        for future in done:
            with self._lock:
                key = self._inflight.pop(future)
            try:
                completions.append(Completion(key=key, result=future.result()))
            except Exception as e:
                logger.debug(f"Unit {key} raised: {e}")
                completions.append(Completion(key=key, error=e))
        return completions

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "BoundedPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
