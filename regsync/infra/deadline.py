"""
Run-wide deadline shared by every image transport call.
"""

import time
from typing import Optional

from ..errors import SyncTimeoutError


class Deadline:
    """
    A single deadline established when a sync starts.

    ``timeout`` of None or 0 means no deadline. Calls made after expiry
    fail immediately instead of starting new work.
    """

    def __init__(self, timeout: Optional[float] = None, clock=time.monotonic):
        self._clock = clock
        self.timeout = timeout if timeout and timeout > 0 else None
        self.expires_at = clock() + self.timeout if self.timeout else None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self._clock() >= self.expires_at

    def remaining(self) -> Optional[float]:
        """
        Seconds left, or None without a deadline.

        Raises:
            SyncTimeoutError: the deadline has already elapsed
        """
        if self.expires_at is None:
            return None
        left = self.expires_at - self._clock()
        if left <= 0:
            raise SyncTimeoutError(f"Command timed out after {self.timeout:g}s")
        return left

    def __repr__(self) -> str:
        return f"Deadline(timeout={self.timeout!r})"
