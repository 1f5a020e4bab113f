"""
Shared, thread-safe state that outlives a single session.

The only such state is the regeneration cooldown: after a successful
regeneration, further regenerations for the same client are refused until
the cooldown window has passed. Windows are kept per client, so one
client's sessions never throttle another's. Session state itself is never
shared.
"""
import threading
import time
from typing import Callable, Dict, Optional

from app.core.memory_manager import ANONYMOUS_CLIENT


class RegenerationCooldown:
    """Thread-safe cooldown between successful regenerations, keyed by client."""

    def __init__(self, seconds: int, clock: Callable[[], float] = time.monotonic):
        self.seconds = max(0, int(seconds))
        self._clock = clock
        self._last_recorded: Dict[str, float] = {}
        self._lock = threading.Lock()

    def remaining_seconds(self, client_id: Optional[str] = None) -> int:
        """Seconds until the client's next regeneration is allowed (0 when allowed)."""
        with self._lock:
            last = self._last_recorded.get(client_id or ANONYMOUS_CLIENT)
            if self.seconds == 0 or last is None:
                return 0
            remaining = self.seconds - int(self._clock() - last)
            return remaining if remaining > 0 else 0

    def record(self, client_id: Optional[str] = None) -> None:
        """Start a new cooldown window for the client now."""
        with self._lock:
            self._last_recorded[client_id or ANONYMOUS_CLIENT] = self._clock()

    def reset(self, client_id: Optional[str] = None) -> None:
        """Clear one client's window, or every window when no client is given."""
        with self._lock:
            if client_id is None:
                self._last_recorded.clear()
            else:
                self._last_recorded.pop(client_id, None)
