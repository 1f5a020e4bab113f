import threading
from typing import Dict, List, Any, Optional

from app.core.models import SessionSnapshot

MAX_SNAPSHOTS_PER_CLIENT = 200
ANONYMOUS_CLIENT = "anonymous"


class SessionArchive:
    """
    Keeps detached snapshots of closed sessions per client.

    Feedback and reporting features read from here; they only ever see
    snapshots, never live sessions.
    """

    def __init__(self, max_per_client: int = MAX_SNAPSHOTS_PER_CLIENT):
        self.max_per_client = max_per_client
        self.client_snapshots: Dict[str, List[SessionSnapshot]] = {}
        self._lock = threading.Lock()

    def record(self, snapshot: SessionSnapshot) -> None:
        client_id = snapshot.client_id or ANONYMOUS_CLIENT
        with self._lock:
            history = self.client_snapshots.setdefault(client_id, [])
            history.append(snapshot)
            # Drop oldest entries beyond the cap
            if len(history) > self.max_per_client:
                del history[: len(history) - self.max_per_client]

    def get_snapshots(self, client_id: Optional[str] = None) -> List[SessionSnapshot]:
        with self._lock:
            return list(self.client_snapshots.get(client_id or ANONYMOUS_CLIENT, []))

    def get_summary(self, client_id: Optional[str] = None) -> Dict[str, Any]:
        snapshots = self.get_snapshots(client_id)
        overrides = [s for s in snapshots if s.overridden]
        return {
            "total_sessions": len(snapshots),
            "override_count": len(overrides),
            "last_score": snapshots[-1].final_score if snapshots else None,
            "recent_sessions": [s.to_dict() for s in snapshots[-5:]],
        }

    def clear(self) -> None:
        with self._lock:
            self.client_snapshots.clear()
