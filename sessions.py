"""
Per-session state for the tool runtime.
Holds the scratchpad and edit revert history for one conversation so that
concurrent sessions never see each other's state.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Mutable state scoped to a single session."""
    session_id: str = ""
    created_at: str = ""
    scratchpad: str = ""
    # file_id -> content before the first edit in this session
    revert_history: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.session_id:
            self.session_id = uuid.uuid4().hex[:12]
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()

    def remember_original(self, file_id: str, content: str) -> None:
        """Record the pre-edit content; only the first version is kept."""
        self.revert_history.setdefault(file_id, content)

    def pop_original(self, file_id: str) -> Optional[str]:
        return self.revert_history.pop(file_id, None)

    def forget(self, file_id: str) -> None:
        self.revert_history.pop(file_id, None)


class SessionStore:
    """Hands out SessionState objects by id."""

    def __init__(self):
        self._sessions: Dict[str, SessionState] = {}
        self._lock = threading.Lock()

    def get(self, session_id: Optional[str] = None) -> SessionState:
        """Return the state for session_id, creating it if needed."""
        with self._lock:
            if session_id and session_id in self._sessions:
                return self._sessions[session_id]
            state = SessionState(session_id=session_id or "")
            self._sessions[state.session_id] = state
            logger.debug(f"Created session state {state.session_id}")
            return state

    def drop(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)
