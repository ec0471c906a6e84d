"""SSE session registry.

Each ``GET /sse`` connection gets its own session, keyed by id, holding
the user it acts for and a queue of outbound messages. Messages posted to
``/messages`` are routed to the matching session only.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from shared.logging import get_logger
from shared.models import utcnow

logger = get_logger(__name__)


@dataclass
class SSESession:
    """An open SSE stream."""
    session_id: str
    user_id: Optional[str]
    created_at: datetime = field(default_factory=utcnow)
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    @property
    def endpoint(self) -> str:
        """Where the client posts messages for this session."""
        return f"/messages?sessionId={self.session_id}"


class SessionManager:
    """Keyed collection of live SSE sessions."""

    def __init__(self) -> None:
        self._sessions: dict[str, SSESession] = {}

    def create(self, user_id: Optional[str]) -> SSESession:
        session = SSESession(session_id=str(uuid.uuid4()), user_id=user_id)
        self._sessions[session.session_id] = session
        logger.info("SSE session opened", session_id=session.session_id, user=user_id)
        return session

    def get(self, session_id: str) -> Optional[SSESession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        if self._sessions.pop(session_id, None) is not None:
            logger.info("SSE session closed", session_id=session_id)
            return True
        return False

    async def send(self, session_id: str, message: dict[str, Any]) -> bool:
        """Queue a message for a session. Returns False if the session is gone."""
        session = self.get(session_id)
        if session is None:
            return False
        await session.queue.put(message)
        return True

    def close_all(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
