"""Audit trail for tool calls.

One entry per tools/call outcome: who called which tool, with which
(redacted) arguments, how it ended and how long it took. Entries are
logged right away and appended in batches to a JSON-lines file.
"""

import asyncio
import uuid
from collections import Counter
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import SENSITIVE_KEYS, get_logger
from shared.models import AuditEntry, ToolCallStatus

logger = get_logger(__name__)

REDACTED = "[REDACTED]"

# Argument names containing any of these are treated as secrets
SECRET_FRAGMENTS = ("password", "secret", "token", "api_key", "apikey", "credential")


def is_secret_argument(name: str) -> bool:
    lowered = name.lower()
    return lowered in SENSITIVE_KEYS or any(fragment in lowered for fragment in SECRET_FRAGMENTS)


def redact(value: Any) -> Any:
    """Copy of ``value`` with secret-looking keys blanked at any depth."""
    if isinstance(value, dict):
        return {
            key: REDACTED if is_secret_argument(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


class AuditLogger:
    """
    Records tool call outcomes.

    A disabled logger still builds entries, so callers never branch on
    it, but nothing is logged, counted or written.
    """

    def __init__(
        self,
        log_path: str = "logs/audit.log",
        enabled: bool = True,
        batch_size: int = 100
    ) -> None:
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.batch_size = batch_size
        self.counts: Counter[str] = Counter()
        self._pending: list[AuditEntry] = []
        self._lock = asyncio.Lock()

        if enabled:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def create_entry(
        self,
        user_id: str,
        tool_name: str,
        arguments: dict[str, Any],
        status: ToolCallStatus,
        execution_time_ms: float = 0,
        request_id: Optional[Any] = None
    ) -> AuditEntry:
        return AuditEntry(
            id=uuid.uuid4().hex,
            user_id=user_id,
            tool_name=tool_name,
            arguments=redact(arguments),
            status=status,
            execution_time_ms=execution_time_ms,
            request_id=request_id,
        )

    async def log(self, entry: AuditEntry) -> None:
        if not self.enabled:
            return

        self.counts[entry.status.value] += 1
        log = logger.warning if entry.status == ToolCallStatus.DENIED else logger.info
        log(
            "Tool call",
            audit_id=entry.id,
            user=entry.user_id,
            tool=entry.tool_name,
            status=entry.status.value,
            duration_ms=round(entry.execution_time_ms, 2)
        )

        async with self._lock:
            self._pending.append(entry)
            if len(self._pending) >= self.batch_size:
                await self._write_pending()

    async def flush(self) -> None:
        """Write every pending entry now."""
        async with self._lock:
            await self._write_pending()

    async def _write_pending(self) -> None:
        if not self._pending:
            return

        batch, self._pending = self._pending, []
        lines = "".join(entry.model_dump_json() + "\n" for entry in batch)
        try:
            async with aiofiles.open(self.log_path, "a", encoding="utf-8") as f:
                await f.write(lines)
        except OSError as e:
            # Retried with the next batch
            logger.error("Audit write failed", path=str(self.log_path), entries=len(batch), error=str(e))
            self._pending = batch + self._pending
