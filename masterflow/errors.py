"""Error taxonomy and the error log service.

Every failure raised by the mastering pipeline is a ``MasteringError``
subclass so the HTTP layer and the job queue can map it to a status
code or a failed job without string matching.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Literal, Optional

logger = logging.getLogger(__name__)

Severity = Literal["low", "medium", "high", "critical"]


class MasteringError(Exception):
    """Base class for all mastering failures."""

    code = "MASTERING_ERROR"
    status_code = 500


class InvalidState(MasteringError):
    """An operation needs a loaded buffer (or a finished run) that is missing."""

    code = "INVALID_STATE"
    status_code = 409


class DimensionMismatch(MasteringError):
    """Two buffers (or a header and its payload) disagree on shape."""

    code = "DIMENSION_MISMATCH"
    status_code = 422


class RenderFailure(MasteringError):
    """The offline render could not complete. ``__cause__`` holds the reason."""

    code = "RENDER_FAILED"
    status_code = 500


class DecodeFailure(MasteringError):
    """Uploaded bytes could not be decoded into a waveform."""

    code = "DECODE_FAILED"
    status_code = 400


def severity_for(exc: BaseException) -> Severity:
    if isinstance(exc, (InvalidState, DecodeFailure)):
        return "low"
    if isinstance(exc, DimensionMismatch):
        return "medium"
    if isinstance(exc, RenderFailure):
        return "high"
    return "critical"


@dataclass
class ErrorRecord:
    message: str
    severity: Severity
    code: str
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "severity": self.severity,
            "code": self.code,
            "context": dict(self.context),
            "timestamp": self.timestamp,
        }


class ErrorLog:
    """Bounded in-memory log of recent failures.

    Owned by the application root and handed to whoever reports errors
    (the job queue, the HTTP handlers).
    """

    def __init__(self, max_entries: int = 50) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._entries: Deque[ErrorRecord] = deque(maxlen=max_entries)

    def record(
        self,
        error: BaseException | str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorRecord:
        if isinstance(error, BaseException):
            message = str(error) or error.__class__.__name__
            code = getattr(error, "code", error.__class__.__name__)
            resolved = severity or severity_for(error)
        else:
            message = error
            code = "MESSAGE"
            resolved = severity or "medium"

        entry = ErrorRecord(message=message, severity=resolved, code=code, context=dict(context or {}))
        self._entries.append(entry)
        log_level = logging.ERROR if resolved in ("high", "critical") else logging.WARNING
        logger.log(log_level, "[%s] %s %s", resolved, code, message)
        return entry

    def recent(self, limit: int = 10) -> List[ErrorRecord]:
        """Newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._entries))[:limit]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
