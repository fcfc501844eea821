"""Correlation of asynchronous network and console events.

EventCorrelator pairs request-sent events with their response-received or
load-failed completion and keeps the console records of one page session.
Completion events for unknown or already finalized requests are benign
timing artifacts and are ignored.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ..models.capture import ConsoleRecord, TrackedRequest, utcnow

logger = logging.getLogger(__name__)


class EventCorrelator:
    """Builds TrackedRequest and ConsoleRecord lists for one page session."""

    def __init__(self):
        self._lock = threading.Lock()
        self._live: Dict[str, TrackedRequest] = {}
        self._finalized: List[TrackedRequest] = []
        self._console: List[ConsoleRecord] = []
        self._ignored = 0

    def on_request_sent(
        self,
        request_id: str,
        url: str,
        method: str,
        headers: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Start tracking a request; a second event for a live id is ignored."""
        record = TrackedRequest(
            request_id=request_id,
            url=url,
            method=method,
            request_headers={str(k): str(v) for k, v in (headers or {}).items()},
            timestamp=timestamp or utcnow(),
        )
        with self._lock:
            if request_id in self._live:
                self._ignored += 1
                return
            self._live[request_id] = record

    def _finalize(self, request_id: str, timestamp: Optional[datetime], **updates) -> bool:
        now = timestamp or utcnow()
        with self._lock:
            record = self._live.pop(request_id, None)
            if record is None:
                self._ignored += 1
                return False
            elapsed = (now - record.timestamp).total_seconds()
            record.duration_ms = max(0, int(elapsed * 1000))
            for field, value in updates.items():
                setattr(record, field, value)
            self._finalized.append(record)
        return True

    def on_response_received(
        self,
        request_id: str,
        status_code: int,
        headers: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """Finalize a live request with its response.

        Returns:
            True if a live record was finalized, False if the event was ignored
        """
        return self._finalize(
            request_id,
            timestamp,
            status_code=status_code,
            response_headers={str(k): str(v) for k, v in (headers or {}).items()},
        )

    def on_loading_failed(
        self,
        request_id: str,
        error_text: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """Finalize a live request as failed."""
        return self._finalize(
            request_id,
            timestamp,
            failed=True,
            error_text=error_text or "unknown error",
        )

    def add_console(self, record: ConsoleRecord) -> None:
        with self._lock:
            self._console.append(record)

    def network_requests(self) -> List[TrackedRequest]:
        """Finalized requests in completion order."""
        with self._lock:
            return list(self._finalized)

    def console_logs(self) -> List[ConsoleRecord]:
        """Console records in emission order."""
        with self._lock:
            return list(self._console)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._live)

    def abandon(self) -> int:
        """Drop in-flight requests at session end.

        Returns:
            Number of records that never completed
        """
        with self._lock:
            dropped = len(self._live)
            self._live.clear()
        if dropped:
            logger.debug(f"Abandoned {dropped} in-flight requests")
        return dropped

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            failed = sum(1 for r in self._finalized if r.failed)
            return {
                'pending': len(self._live),
                'finalized': len(self._finalized),
                'failed': failed,
                'ignored_events': self._ignored,
                'console_records': len(self._console),
            }

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"EventCorrelator(pending={stats['pending']}, "
            f"finalized={stats['finalized']}, console={stats['console_records']})"
        )
