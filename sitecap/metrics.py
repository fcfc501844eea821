"""Process-wide capture counters exported as Prometheus-style text.

The exported series are an explicit list of (name, reader) pairs so the
text format never depends on attribute introspection.
"""

import logging
import threading
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


class CaptureMetrics:
    """Thread-safe counters for capture runs."""

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0
        self._success = 0
        self._failed = 0
        self._duration_seconds = 0.0

        self._series: List[Tuple[str, Callable[[], str]]] = [
            ("sitecap_requests_total", lambda: str(self.total_requests)),
            ("sitecap_requests_success_total", lambda: str(self.success_requests)),
            ("sitecap_requests_failed_total", lambda: str(self.failed_requests)),
            ("sitecap_duration_seconds_total", lambda: f"{self.total_duration_seconds:.6f}"),
        ]

    def record_start(self) -> None:
        with self._lock:
            self._total += 1

    def record_success(self, duration_seconds: float) -> None:
        with self._lock:
            self._success += 1
            self._duration_seconds += duration_seconds

    def record_failure(self, duration_seconds: float) -> None:
        with self._lock:
            self._failed += 1
            self._duration_seconds += duration_seconds

    @property
    def total_requests(self) -> int:
        with self._lock:
            return self._total

    @property
    def success_requests(self) -> int:
        with self._lock:
            return self._success

    @property
    def failed_requests(self) -> int:
        with self._lock:
            return self._failed

    @property
    def total_duration_seconds(self) -> float:
        with self._lock:
            return self._duration_seconds

    @property
    def series_names(self) -> List[str]:
        return [name for name, _ in self._series]

    def render(self) -> str:
        """Render all series, one ``name value`` line each."""
        return "".join(f"{name} {reader()}\n" for name, reader in self._series)

    def reset(self) -> None:
        with self._lock:
            self._total = self._success = self._failed = 0
            self._duration_seconds = 0.0
        logger.debug("Capture metrics reset")

    def __repr__(self) -> str:
        return (
            f"CaptureMetrics(total={self.total_requests}, "
            f"success={self.success_requests}, failed={self.failed_requests})"
        )
