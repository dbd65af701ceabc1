"""
Periodic catalog store liveness probe.
"""

import asyncio
import contextlib
import time
from typing import Any, Dict, Optional, Protocol, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class PingableStore(Protocol):
    async def ping(self) -> None: ...


class HealthMonitor:
    """Probes the store on a fixed period without touching the request path.

    Probe failures are logged and recorded; they never raise and never force
    a reconnect.
    """

    def __init__(
        self,
        store: PingableStore,
        *,
        interval: float = 60.0,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.interval = interval
        self.metrics = metrics
        self.logger = get_logger("songs.health_monitor")

        self._task: Optional[asyncio.Task] = None
        self.last_status = "unknown"
        self.last_error: Optional[str] = None
        self.last_checked_at: Optional[float] = None
        self.consecutive_failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start probing on the running loop. Calling twice is a no-op."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="songs-health-monitor")
        self.logger.info("Health monitor started", interval=self.interval)

    async def stop(self) -> None:
        """Cancel the probe loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self.logger.info("Health monitor stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.probe()

    async def probe(self) -> bool:
        """Run one liveness query and record the outcome."""
        self.last_checked_at = time.time()
        try:
            await self.store.ping()
        except Exception as e:
            self.consecutive_failures += 1
            self.last_status = "error"
            self.last_error = str(e)
            self.logger.warning(
                "Store health check failed",
                error=str(e),
                consecutive_failures=self.consecutive_failures,
            )
            if self.metrics:
                self.metrics.record_health_check("error")
            return False

        if self.consecutive_failures:
            self.logger.info("Store health check recovered", after_failures=self.consecutive_failures)
        self.consecutive_failures = 0
        self.last_status = "ok"
        self.last_error = None
        if self.metrics:
            self.metrics.record_health_check("ok")
        return True

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "status": self.last_status,
            "last_checked_at": self.last_checked_at,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }
