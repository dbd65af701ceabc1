"""
Process-wide fault supervision.

Unrouted asyncio failures and uncaught exceptions are logged and counted,
never escalated. One supervisor exists per process; installing it again is
a no-op.
"""

import asyncio
import sys
import threading
from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.retry import ErrorClassifier, is_transient_connectivity_error

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ProcessFaultSupervisor:
    """Observes process-level failure channels and keeps the process alive."""

    def __init__(
        self,
        *,
        is_transient: ErrorClassifier = is_transient_connectivity_error,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.is_transient = is_transient
        self.metrics = metrics
        self.logger = get_logger("songs.supervisor")

        self._installed = False
        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        self._loops: Dict[asyncio.AbstractEventLoop, Any] = {}

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        """Register the synchronous fault hooks once."""
        if self._installed:
            return

        self._previous_excepthook = sys.excepthook
        self._previous_threading_excepthook = threading.excepthook
        sys.excepthook = self.handle_uncaught
        threading.excepthook = self.handle_thread_exception
        self._installed = True
        self.logger.info("Process fault supervisor installed")

    def attach_loop(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Route a loop's unhandled async failures to this supervisor."""
        loop = loop or asyncio.get_running_loop()
        if loop in self._loops:
            return
        self._loops[loop] = loop.get_exception_handler()
        loop.set_exception_handler(self.handle_async_failure)

    def detach_loop(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        loop = loop or asyncio.get_running_loop()
        if loop in self._loops:
            loop.set_exception_handler(self._loops.pop(loop))

    def uninstall(self) -> None:
        """Restore the hooks that were active before install()."""
        for loop in list(self._loops):
            if not loop.is_closed():
                loop.set_exception_handler(self._loops[loop])
        self._loops.clear()

        if self._installed:
            sys.excepthook = self._previous_excepthook
            threading.excepthook = self._previous_threading_excepthook
            self._installed = False

    def handle_async_failure(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        """asyncio exception handler for failures nobody awaited."""
        error = context.get("exception")
        message = context.get("message", "Unhandled asynchronous failure")
        self._report("async", error, message)

    def handle_uncaught(self, exc_type, exc_value, exc_traceback) -> None:
        """sys.excepthook replacement."""
        if issubclass(exc_type, KeyboardInterrupt):
            (self._previous_excepthook or sys.__excepthook__)(exc_type, exc_value, exc_traceback)
            return
        self._report("uncaught", exc_value, "Uncaught exception",
                     exc_info=(exc_type, exc_value, exc_traceback))

    def handle_thread_exception(self, args) -> None:
        """threading.excepthook replacement."""
        if args.exc_type is SystemExit:
            return
        self._report(
            "thread",
            args.exc_value,
            "Uncaught exception in thread",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
            thread=getattr(args.thread, "name", None),
        )

    def _report(self, channel: str, error: Optional[BaseException], message: str, **extra) -> None:
        transient = error is not None and self._classify(error)

        if self.metrics:
            self.metrics.record_process_fault(channel, transient)

        if transient:
            self.logger.warning(
                "Store connectivity fault observed, process continues",
                channel=channel,
                error=str(error),
                **extra,
            )
        else:
            self.logger.error(
                message,
                channel=channel,
                error=str(error) if error is not None else None,
                error_type=type(error).__name__ if error is not None else None,
                **extra,
            )

    def _classify(self, error: BaseException) -> bool:
        try:
            return bool(self.is_transient(error))
        except Exception as exc:  # pragma: no cover - classifier bugs must not escape the hook
            self.logger.debug("Fault classifier failed", error=str(exc))
            return False


_supervisor: Optional[ProcessFaultSupervisor] = None


def get_process_supervisor(**kwargs) -> ProcessFaultSupervisor:
    """Return the process supervisor, constructing it on first use.

    Keyword arguments only apply to the first call. Later calls return the
    existing supervisor unchanged and log the arguments they dropped, so
    faults keep being counted in the first caller's metrics registry.
    """
    global _supervisor
    if _supervisor is None:
        _supervisor = ProcessFaultSupervisor(**kwargs)
    elif kwargs:
        _supervisor.logger.warning(
            "Process supervisor already constructed, ignoring arguments",
            ignored=sorted(kwargs),
        )
    return _supervisor
