"""
Unit tests for the process fault supervisor.
"""

import asyncio
import sys
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_songs.app.health import supervisor as supervisor_module
from service_songs.app.health.supervisor import ProcessFaultSupervisor, get_process_supervisor
from shared.metrics import MetricsCollector


class TestProcessFaultSupervisor:
    """Test cases for ProcessFaultSupervisor."""

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("songs-test")

    @pytest.fixture
    def supervisor(self, metrics):
        supervisor = ProcessFaultSupervisor(metrics=metrics)
        yield supervisor
        supervisor.uninstall()

    def _faults(self, metrics, channel, transient):
        return metrics.registry.get_sample_value(
            "process_faults_total", {"channel": channel, "transient": transient}
        )

    def test_install_is_idempotent(self, supervisor):
        original = sys.excepthook
        original_threading = threading.excepthook

        supervisor.install()
        supervisor.install()

        assert supervisor.installed
        assert sys.excepthook == supervisor.handle_uncaught
        assert threading.excepthook == supervisor.handle_thread_exception

        supervisor.uninstall()

        assert sys.excepthook is original
        assert threading.excepthook is original_threading
        assert not supervisor.installed

    def test_uncaught_exception_is_logged_not_raised(self, supervisor, metrics):
        error = RuntimeError("Connection terminated unexpectedly")

        supervisor.handle_uncaught(RuntimeError, error, None)

        assert self._faults(metrics, "uncaught", "true") == 1

    def test_non_transient_uncaught_exception(self, supervisor, metrics):
        error = ValueError("bad value")

        supervisor.handle_uncaught(ValueError, error, None)

        assert self._faults(metrics, "uncaught", "false") == 1

    def test_keyboard_interrupt_goes_to_previous_hook(self, supervisor, metrics):
        previous = MagicMock()
        sys_hook = sys.excepthook
        sys.excepthook = previous
        try:
            supervisor.install()
            supervisor.handle_uncaught(KeyboardInterrupt, KeyboardInterrupt(), None)
        finally:
            supervisor.uninstall()
            sys.excepthook = sys_hook

        previous.assert_called_once()
        assert self._faults(metrics, "uncaught", "false") is None

    def test_thread_exception(self, supervisor, metrics):
        args = SimpleNamespace(
            exc_type=RuntimeError,
            exc_value=RuntimeError("read ECONNRESET"),
            exc_traceback=None,
            thread=SimpleNamespace(name="worker-1"),
        )

        supervisor.handle_thread_exception(args)

        assert self._faults(metrics, "thread", "true") == 1

    def test_thread_system_exit_is_ignored(self, supervisor, metrics):
        args = SimpleNamespace(exc_type=SystemExit, exc_value=SystemExit(0), exc_traceback=None, thread=None)

        supervisor.handle_thread_exception(args)

        assert self._faults(metrics, "thread", "false") is None

    def test_injected_classifier(self, metrics):
        supervisor = ProcessFaultSupervisor(is_transient=lambda e: isinstance(e, KeyError), metrics=metrics)

        supervisor.handle_uncaught(KeyError, KeyError("x"), None)

        assert self._faults(metrics, "uncaught", "true") == 1

    def test_async_failure_without_exception(self, supervisor, metrics):
        supervisor.handle_async_failure(None, {"message": "Task was destroyed but it is pending!"})

        assert self._faults(metrics, "async", "false") == 1

    @pytest.mark.asyncio
    async def test_unretrieved_task_failure_is_routed(self, supervisor, metrics):
        loop = asyncio.get_running_loop()
        previous = loop.get_exception_handler()
        supervisor.attach_loop()

        loop.call_exception_handler({
            "message": "Task exception was never retrieved",
            "exception": ConnectionResetError("Connection reset by peer"),
        })

        assert self._faults(metrics, "async", "true") == 1

        supervisor.detach_loop()
        assert loop.get_exception_handler() is previous

    @pytest.mark.asyncio
    async def test_attach_is_idempotent(self, supervisor):
        loop = asyncio.get_running_loop()
        previous = loop.get_exception_handler()

        supervisor.attach_loop()
        supervisor.attach_loop()
        supervisor.detach_loop()

        assert loop.get_exception_handler() is previous

    def test_get_process_supervisor_is_a_singleton(self):
        assert get_process_supervisor() is get_process_supervisor()

    def test_later_arguments_are_dropped_with_a_warning(self, monkeypatch):
        monkeypatch.setattr(supervisor_module, "_supervisor", None)
        first_metrics = MetricsCollector("songs-first")
        second_metrics = MetricsCollector("songs-second")

        first = get_process_supervisor(metrics=first_metrics)
        first.logger = MagicMock()
        second = get_process_supervisor(metrics=second_metrics)

        assert second is first
        assert second.metrics is first_metrics
        first.logger.warning.assert_called_once()
        assert first.logger.warning.call_args.kwargs["ignored"] == ["metrics"]

    def test_repeat_call_without_arguments_is_silent(self, monkeypatch):
        monkeypatch.setattr(supervisor_module, "_supervisor", None)

        first = get_process_supervisor()
        first.logger = MagicMock()

        assert get_process_supervisor() is first
        first.logger.warning.assert_not_called()
