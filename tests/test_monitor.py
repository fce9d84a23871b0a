"""Tests for the scan loop."""

import signal
import threading
from unittest.mock import MagicMock, patch

import pytest

from oom_guard.collector import EnumerationError
from oom_guard.config import Config
from oom_guard.executor import TerminationExecutor
from oom_guard.memory import MemoryAlert, MemoryStats
from oom_guard.models import ProcessStatus, SafetyTier
from oom_guard.monitor import Monitor, MonitorPhase
from tests.conftest import make_classified, make_record


def _records():
    return [
        make_record(pid=100, name="defunct", status=ProcessStatus.ZOMBIE),
        make_record(pid=1, name="systemd", uid=0, ppid=0),
        make_record(pid=200, name="editor", uid=1000),
        make_record(pid=300, name="sshd-session", status=ProcessStatus.ZOMBIE, uid=0),
    ]


@pytest.fixture
def collector() -> MagicMock:
    mock = MagicMock()
    mock.collect.return_value = _records()
    return mock


@pytest.fixture
def send_signal() -> MagicMock:
    return MagicMock()


def _monitor(config: Config, collector, send_signal, **kwargs) -> Monitor:
    return Monitor(
        config,
        collector=collector,
        executor=TerminationExecutor(send_signal=send_signal),
        **kwargs,
    )


class TestRunCycle:
    def test_legacy_policy_kills_safe_zombies(self, collector, send_signal):
        """Zombies classify as safe, so the default policy reaps every one."""
        monitor = _monitor(Config(), collector, send_signal)
        report = monitor.run_cycle()

        assert report.ok
        assert [o.pid for o in report.outcomes] == [100, 300]
        assert send_signal.call_args_list[0].args == (100, signal.SIGTERM)
        assert [p.pid for p in report.retained] == [1, 200]
        assert report.skipped_zombies == []

    def test_legacy_policy_reports_skipped_zombies(self, collector, send_signal):
        monitor = _monitor(Config(), collector, send_signal)
        batch = [
            make_classified(SafetyTier.CRITICAL, pid=5, name="init", status=ProcessStatus.ZOMBIE),
            make_classified(SafetyTier.SAFE, pid=6, status=ProcessStatus.ZOMBIE),
        ]
        with patch.object(monitor.classifier, "classify_all", return_value=batch):
            report = monitor.run_cycle()

        assert [o.pid for o in report.outcomes] == [6]
        assert [p.pid for p in report.skipped_zombies] == [5]

    def test_monitor_only_never_signals(self, collector, send_signal):
        config = Config()
        config.monitor.auto_kill = False
        report = _monitor(config, collector, send_signal).run_cycle()
        assert report.outcomes == []
        assert len(report.retained) == 4
        send_signal.assert_not_called()

    def test_structured_policy(self, collector, send_signal):
        config = Config()
        config.policy.mode = "structured"
        config.policy.kill_user_processes = True
        report = _monitor(config, collector, send_signal).run_cycle()
        assert [o.pid for o in report.outcomes] == [200]

    def test_outcomes_follow_scan_order(self, collector, send_signal):
        config = Config()
        config.policy.auto_kill_all_zombies = True
        report = _monitor(config, collector, send_signal).run_cycle()
        assert [o.pid for o in report.outcomes] == [100, 300]

    def test_enumeration_failure_is_captured(self, collector, send_signal):
        collector.collect.side_effect = EnumerationError("failed to list processes")
        monitor = _monitor(Config(), collector, send_signal)

        report = monitor.run_cycle()

        assert not report.ok
        assert report.error == "failed to list processes"
        assert monitor.state.failed_cycles == 1
        assert monitor.state.phase is MonitorPhase.IDLE
        send_signal.assert_not_called()

    def test_unexpected_error_is_captured(self, collector, send_signal):
        collector.collect.side_effect = RuntimeError("boom")
        report = _monitor(Config(), collector, send_signal).run_cycle()
        assert report.error == "boom"

    def test_state_counters(self, collector, send_signal):
        monitor = _monitor(Config(), collector, send_signal)
        monitor.run_cycle()
        monitor.run_cycle()
        assert monitor.state.cycle_count == 2
        assert monitor.state.terminated == 4
        assert monitor.state.last_cycle_time is not None

    def test_memory_check_runs_when_enabled(self, collector, send_signal):
        alert = MemoryAlert(threshold_gb=3)
        stats = MemoryStats(total_mb=16384, free_mb=100, available_mb=512)
        with (
            patch("oom_guard.monitor.get_memory_stats", return_value=stats),
            patch("oom_guard.memory.send_notification", return_value=True) as mock_send,
        ):
            report = _monitor(Config(), collector, send_signal, memory_alert=alert).run_cycle()

        assert report.memory is not None
        assert report.memory.low
        mock_send.assert_called_once()

    def test_memory_failure_does_not_stop_scan(self, collector, send_signal):
        with patch("oom_guard.monitor.get_memory_stats", side_effect=OSError("no meminfo")):
            report = _monitor(
                Config(), collector, send_signal, memory_alert=MemoryAlert()
            ).run_cycle()
        assert report.ok
        assert report.memory is None
        assert len(report.outcomes) == 2

    def test_memory_alert_built_from_config(self, collector, send_signal):
        config = Config()
        config.memory_alert.enabled = True
        config.memory_alert.threshold_gb = 8
        monitor = _monitor(config, collector, send_signal)
        assert monitor.memory_alert is not None
        assert monitor.memory_alert.threshold_gb == 8


class TestRun:
    @pytest.mark.asyncio
    async def test_first_cycle_runs_immediately(self, collector, send_signal):
        reports = []

        def reporter(report):
            reports.append(report)
            monitor.request_shutdown()

        monitor = _monitor(Config(), collector, send_signal, reporter=reporter)
        await monitor.run()

        assert len(reports) == 1
        assert reports[0].cycle == 1

    @pytest.mark.asyncio
    async def test_failed_cycle_does_not_stop_loop(self, collector, send_signal):
        collector.collect.side_effect = [EnumerationError("transient"), _records()]
        reports = []

        def reporter(report):
            reports.append(report)
            if len(reports) == 2:
                monitor.request_shutdown()

        config = Config()
        config.monitor.interval = 0
        monitor = _monitor(config, collector, send_signal, reporter=reporter)
        await monitor.run()

        assert [r.ok for r in reports] == [False, True]
        assert monitor.state.cycle_count == 2

    @pytest.mark.asyncio
    async def test_reporter_errors_are_contained(self, collector, send_signal):
        calls = []

        def reporter(report):
            calls.append(report.cycle)
            monitor.request_shutdown()
            raise RuntimeError("display broke")

        monitor = _monitor(Config(), collector, send_signal, reporter=reporter)
        await monitor.run()
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_shutdown_before_start(self, collector, send_signal):
        monitor = _monitor(Config(), collector, send_signal)
        monitor.request_shutdown()
        await monitor.run()
        assert monitor.state.cycle_count == 0
        collector.collect.assert_not_called()

    @pytest.mark.asyncio
    async def test_signal_handler_requests_shutdown(self, collector, send_signal):
        monitor = _monitor(Config(), collector, send_signal)
        monitor._handle_signal(signal.SIGTERM)
        assert monitor._shutdown_event.is_set()

    @pytest.mark.asyncio
    async def test_cycles_run_off_the_loop_thread(self, collector, send_signal):
        """Cycles run in a worker thread, one at a time."""
        loop_thread = threading.get_ident()
        cycle_threads = []
        active = []

        def collect():
            active.append(1)
            assert len(active) == 1
            cycle_threads.append(threading.get_ident())
            active.pop()
            return _records()

        collector.collect.side_effect = collect

        def reporter(report):
            if report.cycle == 2:
                monitor.request_shutdown()

        config = Config()
        config.monitor.interval = 0
        monitor = _monitor(config, collector, send_signal, reporter=reporter)
        await monitor.run()

        assert len(cycle_threads) == 2
        assert loop_thread not in cycle_threads
        assert monitor.state.failed_cycles == 0
