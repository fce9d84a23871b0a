"""Scan loop for oom-guard.

Each cycle: check memory (optional) -> enumerate -> classify every record ->
evaluate the cleanup policy over the whole batch -> signal candidates ->
hand a CycleReport to the reporter. Cycles never overlap and a failed cycle
never stops the loop.
"""

import asyncio
import signal
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog

from oom_guard.classifier import Classifier
from oom_guard.collector import EnumerationError, ProcessCollector
from oom_guard.config import Config
from oom_guard.executor import TerminationExecutor
from oom_guard.memory import MemoryAlert, MemoryStatus, get_memory_stats
from oom_guard.models import ClassifiedProcess, TerminationOutcome
from oom_guard.policy import LegacyZombiePolicy, evaluate

log = structlog.get_logger()


class MonitorPhase(Enum):
    """Where the loop is between and during cycles."""

    IDLE = "idle"
    SCANNING = "scanning"


@dataclass
class CycleReport:
    """Everything one cycle hands to presentation."""

    cycle: int
    started_at: datetime
    retained: list[ClassifiedProcess] = field(default_factory=list)
    outcomes: list[TerminationOutcome] = field(default_factory=list)
    skipped_zombies: list[ClassifiedProcess] = field(default_factory=list)
    memory: MemoryStatus | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def killed(self) -> list[TerminationOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[TerminationOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


@dataclass
class MonitorState:
    """Runtime counters of the monitor."""

    phase: MonitorPhase = MonitorPhase.IDLE
    cycle_count: int = 0
    failed_cycles: int = 0
    terminated: int = 0
    failed_terminations: int = 0
    last_cycle_time: datetime | None = None

    def record(self, report: CycleReport) -> None:
        """Update counters from a finished cycle."""
        self.cycle_count += 1
        self.last_cycle_time = report.started_at
        if not report.ok:
            self.failed_cycles += 1
        self.terminated += len(report.killed)
        self.failed_terminations += len(report.failed)


Reporter = Callable[[CycleReport], None]


class Monitor:
    """Runs scan cycles on a fixed interval until shut down."""

    def __init__(
        self,
        config: Config,
        collector: ProcessCollector | None = None,
        executor: TerminationExecutor | None = None,
        memory_alert: MemoryAlert | None = None,
        reporter: Reporter | None = None,
    ):
        self.config = config
        self.state = MonitorState()
        self.policy = config.cleanup_policy()
        self.classifier = Classifier(config.name_tables())
        self.collector = collector or ProcessCollector()
        self.executor = executor or TerminationExecutor()

        alert_cfg = config.memory_alert
        if memory_alert is None and alert_cfg.enabled:
            memory_alert = MemoryAlert(alert_cfg.threshold_gb, alert_cfg.cooldown_minutes)
        self.memory_alert = memory_alert

        self.reporter = reporter
        self._shutdown_event = asyncio.Event()

    @property
    def interval(self) -> float:
        return float(self.config.monitor.interval)

    def _check_memory(self) -> MemoryStatus | None:
        if self.memory_alert is None:
            return None
        try:
            return self.memory_alert.notify_if_low(get_memory_stats())
        except Exception as e:
            log.error("memory_check_failed", error=str(e))
            return None

    def _scan(self, report: CycleReport) -> None:
        records = self.collector.collect()
        # Every record is classified before the policy sees any of them
        classified = self.classifier.classify_all(records)
        partition = evaluate(classified, self.policy, self.classifier.is_browser)

        report.outcomes = self.executor.execute(partition.candidates)
        report.retained = partition.retained

        if isinstance(self.policy, LegacyZombiePolicy):
            report.skipped_zombies = [p for p in partition.retained if p.is_zombie]
            for zombie in report.skipped_zombies:
                log.info(
                    "zombie_skipped",
                    pid=zombie.pid,
                    name=zombie.name,
                    tier=zombie.tier.value,
                )

        log.debug(
            "cycle_complete",
            cycle=report.cycle,
            processes=len(classified),
            candidates=len(partition.candidates),
            killed=len(report.killed),
        )

    def run_cycle(self) -> CycleReport:
        """Run one complete cycle. Errors are captured in the report, never raised."""
        report = CycleReport(cycle=self.state.cycle_count + 1, started_at=datetime.now())
        self.state.phase = MonitorPhase.SCANNING
        try:
            report.memory = self._check_memory()
            self._scan(report)
        except EnumerationError as e:
            log.error("cycle_failed", cycle=report.cycle, error=str(e))
            report.error = str(e)
        except Exception as e:
            log.exception("cycle_failed", cycle=report.cycle, error=str(e))
            report.error = str(e)
        finally:
            self.state.phase = MonitorPhase.IDLE

        self.state.record(report)
        return report

    def _report(self, report: CycleReport) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter(report)
        except Exception as e:
            log.exception("report_failed", cycle=report.cycle, error=str(e))

    def request_shutdown(self) -> None:
        """Stop before the next cycle. A running cycle finishes first."""
        self._shutdown_event.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        log.info("signal_received", signal=sig.name)
        self.request_shutdown()

    def install_signal_handlers(self) -> None:
        """Route SIGTERM and SIGINT to a graceful shutdown."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))

    async def run(self) -> None:
        """Run cycles until shutdown is requested.

        The first cycle starts immediately. The interval is measured from the
        start of a cycle, so a cycle longer than the interval delays the next
        one instead of overlapping it.
        """
        loop = asyncio.get_running_loop()
        log.info(
            "monitor_started",
            interval=self.interval,
            policy=type(self.policy).__name__,
        )

        while not self._shutdown_event.is_set():
            cycle_start = loop.time()

            # Scans block on /proc reads, so they run in a worker thread
            report = await loop.run_in_executor(None, self.run_cycle)
            self._report(report)

            sleep_time = self.interval - (loop.time() - cycle_start)
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=max(sleep_time, 0))
            except asyncio.TimeoutError:
                pass  # Normal tick

        log.info(
            "monitor_stopped",
            cycles=self.state.cycle_count,
            terminated=self.state.terminated,
        )


async def run_monitor(config: Config, reporter: Reporter | None = None) -> Monitor:
    """Run the monitor until SIGTERM/SIGINT.

    Returns:
        The stopped Monitor, for its final state.
    """
    monitor = Monitor(config, reporter=reporter)
    monitor.install_signal_handlers()
    await monitor.run()
    return monitor
