"""Signal delivery for termination candidates."""

import os
import signal
from collections.abc import Callable, Iterable
from enum import Enum

import structlog

from oom_guard.models import ClassifiedProcess, SafetyTier, TerminationOutcome

log = structlog.get_logger()

SendSignal = Callable[[int, int], None]

RISK_ACKNOWLEDGEMENT = "I UNDERSTAND THE RISK"

_SIGNAL_NAMES = {
    "TERM": signal.SIGTERM,
    "SIGTERM": signal.SIGTERM,
    "KILL": signal.SIGKILL,
    "SIGKILL": signal.SIGKILL,
}


class ProcessNotFoundError(LookupError):
    """No live process with the requested PID."""

    def __init__(self, pid: int):
        super().__init__(f"process {pid} not found")
        self.pid = pid


class SafetyCheckError(Exception):
    """Refused to signal a process because of its safety tier."""

    def __init__(self, process: ClassifiedProcess):
        super().__init__(
            f"cannot kill critical process (PID {process.pid}, {process.name}) "
            "without --force flag"
        )
        self.process = process


class Confirmation(Enum):
    """Confirmation an operator must give before a manual kill."""

    ACKNOWLEDGE_RISK = "acknowledge_risk"  # Type the literal acknowledgement phrase
    CONFIRM_IMPORTANT = "confirm_important"  # y/N with a service-disruption warning
    CONFIRM = "confirm"  # Plain y/N


def parse_signal(name: str) -> signal.Signals:
    """Parse TERM/SIGTERM/KILL/SIGKILL, case-insensitively.

    Raises:
        ValueError: For any other signal name.
    """
    try:
        return _SIGNAL_NAMES[name.strip().upper()]
    except KeyError:
        raise ValueError(f"unsupported signal: {name} (use SIGTERM or SIGKILL)") from None


def describe_error(exc: OSError) -> str:
    """Short reason for a failed signal delivery."""
    if isinstance(exc, ProcessLookupError):
        return "process no longer exists"
    if isinstance(exc, PermissionError):
        return "permission denied"
    return exc.strerror or str(exc)


class TerminationExecutor:
    """Sends termination signals and records per-process outcomes.

    One failure never stops the rest of the batch.
    """

    def __init__(self, send_signal: SendSignal = os.kill):
        self._send_signal = send_signal

    def signal_process(
        self, process: ClassifiedProcess, sig: signal.Signals = signal.SIGTERM
    ) -> TerminationOutcome:
        """Signal one process and report the outcome."""
        try:
            self._send_signal(process.pid, sig)
        except OSError as e:
            reason = describe_error(e)
            log.warning(
                "termination_failed",
                pid=process.pid,
                name=process.name,
                signal=sig.name,
                error=reason,
            )
            return TerminationOutcome(
                pid=process.pid,
                name=process.name,
                signal=sig,
                requested=True,
                succeeded=False,
                error=reason,
            )

        log.info(
            "process_terminated",
            pid=process.pid,
            name=process.name,
            tier=process.tier.value,
            status=process.status.value,
            signal=sig.name,
        )
        return TerminationOutcome(
            pid=process.pid,
            name=process.name,
            signal=sig,
            requested=True,
            succeeded=True,
        )

    def execute(
        self,
        candidates: Iterable[ClassifiedProcess],
        sig: signal.Signals = signal.SIGTERM,
    ) -> list[TerminationOutcome]:
        """Signal every candidate; outcomes follow candidate order."""
        return [self.signal_process(process, sig) for process in candidates]


# ─────────────────────────────────────────────────────────────────────────────
# Manual single-PID termination
# ─────────────────────────────────────────────────────────────────────────────


def find_process(pid: int, processes: Iterable[ClassifiedProcess]) -> ClassifiedProcess:
    """Find a PID in a freshly enumerated batch.

    Raises:
        ProcessNotFoundError: If the PID is not in the batch.
    """
    for process in processes:
        if process.pid == pid:
            return process
    raise ProcessNotFoundError(pid)


def required_confirmation(process: ClassifiedProcess, force: bool) -> Confirmation:
    """Return the confirmation needed before killing a process by hand.

    Raises:
        SafetyCheckError: For a critical process without force. No prompt is offered.
    """
    if process.tier is SafetyTier.CRITICAL:
        if not force:
            raise SafetyCheckError(process)
        return Confirmation.ACKNOWLEDGE_RISK
    if process.tier is SafetyTier.IMPORTANT:
        return Confirmation.CONFIRM_IMPORTANT
    return Confirmation.CONFIRM


def kill_with_safety(
    pid: int,
    sig: signal.Signals,
    force: bool,
    processes: Iterable[ClassifiedProcess],
    executor: TerminationExecutor | None = None,
) -> TerminationOutcome:
    """Find, gate and signal a single process without prompting.

    Raises:
        ProcessNotFoundError: If the PID is not in the batch.
        SafetyCheckError: For a critical process without force.
    """
    process = find_process(pid, processes)
    required_confirmation(process, force)
    executor = executor or TerminationExecutor()
    return executor.signal_process(process, sig)
