"""Data models for oom-guard."""

import signal
from dataclasses import dataclass
from enum import Enum

# Sentinels used when a process attribute cannot be read
UNKNOWN_PID = -1
UNKNOWN_UID = -1
UNKNOWN_OOM_SCORE = 0

# First UID of the conventional non-system user range
FIRST_USER_UID = 1000


class ProcessStatus(Enum):
    """Scheduling state of a process."""

    RUNNING = "running"
    SLEEPING = "sleeping"
    DISK_SLEEP = "disk-sleep"
    ZOMBIE = "zombie"
    STOPPED = "stopped"
    TRACING_STOP = "tracing-stop"
    PAGING = "paging"
    DEAD = "dead"
    WAKEKILL = "wakekill"
    PARKED = "parked"
    IDLE = "idle"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "ProcessStatus":
        """Map a psutil status string or a /proc state letter to a status.

        Unrecognized values map to UNKNOWN rather than failing.
        """
        if not value:
            return cls.UNKNOWN
        if value in _STATE_CODES:
            return _STATE_CODES[value]
        return _STATUS_ALIASES.get(value.lower(), cls.UNKNOWN)


# Single-letter codes from the "State:" line of /proc/<pid>/status
_STATE_CODES = {
    "R": ProcessStatus.RUNNING,
    "S": ProcessStatus.SLEEPING,
    "D": ProcessStatus.DISK_SLEEP,
    "Z": ProcessStatus.ZOMBIE,
    "T": ProcessStatus.STOPPED,
    "t": ProcessStatus.TRACING_STOP,
    "W": ProcessStatus.PAGING,
    "X": ProcessStatus.DEAD,
    "x": ProcessStatus.DEAD,
    "K": ProcessStatus.WAKEKILL,
    "P": ProcessStatus.PARKED,
    "I": ProcessStatus.IDLE,
}

# psutil spells a few states differently
_STATUS_ALIASES = {status.value: status for status in ProcessStatus} | {
    "wake-kill": ProcessStatus.WAKEKILL,
    "waking": ProcessStatus.PAGING,
}


class SafetyTier(Enum):
    """Risk classification of a process.

    UNKNOWN is distinct from SAFE: it means a human should decide.
    """

    CRITICAL = "critical"
    IMPORTANT = "important"
    SAFE = "safe"
    UNKNOWN = "unknown"

    @property
    def caution(self) -> int:
        """Rank by how much care a kill needs. SAFE and UNKNOWN tie."""
        return _CAUTION[self]


_CAUTION = {
    SafetyTier.CRITICAL: 2,
    SafetyTier.IMPORTANT: 1,
    SafetyTier.SAFE: 0,
    SafetyTier.UNKNOWN: 0,
}


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of one process for one scan cycle."""

    pid: int
    name: str = ""
    status: ProcessStatus = ProcessStatus.UNKNOWN
    ppid: int = UNKNOWN_PID
    uid: int = UNKNOWN_UID
    oom_score: int = UNKNOWN_OOM_SCORE

    @property
    def is_zombie(self) -> bool:
        """True if the process has exited but was not reaped."""
        return self.status is ProcessStatus.ZOMBIE

    @property
    def is_user_process(self) -> bool:
        """True if owned by a regular (non-system) user."""
        return self.uid >= FIRST_USER_UID


@dataclass(slots=True, frozen=True)
class ClassifiedProcess:
    """A process record paired with its safety tier."""

    record: ProcessRecord
    tier: SafetyTier

    @property
    def pid(self) -> int:
        return self.record.pid

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def status(self) -> ProcessStatus:
        return self.record.status

    @property
    def ppid(self) -> int:
        return self.record.ppid

    @property
    def uid(self) -> int:
        return self.record.uid

    @property
    def oom_score(self) -> int:
        return self.record.oom_score

    @property
    def is_zombie(self) -> bool:
        return self.record.is_zombie


@dataclass(slots=True, frozen=True)
class TerminationOutcome:
    """Result of one attempt to signal a process."""

    pid: int
    name: str
    signal: signal.Signals
    requested: bool
    succeeded: bool
    error: str | None = None
