"""Shared test fixtures for oom-guard."""

import pytest

from oom_guard.models import (
    ClassifiedProcess,
    ProcessRecord,
    ProcessStatus,
    SafetyTier,
)


def make_record(
    pid: int = 1234,
    name: str = "worker",
    status: ProcessStatus = ProcessStatus.SLEEPING,
    ppid: int = 900,
    uid: int = 500,
    oom_score: int = 100,
) -> ProcessRecord:
    """Create a ProcessRecord for testing.

    Defaults describe a process that matches no classification rule.
    """
    return ProcessRecord(
        pid=pid, name=name, status=status, ppid=ppid, uid=uid, oom_score=oom_score
    )


def make_classified(tier: SafetyTier = SafetyTier.SAFE, **kwargs) -> ClassifiedProcess:
    """Create a ClassifiedProcess with an explicit tier."""
    return ClassifiedProcess(record=make_record(**kwargs), tier=tier)


@pytest.fixture
def zombie_batch() -> list[ClassifiedProcess]:
    """A safe zombie, a critical zombie and a running user process."""
    return [
        make_classified(SafetyTier.SAFE, pid=10, name="defunct", status=ProcessStatus.ZOMBIE),
        make_classified(
            SafetyTier.CRITICAL, pid=11, name="systemd-journald", status=ProcessStatus.ZOMBIE
        ),
        make_classified(
            SafetyTier.SAFE, pid=12, name="editor", status=ProcessStatus.RUNNING, uid=1000
        ),
    ]
