"""Tests for data models."""

import pytest

from oom_guard.models import ProcessStatus, SafetyTier

from tests.conftest import make_classified, make_record


@pytest.mark.parametrize(
    "value,expected",
    [
        ("R", ProcessStatus.RUNNING),
        ("Z", ProcessStatus.ZOMBIE),
        ("t", ProcessStatus.TRACING_STOP),
        ("I", ProcessStatus.IDLE),
        ("running", ProcessStatus.RUNNING),
        ("disk-sleep", ProcessStatus.DISK_SLEEP),
        ("zombie", ProcessStatus.ZOMBIE),
        ("wake-kill", ProcessStatus.WAKEKILL),
        ("waking", ProcessStatus.PAGING),
    ],
)
def test_status_parse_known_values(value, expected):
    """Both /proc state letters and psutil names are understood."""
    assert ProcessStatus.parse(value) is expected


@pytest.mark.parametrize("value", [None, "", "q", "something-new"])
def test_status_parse_unknown_values(value):
    """Anything unrecognized maps to UNKNOWN instead of failing."""
    assert ProcessStatus.parse(value) is ProcessStatus.UNKNOWN


def test_tier_values():
    """UNKNOWN stays distinct from SAFE."""
    assert [t.value for t in SafetyTier] == ["critical", "important", "safe", "unknown"]
    assert SafetyTier.SAFE is not SafetyTier.UNKNOWN


def test_tier_caution_ordering():
    """CRITICAL > IMPORTANT > SAFE/UNKNOWN, with SAFE and UNKNOWN unordered."""
    assert SafetyTier.CRITICAL.caution > SafetyTier.IMPORTANT.caution
    assert SafetyTier.IMPORTANT.caution > SafetyTier.SAFE.caution
    assert SafetyTier.SAFE.caution == SafetyTier.UNKNOWN.caution


def test_record_defaults_use_sentinels():
    """Unreadable attributes fall back to sentinel values."""
    from oom_guard.models import ProcessRecord

    record = ProcessRecord(pid=42)
    assert record.name == ""
    assert record.status is ProcessStatus.UNKNOWN
    assert record.ppid == -1
    assert record.uid == -1
    assert record.oom_score == 0
    assert not record.is_user_process


def test_record_is_immutable():
    record = make_record()
    with pytest.raises(AttributeError):
        record.pid = 1  # type: ignore[misc]


def test_record_flags():
    assert make_record(status=ProcessStatus.ZOMBIE).is_zombie
    assert not make_record(status=ProcessStatus.RUNNING).is_zombie
    assert make_record(uid=1000).is_user_process
    assert not make_record(uid=999).is_user_process


def test_classified_process_forwards_record_fields():
    process = make_classified(SafetyTier.IMPORTANT, pid=7, name="cron", ppid=1, uid=0)
    assert process.pid == 7
    assert process.name == "cron"
    assert process.ppid == 1
    assert process.uid == 0
    assert process.tier is SafetyTier.IMPORTANT
