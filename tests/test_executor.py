"""Tests for signal delivery and manual kills."""

import errno
import signal
from unittest.mock import MagicMock

import pytest

from oom_guard.executor import (
    Confirmation,
    ProcessNotFoundError,
    SafetyCheckError,
    TerminationExecutor,
    describe_error,
    find_process,
    kill_with_safety,
    parse_signal,
    required_confirmation,
)
from oom_guard.models import SafetyTier
from tests.conftest import make_classified


def _send_signal_failing_for(*pids: int, exc: type[OSError] = ProcessLookupError):
    def send_signal(pid: int, sig: int) -> None:
        if pid in pids:
            raise exc()

    return MagicMock(side_effect=send_signal)


class TestTerminationExecutor:
    def test_one_failure_does_not_stop_the_batch(self):
        """A vanished process is reported and the rest are still signalled."""
        send_signal = _send_signal_failing_for(21)
        executor = TerminationExecutor(send_signal=send_signal)
        candidates = [make_classified(pid=pid) for pid in (20, 21, 22)]

        outcomes = executor.execute(candidates)

        assert [o.pid for o in outcomes] == [20, 21, 22]
        assert [o.succeeded for o in outcomes] == [True, False, True]
        assert all(o.requested for o in outcomes)
        assert outcomes[1].error == "process no longer exists"
        assert send_signal.call_count == 3

    def test_default_signal_is_sigterm(self):
        send_signal = MagicMock()
        outcome = TerminationExecutor(send_signal=send_signal).signal_process(
            make_classified(pid=5)
        )
        send_signal.assert_called_once_with(5, signal.SIGTERM)
        assert outcome.signal is signal.SIGTERM

    def test_permission_denied(self):
        executor = TerminationExecutor(send_signal=_send_signal_failing_for(5, exc=PermissionError))
        outcome = executor.signal_process(make_classified(pid=5), signal.SIGKILL)
        assert not outcome.succeeded
        assert outcome.error == "permission denied"
        assert outcome.signal is signal.SIGKILL

    def test_empty_batch(self):
        send_signal = MagicMock()
        assert TerminationExecutor(send_signal=send_signal).execute([]) == []
        send_signal.assert_not_called()


def test_describe_error_falls_back_to_strerror():
    assert describe_error(OSError(errno.EIO, "Input/output error")) == "Input/output error"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("SIGTERM", signal.SIGTERM),
        ("term", signal.SIGTERM),
        ("SIGKILL", signal.SIGKILL),
        (" kill ", signal.SIGKILL),
    ],
)
def test_parse_signal(name, expected):
    assert parse_signal(name) is expected


def test_parse_signal_rejects_others():
    with pytest.raises(ValueError, match="unsupported signal"):
        parse_signal("SIGHUP")


class TestManualKill:
    def test_find_process(self):
        batch = [make_classified(pid=1), make_classified(pid=2)]
        assert find_process(2, batch).pid == 2

    def test_find_process_missing(self):
        with pytest.raises(ProcessNotFoundError) as exc_info:
            find_process(99, [make_classified(pid=1)])
        assert exc_info.value.pid == 99

    def test_critical_without_force_is_refused(self):
        process = make_classified(SafetyTier.CRITICAL, pid=1, name="systemd")
        with pytest.raises(SafetyCheckError, match="without --force"):
            required_confirmation(process, force=False)

    @pytest.mark.parametrize(
        "tier,force,expected",
        [
            (SafetyTier.CRITICAL, True, Confirmation.ACKNOWLEDGE_RISK),
            (SafetyTier.IMPORTANT, False, Confirmation.CONFIRM_IMPORTANT),
            (SafetyTier.SAFE, False, Confirmation.CONFIRM),
            (SafetyTier.UNKNOWN, False, Confirmation.CONFIRM),
        ],
    )
    def test_required_confirmation(self, tier, force, expected):
        assert required_confirmation(make_classified(tier), force) is expected

    def test_kill_with_safety_refuses_critical_without_signalling(self):
        send_signal = MagicMock()
        batch = [make_classified(SafetyTier.CRITICAL, pid=1)]
        with pytest.raises(SafetyCheckError):
            kill_with_safety(
                1, signal.SIGTERM, False, batch, TerminationExecutor(send_signal=send_signal)
            )
        send_signal.assert_not_called()

    def test_kill_with_safety_forced(self):
        send_signal = MagicMock()
        batch = [make_classified(SafetyTier.CRITICAL, pid=1)]
        outcome = kill_with_safety(
            1, signal.SIGKILL, True, batch, TerminationExecutor(send_signal=send_signal)
        )
        assert outcome.succeeded
        send_signal.assert_called_once_with(1, signal.SIGKILL)

    def test_kill_with_safety_missing_pid(self):
        with pytest.raises(ProcessNotFoundError):
            kill_with_safety(7, signal.SIGTERM, False, [])
