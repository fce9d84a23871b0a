"""Low-memory alerts with desktop notifications.

Advisory only: nothing here influences which processes get killed.
"""

import os
import shutil
import subprocess
import time
from dataclasses import dataclass

import psutil
import structlog

log = structlog.get_logger()

NOTIFICATION_TITLE = "OOM-Saver"
MB = 1024 * 1024


@dataclass(frozen=True)
class MemoryStats:
    """System memory figures in megabytes."""

    total_mb: int
    free_mb: int
    available_mb: int

    @property
    def used_mb(self) -> int:
        return self.total_mb - self.available_mb

    @property
    def used_percent(self) -> float:
        if self.total_mb <= 0:
            return 0.0
        return self.used_mb / self.total_mb * 100

    @property
    def available_percent(self) -> float:
        if self.total_mb <= 0:
            return 0.0
        return self.available_mb / self.total_mb * 100


@dataclass(frozen=True)
class MemoryStatus:
    """Memory figures plus whether the low-memory condition is active."""

    stats: MemoryStats
    low: bool
    message: str


def get_memory_stats() -> MemoryStats:
    """Read current memory figures via psutil."""
    mem = psutil.virtual_memory()
    return MemoryStats(
        total_mb=mem.total // MB,
        free_mb=mem.free // MB,
        available_mb=mem.available // MB,
    )


def format_memory_status(stats: MemoryStats) -> str:
    """One-line memory summary."""
    return (
        f"Memory: {stats.used_mb}/{stats.total_mb} MB used "
        f"({stats.used_percent:.1f}%), {stats.available_mb} MB available"
    )


def send_notification(title: str, message: str, urgency: str = "critical") -> bool:
    """Send a desktop notification via notify-send.

    Args:
        title: Notification title
        message: Notification body
        urgency: notify-send urgency (low, normal, critical)

    Returns:
        True if notification was sent successfully
    """
    if shutil.which("notify-send") is None:
        log.warning("notification_failed", error="notify-send not found, install libnotify-bin")
        return False

    try:
        result = subprocess.run(
            ["notify-send", "-u", urgency, "-i", "dialog-warning", title, message],
            capture_output=True,
            timeout=5,
            env=os.environ.copy(),
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        log.warning("notification_failed", error=str(e))
        return False

    if result.returncode != 0:
        log.warning("notification_failed", error=result.stderr.decode(errors="replace").strip())
        return False

    log.debug("notification_sent", title=title)
    return True


class MemoryAlert:
    """Tracks the low-memory condition and rate-limits notifications.

    The cooldown timestamp lives here and nowhere else.
    """

    def __init__(self, threshold_gb: int = 3, cooldown_minutes: int = 15):
        self.threshold_gb = threshold_gb
        self.cooldown_seconds = cooldown_minutes * 60
        self.last_alert_time: float | None = None
        self.notification_sent = False
        self.alert_active = False

    @property
    def threshold_mb(self) -> int:
        return self.threshold_gb * 1024

    def check_threshold(self, stats: MemoryStats) -> tuple[bool, str]:
        """Return (is_low, message). Low means available at or below the threshold."""
        if stats.available_mb <= self.threshold_mb:
            return True, (
                f"Low memory! Only {stats.available_mb} MB "
                f"({stats.available_percent:.1f}%) available out of {stats.total_mb} MB total"
            )
        return False, ""

    def should_send_alert(self, now: float | None = None) -> bool:
        """False while a sent alert is still inside its cooldown window."""
        if not self.notification_sent or self.last_alert_time is None:
            return True
        now = time.monotonic() if now is None else now
        return now - self.last_alert_time >= self.cooldown_seconds

    def notify_if_low(self, stats: MemoryStats, now: float | None = None) -> MemoryStatus:
        """Check memory and notify if low and not cooling down.

        A failed notification does not start the cooldown. Recovery re-arms
        the alert so the next low-memory episode notifies immediately.
        """
        now = time.monotonic() if now is None else now
        is_low, message = self.check_threshold(stats)
        self.alert_active = is_low

        if is_low and self.should_send_alert(now):
            log.warning("memory_low", available_mb=stats.available_mb, total_mb=stats.total_mb)
            if send_notification(NOTIFICATION_TITLE, message, "critical"):
                self.last_alert_time = now
                self.notification_sent = True
        elif not is_low:
            self.notification_sent = False

        return MemoryStatus(stats=stats, low=is_low, message=message)
