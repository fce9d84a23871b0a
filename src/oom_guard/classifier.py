"""Safety classification of processes.

Turns a ProcessRecord into a SafetyTier. Rules are evaluated top to bottom
and the first match wins:

1. zombie status -> safe (a zombie only holds its exit-status slot)
2. PID 1 -> critical
3. bracketed name such as "[kworker/0:1]" -> critical (kernel thread)
4. OOM score below -500 -> critical (protected by the kernel)
5. critical name prefix -> critical
6. important name prefix -> important
7. UID >= 1000 -> safe
8. OOM score above 300 -> safe
9. root-owned direct child of init -> important
10. anything else -> unknown

Zombie status overrides everything, kernel-level signals override names, and
names override the coarse numeric thresholds. Reordering the rules changes the
tier of real processes.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from oom_guard.models import (
    FIRST_USER_UID,
    ClassifiedProcess,
    ProcessRecord,
    SafetyTier,
)

PROTECTED_OOM_SCORE = -500  # Below this the kernel has shielded the process
KILLABLE_OOM_SCORE = 300  # Above this the kernel prefers the process as a victim
INIT_PID = 1
ROOT_UID = 0

CRITICAL_NAMES = (
    "systemd",
    "init",
    "kthreadd",
    "kworker",
    "sshd",
    "dbus-daemon",
    "NetworkManager",
    "systemd-journald",
    "systemd-logind",
    "systemd-udevd",
    "systemd-networkd",
)

IMPORTANT_NAMES = (
    "cron",
    "crond",
    "rsyslog",
    "rsyslogd",
    "journald",
    "udev",
    "udevd",
    "nginx",
    "apache2",
    "httpd",
    "postgres",
    "postgresql",
    "mysqld",
    "mysql",
    "mongod",
    "mongodb",
    "redis-server",
    "dockerd",
    "containerd",
)

BROWSER_NAMES = (
    "chrome",
    "chromium",
    "firefox",
    "brave",
    "opera",
    "vivaldi",
    "safari",
    "edge",
    "msedge",
    "epiphany",
    "qutebrowser",
    "falkon",
    "palemoon",
    "waterfox",
    "seamonkey",
    "google-chrome",
)


@dataclass(frozen=True)
class NameTables:
    """Read-only name lists used by the classifier.

    Built once at startup and shared by every scan cycle.
    """

    critical: tuple[str, ...] = CRITICAL_NAMES
    important: tuple[str, ...] = IMPORTANT_NAMES
    browsers: frozenset[str] = frozenset(BROWSER_NAMES)

    def extended(
        self,
        critical: Iterable[str] = (),
        important: Iterable[str] = (),
        browsers: Iterable[str] = (),
    ) -> "NameTables":
        """Return tables with extra names appended. Built-in names are never removed."""
        return NameTables(
            critical=_merge(self.critical, critical),
            important=_merge(self.important, important),
            browsers=self.browsers | {b.lower() for b in browsers if b},
        )


def _merge(base: tuple[str, ...], extra: Iterable[str]) -> tuple[str, ...]:
    merged = list(base)
    for name in extra:
        if name and name not in merged:
            merged.append(name)
    return tuple(merged)


def _matches_prefix(name: str, names: Sequence[str]) -> bool:
    return any(name.startswith(entry) for entry in names)


def is_kernel_thread(name: str) -> bool:
    """True for names wrapped in brackets, the kernel-thread convention."""
    return name.startswith("[") and name.endswith("]")


@dataclass(frozen=True)
class Rule:
    """One classification rule: a predicate and the tier it assigns."""

    reason: str
    predicate: Callable[[ProcessRecord], bool]
    tier: SafetyTier


class Classifier:
    """Assigns safety tiers using an ordered rule list."""

    def __init__(self, tables: NameTables | None = None) -> None:
        self.tables = tables or NameTables()
        t = self.tables
        self.rules: tuple[Rule, ...] = (
            Rule(
                "zombie process (already exited)",
                lambda r: r.is_zombie,
                SafetyTier.SAFE,
            ),
            Rule(
                "PID 1 (init/systemd) - system manager",
                lambda r: r.pid == INIT_PID,
                SafetyTier.CRITICAL,
            ),
            Rule(
                "kernel thread",
                lambda r: is_kernel_thread(r.name),
                SafetyTier.CRITICAL,
            ),
            Rule(
                "very negative OOM score - kernel protected",
                lambda r: r.oom_score < PROTECTED_OOM_SCORE,
                SafetyTier.CRITICAL,
            ),
            Rule(
                "essential system service",
                lambda r: _matches_prefix(r.name, t.critical),
                SafetyTier.CRITICAL,
            ),
            Rule(
                "system daemon or important service",
                lambda r: _matches_prefix(r.name, t.important),
                SafetyTier.IMPORTANT,
            ),
            Rule(
                "owned by regular user (non-root)",
                lambda r: r.uid >= FIRST_USER_UID,
                SafetyTier.SAFE,
            ),
            Rule(
                "high OOM score - kernel considers killable",
                lambda r: r.oom_score > KILLABLE_OOM_SCORE,
                SafetyTier.SAFE,
            ),
            Rule(
                "root-owned child of init",
                lambda r: r.uid == ROOT_UID and r.ppid == INIT_PID,
                SafetyTier.IMPORTANT,
            ),
        )

    def match(self, record: ProcessRecord) -> Rule | None:
        """Return the first rule that matches, or None."""
        for rule in self.rules:
            if rule.predicate(record):
                return rule
        return None

    def classify(self, record: ProcessRecord) -> SafetyTier:
        """Return the safety tier for a record. Never raises."""
        rule = self.match(record)
        return rule.tier if rule else SafetyTier.UNKNOWN

    def explain(self, record: ProcessRecord) -> str:
        """Return why the record got its tier."""
        rule = self.match(record)
        return rule.reason if rule else "does not clearly fit other categories"

    def classify_all(self, records: Iterable[ProcessRecord]) -> list[ClassifiedProcess]:
        """Classify a whole batch, preserving order."""
        return [ClassifiedProcess(record, self.classify(record)) for record in records]

    def is_browser(self, name: str) -> bool:
        """Case-insensitive substring match against the browser names."""
        lowered = name.lower()
        return any(browser in lowered for browser in self.tables.browsers)


_default = Classifier()


def classify(record: ProcessRecord) -> SafetyTier:
    """Classify with the built-in name tables."""
    return _default.classify(record)


def classify_all(records: Iterable[ProcessRecord]) -> list[ClassifiedProcess]:
    """Classify a batch with the built-in name tables."""
    return _default.classify_all(records)


def is_browser(name: str) -> bool:
    """Browser check with the built-in name tables."""
    return _default.is_browser(name)
