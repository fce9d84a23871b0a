"""Cleanup policies and the evaluator that applies them.

A policy decides, for each classified process in a scan, whether it is a
termination candidate. Evaluation is pure: it only partitions the batch.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import NamedTuple

from oom_guard.classifier import is_browser as default_is_browser
from oom_guard.models import ClassifiedProcess, SafetyTier


@dataclass(frozen=True)
class LegacyZombiePolicy:
    """Kill zombies only.

    With kill_all_zombies unset, only safe-tier zombies are killed.
    """

    kill_all_zombies: bool = False


@dataclass(frozen=True)
class StructuredPolicy:
    """Rule-based cleanup. A process is killed if any enabled rule matches.

    Critical-tier processes are never killed under this policy.
    """

    kill_user_processes: bool = False
    kill_browsers: bool = False
    kill_safe_tier: bool = False
    kill_important_tier: bool = False
    min_oom_score: int = 0  # 0 disables the OOM score rule
    zombies_only: bool = False


@dataclass(frozen=True)
class MonitorOnlyPolicy:
    """Observe and report; never kill anything."""


CleanupPolicy = LegacyZombiePolicy | StructuredPolicy | MonitorOnlyPolicy


class Partition(NamedTuple):
    """Processes split into termination candidates and survivors."""

    candidates: list[ClassifiedProcess]
    retained: list[ClassifiedProcess]


def _legacy_decision(process: ClassifiedProcess, policy: LegacyZombiePolicy) -> bool:
    if not process.is_zombie:
        return False
    return policy.kill_all_zombies or process.tier is SafetyTier.SAFE


def _structured_decision(
    process: ClassifiedProcess,
    policy: StructuredPolicy,
    is_browser: Callable[[str], bool],
) -> bool:
    if policy.zombies_only and not process.is_zombie:
        return False
    if process.tier is SafetyTier.CRITICAL:
        return False

    return (
        (policy.kill_user_processes and process.record.is_user_process)
        or (policy.kill_browsers and is_browser(process.name))
        or (policy.kill_safe_tier and process.tier is SafetyTier.SAFE)
        or (policy.kill_important_tier and process.tier is SafetyTier.IMPORTANT)
        or (policy.min_oom_score > 0 and process.oom_score >= policy.min_oom_score)
    )


def should_terminate(
    process: ClassifiedProcess,
    policy: CleanupPolicy,
    is_browser: Callable[[str], bool] = default_is_browser,
) -> bool:
    """Decide whether a single process is a termination candidate."""
    if isinstance(policy, LegacyZombiePolicy):
        return _legacy_decision(process, policy)
    if isinstance(policy, StructuredPolicy):
        return _structured_decision(process, policy, is_browser)
    return False


def evaluate(
    processes: Iterable[ClassifiedProcess],
    policy: CleanupPolicy,
    is_browser: Callable[[str], bool] = default_is_browser,
) -> Partition:
    """Partition an already-classified batch.

    Both output lists keep the original scan order. Each process is decided
    independently; the batch signature leaves room for cross-process rules.
    """
    candidates: list[ClassifiedProcess] = []
    retained: list[ClassifiedProcess] = []
    for process in processes:
        if should_terminate(process, policy, is_browser):
            candidates.append(process)
        else:
            retained.append(process)
    return Partition(candidates=candidates, retained=retained)


def describe_policy(policy: CleanupPolicy) -> list[str]:
    """Human-readable summary of what a policy will kill."""
    if isinstance(policy, MonitorOnlyPolicy):
        return ["Auto-kill is DISABLED"]
    if isinstance(policy, LegacyZombiePolicy):
        if policy.kill_all_zombies:
            return ["Auto-killing ALL zombies (including critical/important)"]
        return ["Auto-killing only SAFE zombies"]

    lines = ["Using custom cleanup configuration:"]
    if policy.kill_user_processes:
        lines.append("  • User processes (UID >= 1000)")
    if policy.kill_browsers:
        lines.append("  • Browser processes")
    if policy.kill_safe_tier:
        lines.append("  • Safe level processes")
    if policy.kill_important_tier:
        lines.append("  • Important level processes")
    if policy.min_oom_score > 0:
        lines.append(f"  • Processes with OOM score >= {policy.min_oom_score}")
    if policy.zombies_only:
        lines.append("  • Zombies only mode enabled")
    if len(lines) == 1:
        lines.append("  • No rules enabled, nothing will be killed")
    return lines
