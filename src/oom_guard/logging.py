"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain-specific helpers (monitor_started, process_killed, cycle_failed, etc.)
5. Structlog configuration (configure)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from oom_guard.config import Config

# Rich console for colorful human-readable output
_console = Console(highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output.

    Use via autocomplete: Icon.<TAB> to see all available icons.
    """

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    INFO = "[cyan]ℹ[/]"
    WARN = "[yellow]⚠[/]"
    STOP = "[bold red]⛔[/]"
    HINT = "[yellow]💡[/]"
    KILL = "[bright_red]☠[/]"
    SKIP = "[dim]↷[/]"
    MEMORY = "[magenta]▤[/]"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def get_console() -> Console:
    """Return the shared Rich console."""
    return _console


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _name(name: str) -> str:
    # Process names are untrusted text; never let them inject markup
    shown = name[:28] + ".." if len(name) > 28 else name
    return escape(shown)


def monitor_started(interval: float) -> None:
    """Log monitor startup."""
    info(
        f"Monitoring processes every [bold]{interval:g}s[/]. Press Ctrl+C to exit.",
        Icon.INFO,
    )


def monitor_stopped(cycles: int, killed: int) -> None:
    """Log monitor shutdown."""
    info(f"Monitor stopped [dim]({cycles} cycles, {killed} processes killed)[/]", Icon.OK)


def policy_summary(lines: list[str]) -> None:
    """Log the active cleanup policy."""
    head, *rest = lines
    icon = Icon.WARN if "DISABLED" in head or "ALL" in head else Icon.OK
    info(head, icon)
    for line in rest:
        info(f"[dim]{line}[/]")


def memory_alerts_enabled(threshold_gb: int, cooldown_minutes: int) -> None:
    """Log memory alert configuration."""
    info(
        f"Memory alerts enabled [dim](threshold: {threshold_gb} GB available, "
        f"cooldown: {cooldown_minutes} min)[/]",
        Icon.INFO,
    )


def memory_status(message: str, low: bool) -> None:
    """Log current memory status."""
    if low:
        warn(f"[red]{message}[/]", Icon.MEMORY)
    else:
        info(f"[cyan]{message}[/]", Icon.MEMORY)


def process_killed(name: str, pid: int, signal_name: str) -> None:
    """Log a successful termination."""
    info(
        f"Sent {signal_name} to [cyan]{_name(name)}[/] [dim]({pid})[/]",
        Icon.KILL,
    )


def kill_failed(name: str, pid: int, reason: str) -> None:
    """Log a failed termination."""
    warn(f"Failed to signal [cyan]{_name(name)}[/] [dim]({pid})[/]: {reason}", Icon.FAIL)


def zombie_skipped(name: str, pid: int, tier: str) -> None:
    """Log a zombie left alive by the legacy policy."""
    info(
        f"Skipping {tier} zombie [cyan]{_name(name)}[/] [dim]({pid})[/] "
        "[dim]- use --auto-kill-all-zombies to kill[/]",
        Icon.SKIP,
    )


def cycle_failed(error_msg: str) -> None:
    """Log a scan cycle that could not complete."""
    error(f"Scan failed: {escape(error_msg)}", Icon.FAIL)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, source: str = "monitor") -> None:
    """Configure structlog to write JSON Lines to a rotating log file.

    Human-readable console output is handled by the Rich helpers above;
    structlog only feeds the file for machine parsing. Timestamps use
    local time.

    Args:
        config: Application config with paths and rotation settings
        source: Value of the "source" field on every event
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.logging.log_max_bytes,
        backupCount=config.logging.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)
    stdlib_root.handlers.clear()

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source(source),
                structlog.processors.format_exc_info,
            ],
        )
    )
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            _add_source(source),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
