"""CLI commands for oom-guard."""

import click
from rich.markup import escape

from oom_guard import logging as console
from oom_guard.models import ProcessStatus


def _load_config():
    """Load config, turning an unreadable file into a CLI error."""
    from oom_guard.config import Config

    try:
        return Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _scan(config):
    """Enumerate and classify every live process."""
    from oom_guard.classifier import Classifier
    from oom_guard.collector import EnumerationError, ProcessCollector

    classifier = Classifier(config.name_tables())
    try:
        records = ProcessCollector().collect()
    except EnumerationError as e:
        raise click.ClickException(str(e)) from e
    return classifier, classifier.classify_all(records)


@click.group()
@click.version_option(package_name="oom-guard")
def main() -> None:
    """Guard against zombie processes and runaway memory consumers."""
    pass


def _make_reporter(limit: int):
    from oom_guard import display

    out = console.get_console()

    def report(cycle_report) -> None:
        out.print(display.header(f"SCAN #{cycle_report.cycle}"))
        if cycle_report.memory is not None:
            from oom_guard.memory import format_memory_status

            console.memory_status(
                format_memory_status(cycle_report.memory.stats), cycle_report.memory.low
            )
        if cycle_report.error:
            console.cycle_failed(cycle_report.error)
            return
        for zombie in cycle_report.skipped_zombies:
            console.zombie_skipped(zombie.name, zombie.pid, zombie.tier.value)
        for outcome in cycle_report.outcomes:
            if outcome.succeeded:
                console.process_killed(outcome.name, outcome.pid, outcome.signal.name)
            else:
                console.kill_failed(outcome.name, outcome.pid, outcome.error or "unknown error")
        out.print(display.process_table(cycle_report.retained, limit))
        out.print()

    return report


@main.command()
@click.option("--interval", "-i", default=None, help="Time between scans, e.g. 10, 30s, 1m")
@click.option("--limit", "-l", default=None, help="Maximum number of processes to display")
@click.option(
    "--auto-kill-all-zombies",
    is_flag=True,
    help="Auto-kill all zombies including critical/important",
)
@click.option("--no-auto-kill", is_flag=True, help="Disable automatic killing")
@click.option("--use-config", is_flag=True, help="Enable custom cleanup configuration")
@click.option("--kill-user-processes", is_flag=True, help="Auto-kill user processes (UID >= 1000)")
@click.option("--kill-browsers", is_flag=True, help="Auto-kill browser processes")
@click.option("--kill-safe", is_flag=True, help="Auto-kill safe level processes")
@click.option("--kill-important", is_flag=True, help="Auto-kill important level processes")
@click.option("--min-oom-score", default=None, help="Minimum OOM score to kill (0 = disabled)")
@click.option("--zombies-only", is_flag=True, help="Only kill zombie processes")
@click.option("--memory-alert", is_flag=True, help="Enable desktop notifications for low memory")
@click.option("--memory-threshold", default=None, help="Alert when available memory is below (GB)")
@click.option("--memory-cooldown", default=None, help="Minutes between memory alerts")
def monitor(
    interval: str | None,
    limit: str | None,
    auto_kill_all_zombies: bool,
    no_auto_kill: bool,
    use_config: bool,
    kill_user_processes: bool,
    kill_browsers: bool,
    kill_safe: bool,
    kill_important: bool,
    min_oom_score: str | None,
    zombies_only: bool,
    memory_alert: bool,
    memory_threshold: str | None,
    memory_cooldown: str | None,
) -> None:
    """Monitor processes continuously and clean up per policy.

    Flags override the config file. Malformed numbers fall back to defaults.
    """
    import asyncio

    from oom_guard.logging import configure
    from oom_guard.monitor import run_monitor
    from oom_guard.policy import describe_policy

    # Flags can only switch features on; unset flags keep the config value
    config = _load_config().with_overrides(
        monitor={
            "interval": interval,
            "limit": limit,
            "auto_kill": False if no_auto_kill else None,
        },
        policy={
            "mode": "structured" if use_config else None,
            "auto_kill_all_zombies": auto_kill_all_zombies or None,
            "kill_user_processes": kill_user_processes or None,
            "kill_browsers": kill_browsers or None,
            "kill_safe": kill_safe or None,
            "kill_important": kill_important or None,
            "min_oom_score": min_oom_score,
            "zombies_only": zombies_only or None,
        },
        memory_alert={
            "enabled": memory_alert or None,
            "threshold_gb": memory_threshold,
            "cooldown_minutes": memory_cooldown,
        },
    )

    configure(config)

    console.monitor_started(config.monitor.interval)
    console.policy_summary(describe_policy(config.cleanup_policy()))
    if config.memory_alert.enabled:
        console.memory_alerts_enabled(
            config.memory_alert.threshold_gb, config.memory_alert.cooldown_minutes
        )

    final = asyncio.run(run_monitor(config, reporter=_make_reporter(config.monitor.limit)))
    console.monitor_stopped(final.state.cycle_count, final.state.terminated)


@main.command("list")
@click.option("--limit", "-l", default=200, help="Maximum number of processes to display")
@click.option(
    "--status",
    "-s",
    type=click.Choice([s.value for s in ProcessStatus]),
    default=None,
    help="Filter by status (e.g., zombie, running, sleeping)",
)
def list_processes(limit: int, status: str | None) -> None:
    """List all running processes with their safety tier."""
    from oom_guard import display

    config = _load_config()
    _, processes = _scan(config)
    if status:
        processes = [p for p in processes if p.status.value == status]

    out = console.get_console()
    out.print(display.header("PROCESS LIST"))
    out.print(display.process_table(processes, limit))


@main.command()
def stats() -> None:
    """Show process counts by status and safety tier."""
    from oom_guard import display

    config = _load_config()
    _, processes = _scan(config)

    out = console.get_console()
    out.print(display.header("PROCESS STATISTICS"))
    out.print(display.stats_view(processes))


@main.command()
@click.argument("pid", type=int)
def classify(pid: int) -> None:
    """Show detailed classification info for a process."""
    from oom_guard import display
    from oom_guard.classifier import Classifier
    from oom_guard.collector import EnumerationError, ProcessCollector
    from oom_guard.executor import ProcessNotFoundError
    from oom_guard.models import ClassifiedProcess

    config = _load_config()
    classifier = Classifier(config.name_tables())
    try:
        record = ProcessCollector().find(pid)
    except EnumerationError as e:
        raise click.ClickException(str(e)) from e
    if record is None:
        raise click.ClickException(str(ProcessNotFoundError(pid)))
    process = ClassifiedProcess(record, classifier.classify(record))

    out = console.get_console()
    out.print(display.header("PROCESS CLASSIFICATION"))
    out.print(display.classification_view(process, classifier))


@main.command()
@click.argument("pid", type=int)
@click.option("--signal", "-s", "signal_name", default="SIGTERM", help="SIGTERM or SIGKILL")
@click.option("--force", "-f", is_flag=True, help="Allow killing critical processes")
def kill(pid: int, signal_name: str, force: bool) -> None:
    """Send a signal to one process, with safety checks.

    Critical processes are refused unless --force is given, and even then a
    typed acknowledgement is required.
    """
    from oom_guard import display
    from oom_guard.executor import (
        RISK_ACKNOWLEDGEMENT,
        Confirmation,
        ProcessNotFoundError,
        SafetyCheckError,
        find_process,
        kill_with_safety,
        parse_signal,
        required_confirmation,
    )

    try:
        sig = parse_signal(signal_name)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    config = _load_config()
    _, processes = _scan(config)
    try:
        process = find_process(pid, processes)
    except ProcessNotFoundError as e:
        raise click.ClickException(str(e)) from e

    out = console.get_console()
    out.print(f"\n{console.Icon.INFO} Process Information:")
    out.print(f"  PID:    {process.pid}")
    out.print(f"  Name:   {escape(process.name)}")
    out.print(f"  Status: {process.status.value}")
    out.print("  Safety:", display.tier_text(process.tier))
    out.print()

    try:
        confirmation = required_confirmation(process, force)
    except SafetyCheckError as e:
        out.print(f"{console.Icon.STOP} [bold red]Cannot kill CRITICAL process without --force![/]")
        out.print(
            f"{console.Icon.WARN} This is a system-critical process. "
            "Killing it may crash your system."
        )
        out.print(f"{console.Icon.HINT} Use --force only if you know what you're doing.")
        raise click.ClickException("safety check failed") from e

    if confirmation is Confirmation.ACKNOWLEDGE_RISK:
        out.print(f"{console.Icon.STOP} [bold red]WARNING: KILLING CRITICAL PROCESS![/]")
        out.print(f"{console.Icon.WARN} This may CRASH your system or cause data loss!")
        response = click.prompt(
            f"Type '{RISK_ACKNOWLEDGEMENT}' to continue", default="", show_default=False
        )
        if response.strip() != RISK_ACKNOWLEDGEMENT:
            click.echo("✗ Cancelled")
            return
    else:
        if confirmation is Confirmation.CONFIRM_IMPORTANT:
            out.print(
                f"{console.Icon.WARN} About to send {sig.name} to IMPORTANT process (PID {pid})"
            )
            out.print(
                f"{console.Icon.WARN} This may affect system services or running applications."
            )
        else:
            out.print(f"{console.Icon.WARN} About to send {sig.name} to PID {pid}")
        if not click.confirm("Continue?", default=False):
            click.echo("✗ Cancelled")
            return

    # The gate is checked again where the signal is sent
    outcome = kill_with_safety(pid, sig, force, processes)
    if not outcome.succeeded:
        raise click.ClickException(f"failed to kill process {pid}: {outcome.error}")
    out.print(f"{console.Icon.OK} Successfully sent {sig.name} to PID {pid}")


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from oom_guard.policy import describe_policy

    cfg = _load_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[monitor]")
    click.echo(f"  interval = {cfg.monitor.interval}")
    click.echo(f"  limit = {cfg.monitor.limit}")
    click.echo(f"  auto_kill = {cfg.monitor.auto_kill}")
    click.echo()
    click.echo("[policy]")
    click.echo(f"  mode = {cfg.policy.mode}")
    for line in describe_policy(cfg.cleanup_policy()):
        click.echo(f"  {line}")
    click.echo()
    click.echo("[memory_alert]")
    click.echo(f"  enabled = {cfg.memory_alert.enabled}")
    click.echo(f"  threshold_gb = {cfg.memory_alert.threshold_gb}")
    click.echo(f"  cooldown_minutes = {cfg.memory_alert.cooldown_minutes}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    cfg = _load_config()

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from oom_guard.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")


if __name__ == "__main__":
    main()
