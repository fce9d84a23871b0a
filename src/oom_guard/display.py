"""Rich rendering of processes, statistics and classification details."""

from collections import Counter
from collections.abc import Sequence
from datetime import datetime

from rich.console import Group, RenderableType
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from oom_guard.classifier import Classifier
from oom_guard.models import ClassifiedProcess, ProcessStatus, SafetyTier

TIER_STYLES = {
    SafetyTier.CRITICAL: "bold red",
    SafetyTier.IMPORTANT: "yellow",
    SafetyTier.SAFE: "green",
    SafetyTier.UNKNOWN: "white",
}

TIER_ICONS = {
    SafetyTier.CRITICAL: "🔴",
    SafetyTier.IMPORTANT: "🟡",
    SafetyTier.SAFE: "🟢",
    SafetyTier.UNKNOWN: "⚪",
}

# Most cautious first, SAFE before UNKNOWN
TIER_ORDER = sorted(SafetyTier, key=lambda tier: tier.caution, reverse=True)


def status_style(status: ProcessStatus) -> str:
    """Rich style for a process status."""
    if status is ProcessStatus.RUNNING:
        return "green"
    if status in (ProcessStatus.ZOMBIE, ProcessStatus.DEAD):
        return "red"
    if status in (ProcessStatus.SLEEPING, ProcessStatus.IDLE, ProcessStatus.DISK_SLEEP):
        return "yellow"
    return ""


def tier_text(tier: SafetyTier) -> Text:
    """Icon plus colored tier name."""
    return Text.assemble(f"{TIER_ICONS[tier]} ", (tier.value, TIER_STYLES[tier]))


def header(title: str) -> RenderableType:
    """Section header with a timestamp line."""
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    return Group(
        Rule(f"[bold]{title}[/]", style="cyan"),
        Text.from_markup(f"[cyan]Timestamp:[/] {ts}"),
    )


def process_table(processes: Sequence[ClassifiedProcess], limit: int = 200) -> RenderableType:
    """Table of processes, truncated to limit rows (limit <= 0 shows all)."""
    if not processes:
        return Text("No processes found", style="yellow")

    if limit <= 0 or limit > len(processes):
        limit = len(processes)

    table = Table(
        title=f"Total processes: {len(processes)}",
        title_justify="left",
        header_style="bold cyan",
    )
    table.add_column("PID", justify="right")
    table.add_column("NAME", max_width=30, no_wrap=True)
    table.add_column("STATUS")
    table.add_column("SAFETY")

    for proc in processes[:limit]:
        table.add_row(
            str(proc.pid),
            Text(proc.name),
            Text(proc.status.value, style=status_style(proc.status)),
            tier_text(proc.tier),
        )

    if len(processes) > limit:
        more = Text(f"⋯ {len(processes) - limit} more processes...", style="yellow")
        return Group(table, more)
    return table


def stats_view(processes: Sequence[ClassifiedProcess]) -> RenderableType:
    """Counts of processes by status and by safety tier."""
    by_status = Counter(p.status for p in processes)
    by_tier = Counter(p.tier for p in processes)

    status_table = Table(title="By Status", title_justify="left", show_header=False)
    status_table.add_column("status")
    status_table.add_column("count", justify="right", style="bold")
    for status, count in by_status.most_common():
        status_table.add_row(Text(f"{status.value}:", style=status_style(status)), str(count))

    tier_table = Table(title="By Safety Level", title_justify="left", show_header=False)
    tier_table.add_column("tier")
    tier_table.add_column("count", justify="right", style="bold")
    for tier in TIER_ORDER:
        if tier in by_tier:
            tier_table.add_row(tier_text(tier), str(by_tier[tier]))

    return Group(
        Text.from_markup(f"[bold]Total Processes:[/] [cyan]{len(processes)}[/]"),
        status_table,
        tier_table,
    )


_TIER_SUMMARIES = {
    SafetyTier.CRITICAL: (
        "CRITICAL PROCESS - DO NOT KILL",
        "This is a system-critical process. Killing it may:",
        ["Crash the entire system", "Cause data loss or corruption", "Require a system reboot"],
    ),
    SafetyTier.IMPORTANT: (
        "IMPORTANT PROCESS - Kill with caution",
        "This is an important system process. Killing it may:",
        ["Disrupt system services", "Affect running applications", "Require service restart"],
    ),
    SafetyTier.SAFE: (
        "SAFE TO KILL - Can be terminated",
        "This process can be safely killed. It is likely:",
        [
            "A user application",
            "Non-critical to system operation",
            "Safe to restart if needed",
        ],
    ),
    SafetyTier.UNKNOWN: (
        "UNKNOWN - Requires investigation",
        "This process doesn't clearly fit other categories.",
        ["Manual investigation recommended before killing"],
    ),
}


def classification_view(process: ClassifiedProcess, classifier: Classifier) -> RenderableType:
    """Detailed classification report for one process."""
    basics = Table.grid(padding=(0, 2))
    basics.add_column(style="dim")
    basics.add_column()
    basics.add_row("PID:", f"[bold]{process.pid}[/]")
    basics.add_row("Name:", f"[bold]{escape(process.name)}[/]")
    basics.add_row("Status:", Text(process.status.value, style=status_style(process.status)))
    basics.add_row("Owner (UID):", str(process.uid))
    basics.add_row("Parent PID:", str(process.ppid))
    basics.add_row("OOM Score:", str(process.oom_score))
    basics.add_row("Safety Level:", tier_text(process.tier))

    title, intro, effects = _TIER_SUMMARIES[process.tier]
    style = TIER_STYLES[process.tier]
    details = [
        Text(f"{TIER_ICONS[process.tier]} {title}", style=style),
        Text(intro),
        *(Text(f"  • {line}") for line in effects),
        Text(""),
        Text("Reason for classification:"),
        Text(f"  • {classifier.explain(process.record)}"),
    ]
    if classifier.is_browser(process.name):
        details.append(Text("  • Matches a known browser name"))

    return Group(
        Rule("[bold]Basic Information[/]", style="cyan", align="left"),
        basics,
        Rule("[bold]Classification Details[/]", style="cyan", align="left"),
        *details,
    )

