"""Process enumeration for oom-guard.

Builds one ProcessRecord per live process using psutil. The OOM score is not
exposed by psutil and is read from /proc directly.
"""

from pathlib import Path

import psutil
import structlog

from oom_guard.models import (
    UNKNOWN_OOM_SCORE,
    UNKNOWN_PID,
    UNKNOWN_UID,
    ProcessRecord,
    ProcessStatus,
)

log = structlog.get_logger()

PROC_ROOT = Path("/proc")

_ATTRS = ["pid", "ppid", "name", "status", "uids"]


class EnumerationError(RuntimeError):
    """The process table could not be listed at all."""


def read_oom_score(pid: int, proc_root: Path = PROC_ROOT) -> int:
    """Read /proc/<pid>/oom_score, returning 0 if unreadable."""
    try:
        return int((proc_root / str(pid) / "oom_score").read_text().strip())
    except (OSError, ValueError):
        return UNKNOWN_OOM_SCORE


def record_from_info(info: dict, oom_score: int) -> ProcessRecord:
    """Build a record from a psutil info dict.

    Attributes psutil could not read arrive as None and become sentinels.
    """
    uids = info.get("uids")
    ppid = info.get("ppid")
    return ProcessRecord(
        pid=info["pid"],
        name=info.get("name") or "",
        status=ProcessStatus.parse(info.get("status")),
        ppid=ppid if ppid is not None else UNKNOWN_PID,
        uid=uids.real if uids is not None else UNKNOWN_UID,
        oom_score=oom_score,
    )


class ProcessCollector:
    """Enumerates live processes into ProcessRecords."""

    def __init__(self, proc_root: Path = PROC_ROOT):
        self.proc_root = proc_root

    def collect(self) -> list[ProcessRecord]:
        """Return one record per live process, in PID order from the OS.

        Processes that vanish mid-read are skipped. A PID never appears twice.

        Raises:
            EnumerationError: If the process table cannot be listed.
        """
        records: list[ProcessRecord] = []
        seen: set[int] = set()

        try:
            for proc in psutil.process_iter(attrs=_ATTRS, ad_value=None):
                try:
                    info = proc.info
                    pid = info["pid"]
                    if pid in seen:
                        continue
                    record = record_from_info(info, read_oom_score(pid, self.proc_root))
                except (psutil.NoSuchProcess, psutil.ZombieProcess):
                    continue
                seen.add(pid)
                records.append(record)
        except (OSError, psutil.Error) as e:
            log.error("enumeration_failed", error=str(e))
            raise EnumerationError(f"failed to list processes: {e}") from e

        return records

    def find(self, pid: int) -> ProcessRecord | None:
        """Enumerate everything, then return the record for one PID.

        Re-reads the full table so the answer is as fresh as a scan.
        """
        for record in self.collect():
            if record.pid == pid:
                return record
        return None
