"""Configuration system for oom-guard."""

import re
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path

import structlog
import tomlkit

from oom_guard.classifier import NameTables
from oom_guard.policy import (
    CleanupPolicy,
    LegacyZombiePolicy,
    MonitorOnlyPolicy,
    StructuredPolicy,
)

log = structlog.get_logger()

POLICY_MODES = ("legacy", "structured")


@dataclass
class MonitorConfig:
    """Scan loop configuration."""

    interval: int = 5  # Seconds between scan cycles
    limit: int = 200  # Max processes shown per cycle
    auto_kill: bool = True  # False = report only, never kill


@dataclass
class PolicyConfig:
    """Cleanup policy configuration.

    mode "legacy" kills zombies only (safe-tier zombies unless
    auto_kill_all_zombies). mode "structured" uses the kill_* rules.
    """

    mode: str = "legacy"
    auto_kill_all_zombies: bool = False
    kill_user_processes: bool = False  # UID >= 1000
    kill_browsers: bool = False
    kill_safe: bool = False
    kill_important: bool = False
    min_oom_score: int = 0  # 0 = disabled
    zombies_only: bool = False


@dataclass
class MemoryAlertConfig:
    """Low-memory desktop notification configuration."""

    enabled: bool = False
    threshold_gb: int = 3  # Alert when available memory drops to this
    cooldown_minutes: int = 15  # Min minutes between alerts


@dataclass
class ClassificationConfig:
    """Extra process names added to the built-in classification tables."""

    extra_critical_names: list[str] = field(default_factory=list)
    extra_important_names: list[str] = field(default_factory=list)
    extra_browser_names: list[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Log file rotation."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


# Go-style duration parts, e.g. "1m30s"
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")
_DURATION_RE = re.compile(r"(?:\d+(?:\.\d+)?(?:h|m|s))+")
_DURATION_UNITS = {"h": 3600, "m": 60, "s": 1}

# Inclusive (min, max) ranges for numeric settings
_RANGES = {
    ("monitor", "interval"): (1, 3600),
    ("monitor", "limit"): (1, 100_000),
    ("policy", "min_oom_score"): (0, 1000),
    ("memory_alert", "threshold_gb"): (1, 32),
    ("memory_alert", "cooldown_minutes"): (1, 120),
    ("logging", "log_max_bytes"): (1024, 1024**3),
    ("logging", "log_backup_count"): (0, 100),
}


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


def _invalid(section: str, key: str, value: object, default: object) -> None:
    log.warning("config_invalid", section=section, key=key, value=repr(value), default=default)


def _int_setting(section: str, data: dict, key: str, default: int) -> int:
    """Read an int, reverting to the default if malformed or out of range."""
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            _invalid(section, key, data[key], default)
            return default
    if isinstance(value, bool) or not isinstance(value, int):
        _invalid(section, key, value, default)
        return default
    low, high = _RANGES.get((section, key), (None, None))
    if (low is not None and value < low) or (high is not None and value > high):
        _invalid(section, key, value, default)
        return default
    return value


def _duration_setting(section: str, data: dict, key: str, default: int) -> int:
    """Read a duration in whole seconds.

    Accepts an int, a bare number ("10") or unit-suffixed parts such as
    "30s", "1m", "1.5h" or "1m30s". Anything else reverts to the default.
    """
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, str):
        text = value.strip().lower()
        if text.isdigit():
            seconds = int(text)
        elif _DURATION_RE.fullmatch(text):
            seconds = round(
                sum(float(n) * _DURATION_UNITS[u] for n, u in _DURATION_PART_RE.findall(text))
            )
        else:
            _invalid(section, key, value, default)
            return default
        data = {**data, key: seconds}
    return _int_setting(section, data, key, default)


def _bool_setting(section: str, data: dict, key: str, default: bool) -> bool:
    """Read a bool, reverting to the default if not a boolean."""
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, bool):
        _invalid(section, key, value, default)
        return default
    return value


def _names_setting(section: str, data: dict, key: str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        _invalid(section, key, value, [])
        return []
    return [str(v) for v in value]


@dataclass
class Config:
    """Main configuration container."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    memory_alert: MemoryAlertConfig = field(default_factory=MemoryAlertConfig)
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "oom-guard"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "oom-guard"

    @property
    def log_path(self) -> Path:
        """Monitor log path (JSON Lines)."""
        return self.state_dir / "monitor.log"

    def cleanup_policy(self) -> CleanupPolicy:
        """Build the cleanup policy described by this config."""
        if not self.monitor.auto_kill:
            return MonitorOnlyPolicy()
        p = self.policy
        if p.mode == "structured":
            return StructuredPolicy(
                kill_user_processes=p.kill_user_processes,
                kill_browsers=p.kill_browsers,
                kill_safe_tier=p.kill_safe,
                kill_important_tier=p.kill_important,
                min_oom_score=p.min_oom_score,
                zombies_only=p.zombies_only,
            )
        return LegacyZombiePolicy(kill_all_zombies=p.auto_kill_all_zombies)

    def name_tables(self) -> NameTables:
        """Classification tables with any configured extra names."""
        c = self.classification
        return NameTables().extended(
            critical=c.extra_critical_names,
            important=c.extra_important_names,
            browsers=c.extra_browser_names,
        )

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ["monitor", "policy", "memory_alert", "classification", "logging"]:
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Malformed individual settings fall back to their defaults. A file that
        cannot be read or is not valid TOML raises ValueError.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path, encoding="utf-8") as f:
                data = tomlkit.load(f).unwrap()
        except (OSError, UnicodeDecodeError) as e:
            raise ValueError(f"Failed to read config file {path}: {e}") from e
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Build a config from parsed TOML data, validating every setting."""
        return cls(
            monitor=_load_monitor_config(_section(data, "monitor")),
            policy=_load_policy_config(_section(data, "policy")),
            memory_alert=_load_memory_alert_config(_section(data, "memory_alert")),
            classification=_load_classification_config(_section(data, "classification")),
            logging=_load_logging_config(_section(data, "logging")),
        )

    def with_overrides(self, **sections: dict) -> "Config":
        """Return a copy with command-line overrides applied.

        Overrides go through the same validation as the file, so a bad value
        reverts to its default. None values are ignored.

        Example:
            config.with_overrides(monitor={"interval": 10}, policy={"zombies_only": True})
        """
        data = asdict(self)
        for name, values in sections.items():
            if name not in data:
                raise ValueError(f"Unknown config section: {name!r}")
            data[name].update({k: v for k, v in values.items() if v is not None})
        return self.from_dict(data)


def _section(data: dict, name: str) -> dict:
    """Return a TOML table as a dict, or {} if missing or not a table."""
    value = data.get(name, {})
    if not isinstance(value, dict):
        _invalid(name, "*", value, {})
        return {}
    return value


def _load_monitor_config(data: dict) -> MonitorConfig:
    d = MonitorConfig()
    return MonitorConfig(
        interval=_duration_setting("monitor", data, "interval", d.interval),
        limit=_int_setting("monitor", data, "limit", d.limit),
        auto_kill=_bool_setting("monitor", data, "auto_kill", d.auto_kill),
    )


def _load_policy_config(data: dict) -> PolicyConfig:
    """Load policy config; an unknown mode reverts to legacy."""
    d = PolicyConfig()
    mode = data.get("mode", d.mode)
    if mode not in POLICY_MODES:
        _invalid("policy", "mode", mode, d.mode)
        mode = d.mode

    return PolicyConfig(
        mode=mode,
        auto_kill_all_zombies=_bool_setting(
            "policy", data, "auto_kill_all_zombies", d.auto_kill_all_zombies
        ),
        kill_user_processes=_bool_setting(
            "policy", data, "kill_user_processes", d.kill_user_processes
        ),
        kill_browsers=_bool_setting("policy", data, "kill_browsers", d.kill_browsers),
        kill_safe=_bool_setting("policy", data, "kill_safe", d.kill_safe),
        kill_important=_bool_setting("policy", data, "kill_important", d.kill_important),
        min_oom_score=_int_setting("policy", data, "min_oom_score", d.min_oom_score),
        zombies_only=_bool_setting("policy", data, "zombies_only", d.zombies_only),
    )


def _load_memory_alert_config(data: dict) -> MemoryAlertConfig:
    d = MemoryAlertConfig()
    return MemoryAlertConfig(
        enabled=_bool_setting("memory_alert", data, "enabled", d.enabled),
        threshold_gb=_int_setting("memory_alert", data, "threshold_gb", d.threshold_gb),
        cooldown_minutes=_int_setting(
            "memory_alert", data, "cooldown_minutes", d.cooldown_minutes
        ),
    )


def _load_classification_config(data: dict) -> ClassificationConfig:
    return ClassificationConfig(
        extra_critical_names=_names_setting("classification", data, "extra_critical_names"),
        extra_important_names=_names_setting("classification", data, "extra_important_names"),
        extra_browser_names=_names_setting("classification", data, "extra_browser_names"),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    d = LoggingConfig()
    return LoggingConfig(
        log_max_bytes=_int_setting("logging", data, "log_max_bytes", d.log_max_bytes),
        log_backup_count=_int_setting("logging", data, "log_backup_count", d.log_backup_count),
    )
