"""Engine configuration, threaded explicitly through every stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import tomllib

DEFAULT_CONFIG_NAME = "huffstyle.toml"

SEVERITY_FATAL = "fatal"
SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITY_INFO = "info"

SEVERITIES: set[str] = {SEVERITY_FATAL, SEVERITY_ERROR, SEVERITY_WARNING, SEVERITY_INFO}


class ConfigError(ValueError):
    """Invalid configuration value."""


@dataclass(frozen=True)
class Config:
    base_indent_width: int = 4
    # None enables every rule
    enabled_rules: frozenset[str] | None = None
    severity_overrides: dict[str, str] = field(default_factory=dict)
    role_inference_strict: bool = False
    max_line_width: int = 100
    library_file_prefix: str = "_"

    def rule_enabled(self, rule: str) -> bool:
        return self.enabled_rules is None or rule in self.enabled_rules

    def severity_for(self, rule: str, default: str) -> str:
        return self.severity_overrides.get(rule, default)


def config_from_mapping(data: dict[str, object], known_rules: set[str] | None = None) -> Config:
    """Validate a mapping (e.g. a TOML table) into a Config."""
    indent = data.get("base_indent_width", 4)
    if not isinstance(indent, int) or isinstance(indent, bool) or indent < 1:
        raise ConfigError("base_indent_width must be a positive integer")
    width = data.get("max_line_width", 100)
    if not isinstance(width, int) or isinstance(width, bool) or width < 1:
        raise ConfigError("max_line_width must be a positive integer")
    strict = data.get("role_inference_strict", False)
    if not isinstance(strict, bool):
        raise ConfigError("role_inference_strict must be a boolean")
    prefix = data.get("library_file_prefix", "_")
    if not isinstance(prefix, str):
        raise ConfigError("library_file_prefix must be a string")
    enabled: frozenset[str] | None = None
    raw_enabled = data.get("enabled_rules")
    if raw_enabled is not None:
        if not isinstance(raw_enabled, list):
            raise ConfigError("enabled_rules must be a list of rule identifiers")
        names: set[str] = set()
        for item in raw_enabled:
            if not isinstance(item, str):
                raise ConfigError("enabled_rules must be a list of rule identifiers")
            if known_rules is not None and item not in known_rules:
                raise ConfigError("unknown rule '" + item + "' in enabled_rules")
            names.add(item)
        enabled = frozenset(names)
    overrides: dict[str, str] = {}
    raw_overrides = data.get("severity_overrides", {})
    if not isinstance(raw_overrides, dict):
        raise ConfigError("severity_overrides must be a table")
    for rule, severity in raw_overrides.items():
        if not isinstance(severity, str) or severity not in SEVERITIES:
            raise ConfigError("invalid severity for '" + str(rule) + "': " + repr(severity))
        if known_rules is not None and rule not in known_rules:
            raise ConfigError("unknown rule '" + str(rule) + "' in severity_overrides")
        overrides[str(rule)] = severity
    return Config(
        base_indent_width=indent,
        enabled_rules=enabled,
        severity_overrides=overrides,
        role_inference_strict=strict,
        max_line_width=width,
        library_file_prefix=prefix,
    )


def _load_toml(path: Path) -> dict[str, object]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(str(path) + ": " + str(e)) from e
    return data


def load_config(path: Path | None = None, known_rules: set[str] | None = None) -> Config:
    """Load a Config from `huffstyle.toml` or the `[tool.huffstyle]` table of pyproject.toml.

    A missing file yields the defaults.
    """
    if path is None:
        path = Path.cwd() / DEFAULT_CONFIG_NAME
    data = _load_toml(path)
    if path.name == "pyproject.toml":
        tool = data.get("tool", {})
        section = tool.get("huffstyle", {}) if isinstance(tool, dict) else {}
        data = section if isinstance(section, dict) else {}
    return config_from_mapping(data, known_rules)
