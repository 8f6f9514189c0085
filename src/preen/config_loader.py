"""Load PreenConfig from preen.yaml or preen.toml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from preen._errors import ConfigError
from preen.config import PreenConfig

_CONFIG_FILES = ("preen.yaml", "preen.yml", "preen.toml")

_KNOWN_KEYS = frozenset({
    "host", "port", "context", "offline", "api_url",
    "readme", "debounce_ms", "hold_timeout",
})


def load_config(root: Path, **overrides: object) -> PreenConfig:
    """Load PreenConfig for *root*, merging an optional config file.

    Looks for preen.yaml, preen.yml, or preen.toml in root.  Overrides
    whose value is ``None`` are ignored so CLI defaults never mask the file.
    """
    root = Path(root)
    file_config = _read_preen_config(root)
    explicit = {k: v for k, v in overrides.items() if v is not None}
    merged = {**file_config, **explicit}
    try:
        return PreenConfig(root=root, **merged)  # type: ignore[arg-type]
    except TypeError as exc:
        msg = f"Invalid configuration: {exc}"
        raise ConfigError(msg) from exc


def find_config_file(root: Path) -> Path | None:
    """Return the first config file present in *root*, if any."""
    for name in _CONFIG_FILES:
        path = root / name
        if path.is_file():
            return path
    return None


def _read_preen_config(root: Path) -> dict[str, object]:
    """Read preen config from yaml/toml if present. Returns empty dict otherwise."""
    path = find_config_file(root)
    if path is None:
        return {}
    if path.suffix == ".toml":
        return _parse_toml(path)
    return _parse_yaml(path)


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Failed to read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    return _flatten_preen_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        msg = f"Failed to read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_preen_section(data)


def _flatten_preen_section(data: dict[str, object]) -> dict[str, object]:
    """Extract known keys, from the top level or a ``preen`` section."""
    result: dict[str, object] = {
        k: v for k, v in data.items() if k in _KNOWN_KEYS
    }
    section = data.get("preen")
    if isinstance(section, dict):
        result.update((k, v) for k, v in section.items() if k in _KNOWN_KEYS)
    return result
