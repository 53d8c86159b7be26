"""Load WhiskerConfig from whisker.yaml if present.

Looks next to the watched file. Merges file config with CLI kwargs.
CLI overrides file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from whisker._errors import ConfigError
from whisker.config import WhiskerConfig

CONFIG_FILENAMES = ("whisker.yaml", "whisker.yml", "whisker.toml")

_KNOWN_KEYS = frozenset({
    "host", "port", "max_bind_attempts", "debounce_ms", "queue_size",
    "templates_dir", "static_dir",
})

_PATH_KEYS = ("templates_dir", "static_dir")


def load_config(source: Path, **overrides: object) -> WhiskerConfig:
    """Load WhiskerConfig for *source*, optionally merging a config file.

    Overrides whose value is ``None`` are ignored so that unset CLI flags
    do not mask values from the file.

    Raises:
        ConfigError: If the source directory does not exist, the config file
            cannot be parsed, or a value is invalid.

    """
    source = source.resolve()
    if not source.parent.is_dir():
        msg = f"Cannot watch {source}: directory {source.parent} does not exist"
        raise ConfigError(msg)

    file_config = _read_whisker_config(source.parent)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}

    # Relative directories in the config file are relative to the file's dir
    for key in _PATH_KEYS:
        value = merged.get(key)
        if value is not None and not isinstance(value, Path):
            path = Path(str(value))
            merged[key] = path if path.is_absolute() else source.parent / path

    try:
        return WhiskerConfig(source=source, **merged)  # type: ignore[arg-type]
    except TypeError as exc:
        msg = f"Invalid whisker configuration: {exc}"
        raise ConfigError(msg) from exc


def _read_whisker_config(directory: Path) -> dict[str, object]:
    """Read whisker config from yaml/toml if present. Returns empty dict otherwise."""
    for name in CONFIG_FILENAMES:
        path = directory / name
        if not path.is_file():
            continue
        if path.suffix == ".toml":
            return _parse_toml(path)
        return _parse_yaml(path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Failed to read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    return _flatten_whisker_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        msg = f"Failed to read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_whisker_section(data)


def _flatten_whisker_section(data: dict[str, object]) -> dict[str, object]:
    """Extract whisker.* keys and known top-level keys into one mapping."""
    result: dict[str, object] = {}
    for k, v in data.items():
        if k in _KNOWN_KEYS:
            result[k] = v
    section = data.get("whisker")
    if isinstance(section, dict):
        for k, v in section.items():
            if k not in _KNOWN_KEYS:
                msg = f"Unknown whisker config key: {k!r}"
                raise ConfigError(msg)
            result[k] = v
    return result
