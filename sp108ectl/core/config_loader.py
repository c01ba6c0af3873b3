"""Configuration loading and validation for YAML-based sp108ectl device lists."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from sp108ectl.core.errors import (
    ConfigLoadError,
    ConfigValidationError,
    DeviceSelectionError,
    UnknownChipTypeError,
    UnknownColorOrderError,
)
from sp108ectl.core.model import DEFAULT_PORT, DeviceConfig

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedConfig:
    source: Path
    devices: tuple[DeviceConfig, ...]


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "sp108ectl" / "config.yaml"


def _load_schema_validator() -> Any:
    schema_text = resources.files("sp108ectl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _build_device(entry: dict[str, Any], source: Path) -> DeviceConfig:
    try:
        return DeviceConfig(
            name=entry["name"],
            host=entry["host"],
            port=int(entry.get("port", DEFAULT_PORT)),
            chip=entry.get("chip", "WS2811"),
            color_order=entry.get("color_order", "GRB").upper(),
            segments=int(entry.get("segments", 1)),
            leds_per_segment=int(entry.get("leds_per_segment", 50)),
            poll_interval_s=float(entry.get("poll_interval_s", 1.0)),
            timeout_s=float(entry.get("timeout_s", 3.0)),
        )
    except (UnknownChipTypeError, UnknownColorOrderError) as exc:
        raise ConfigValidationError(f"Device '{entry['name']}' in {source}: {exc}") from exc


def load_config(path: Path | None = None) -> LoadedConfig:
    source = path or default_config_path()
    doc = _read_yaml(source)

    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        where = ".".join(str(p) for p in exc.path)
        where = f" ({where})" if where else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    devices: list[DeviceConfig] = []
    seen: set[str] = set()
    for entry in doc["devices"]:
        device = _build_device(entry, source)
        if device.name in seen:
            raise ConfigValidationError(f"Duplicate device name '{device.name}' in {source}")
        seen.add(device.name)
        devices.append(device)

    LOGGER.debug("Loaded %d device(s) from %s", len(devices), source)
    return LoadedConfig(source=source, devices=tuple(devices))


def select_device(devices: tuple[DeviceConfig, ...], hint: str | None = None) -> DeviceConfig:
    if not devices:
        raise DeviceSelectionError("No devices configured")

    if hint is None:
        if len(devices) > 1:
            names = ", ".join(d.name for d in devices)
            raise DeviceSelectionError(f"Multiple devices configured: {names}. Use --device to choose one.")
        return devices[0]

    lowered = hint.lower()
    exact = [d for d in devices if d.name.lower() == lowered or d.host.lower() == lowered]
    if len(exact) == 1:
        return exact[0]

    candidates = exact or [d for d in devices if lowered in d.name.lower() or lowered in d.host.lower()]
    if not candidates:
        raise DeviceSelectionError(f"No configured device matches '{hint}'")
    if len(candidates) > 1:
        names = ", ".join(f"{d.name} ({d.host})" for d in candidates)
        raise DeviceSelectionError(f"Multiple devices match '{hint}': {names}")
    return candidates[0]
