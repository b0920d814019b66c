"""Configuration loading and validation for the YAML-based flipqs config."""

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

from flipqs.core.errors import ConfigLoadError, ConfigValidationError
from flipqs.core.model import NOTIFICATION_PANEL_ID

DEFAULT_SHELL = ("su",)
DEFAULT_SETTLE_DELAY_S = 1.5
DEFAULT_QUEUE_SIZE = 16
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
class Settings:
    shell: tuple[str, ...] = DEFAULT_SHELL
    settle_delay_s: float = DEFAULT_SETTLE_DELAY_S
    source_identifier: str = NOTIFICATION_PANEL_ID
    queue_size: int = DEFAULT_QUEUE_SIZE
    overlay_granted: bool = True
    bluetooth_connect_granted: bool = True
    sdk_version: int | None = None
    log_level: str = "WARNING"
    source: Path | None = None


def _load_schema_validator() -> Any:
    schema_text = resources.files("flipqs.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "flipqs/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _build_settings(doc: dict[str, Any], source: Path) -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    trigger = doc.get("trigger", {})
    permissions = doc.get("permissions", {})
    return Settings(
        shell=tuple(doc.get("shell", DEFAULT_SHELL)),
        settle_delay_s=float(doc.get("settle_delay_s", DEFAULT_SETTLE_DELAY_S)),
        source_identifier=trigger.get("source_identifier", NOTIFICATION_PANEL_ID).strip(),
        queue_size=int(trigger.get("queue_size", DEFAULT_QUEUE_SIZE)),
        overlay_granted=bool(permissions.get("overlay", True)),
        bluetooth_connect_granted=bool(permissions.get("bluetooth_connect", True)),
        sdk_version=doc.get("sdk_version"),
        log_level=doc.get("log_level", "WARNING"),
        source=source,
    )


def load_settings(path: Path | None = None) -> Settings:
    explicit = path is not None
    config_path = path if path is not None else default_config_path()

    if not config_path.exists():
        if explicit:
            raise ConfigLoadError(f"Config file {config_path} does not exist")
        LOGGER.debug("No config at %s, using defaults", config_path)
        return Settings()

    doc = _read_yaml(config_path)
    settings = _build_settings(doc, config_path)
    LOGGER.debug("Loaded config from %s", config_path)
    return settings
