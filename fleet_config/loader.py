"""
Configuration Loader (``fleet_config.loader``).

Reads one YAML file with optional ``procurement:`` and ``inventory:``
sections and builds the typed module configs from them.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Unknown section or key -> ``ValueError`` naming the offenders.
* Invalid value -> ``ValueError`` from the config's own validation.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from fleet_kernel.logging_config import get_logger
from fleet_modules.inventory.config import InventoryConfig
from fleet_modules.procurement.config import ProcurementConfig

logger = get_logger("config.loader")

_SECTIONS = {
    "procurement": ProcurementConfig,
    "inventory": InventoryConfig,
}


@dataclass(frozen=True)
class FleetConfig:
    """Every module configuration, as loaded from one file."""

    procurement: ProcurementConfig = field(default_factory=ProcurementConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its top-level mapping.

    An empty file yields an empty dict.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def _parse_section(name: str, data: Any, path: Path):
    cls = _SECTIONS[name]
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{path}: section {name!r} must be a mapping")
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{path}: unknown keys in {name!r}: {', '.join(unknown)}")
    return cls.from_dict(data)


def load_config(path: str | Path) -> FleetConfig:
    """
    Build a ``FleetConfig`` from a YAML file.

    Sections left out of the file get their defaults.
    """
    path = Path(path)
    data = load_yaml_file(path)

    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"{path}: unknown sections: {', '.join(unknown)}")

    config = FleetConfig(
        **{name: _parse_section(name, data.get(name), path) for name in _SECTIONS}
    )
    logger.info(
        "fleet_config_loaded",
        extra={"path": str(path), "sections": sorted(data.keys())},
    )
    return config
