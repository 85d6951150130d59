"""
Configuration Loader (``work_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into typed
``work_config.schema`` dataclass instances.  Runtime callers go through
``work_config.get_active_config()``; this module is used directly only by
tests and tooling.

Invariants enforced
-------------------
* Required keys raise ``KeyError``; there are no silent defaults for them.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` is a deterministic SHA-256 over the raw document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown custom field value type  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from work_config.schema import (
    ActivityTypeDef,
    CustomFieldDef,
    DomainDef,
    EngineSettings,
    LocationDef,
    ShopGroupDef,
    WorkCatalog,
    WorkConfiguration,
    WorkTypeDef,
)
from work_kernel.domain.values import ValueType


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_engine(data: dict[str, Any], database_url: str | None = None) -> EngineSettings:
    """Parse EngineSettings; ``database_url`` (when given) wins over the file."""
    return EngineSettings(
        database_url=database_url or data["database_url"],
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        max_retries=int(data.get("max_retries", 5)),
        echo=bool(data.get("echo", False)),
    )


def parse_custom_field(data: dict[str, Any]) -> CustomFieldDef:
    raw_type = data.get("value_type", ValueType.STRING.value)
    try:
        value_type = ValueType(raw_type)
    except ValueError:
        raise ValueError(
            f"Custom field '{data.get('name')}': unknown value type {raw_type!r}"
        ) from None
    return CustomFieldDef(
        name=data["name"],
        value_type=value_type,
        label=data.get("label"),
        description=data.get("description"),
        group=data.get("group"),
        lov_field_reference=data.get("lov_field_reference"),
        is_mandatory=bool(data.get("mandatory", False)),
    )


def parse_activity_type(data: dict[str, Any]) -> ActivityTypeDef:
    return ActivityTypeDef(
        title=data["title"],
        description=data.get("description"),
        custom_fields=tuple(parse_custom_field(f) for f in data.get("custom_fields", [])),
    )


def parse_work_type(data: dict[str, Any]) -> WorkTypeDef:
    """
    Parse a ``WorkTypeDef``.

    ``workflow`` and ``validator`` are required; ``child_work_types`` and
    ``activity_types`` list titles within the same domain.
    """
    return WorkTypeDef(
        title=data["title"],
        workflow_id=data["workflow"],
        validator_name=data["validator"],
        description=data.get("description"),
        custom_fields=tuple(parse_custom_field(f) for f in data.get("custom_fields", [])),
        child_work_types=tuple(data.get("child_work_types", ())),
        activity_types=tuple(data.get("activity_types", ())),
    )


def parse_domain(data: dict[str, Any]) -> DomainDef:
    return DomainDef(
        name=data["name"],
        description=data.get("description"),
        workflow_ids=tuple(data.get("workflows", ())),
        work_types=tuple(parse_work_type(w) for w in data.get("work_types", [])),
        activity_types=tuple(parse_activity_type(a) for a in data.get("activity_types", [])),
    )


def parse_catalog(data: dict[str, Any]) -> WorkCatalog:
    return WorkCatalog(
        domains=tuple(parse_domain(d) for d in data.get("domains", [])),
        locations=tuple(
            LocationDef(name=loc["name"], description=loc.get("description"))
            for loc in data.get("locations", [])
        ),
        shop_groups=tuple(
            ShopGroupDef(
                name=g["name"],
                description=g.get("description"),
                user_ids=tuple(str(u) for u in g.get("user_ids", ())),
            )
            for g in data.get("shop_groups", [])
        ),
    )


def parse_configuration(
    data: dict[str, Any], database_url: str | None = None,
) -> WorkConfiguration:
    """Parse a whole configuration document."""
    return WorkConfiguration(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        engine=parse_engine(data.get("engine", {}), database_url),
        catalog=parse_catalog(data.get("catalog", {})),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path, database_url: str | None = None) -> WorkConfiguration:
    return parse_configuration(load_yaml_file(path), database_url)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
