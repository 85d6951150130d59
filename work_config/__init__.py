"""
work_config -- single public entrypoint for work kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- YAML-driven, validated before use.  This package sits
    above ``work_kernel``.  The kernel MUST NEVER import from
    ``work_config``; ``work_config.bridges`` drives kernel services with
    the parsed catalog.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - The returned configuration has passed validation.
    - ``WORK_DATABASE_URL`` overrides the configured database URL.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- validation failed (every error is listed).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from work_config.loader import load_configuration
from work_config.schema import WorkConfiguration
from work_config.validator import validate_configuration
from work_kernel.domain.workflow_registry import WorkflowRegistry

_logger = logging.getLogger("work_kernel.config")

DATABASE_URL_ENV = "WORK_DATABASE_URL"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | None = None,
    registry: WorkflowRegistry | None = None,
) -> WorkConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration file.  Defaults to work_config/sets/default.yaml.
        registry: Registry the workflow and validator names are checked
            against.  Defaults to the built-in registry.

    Returns:
        A validated ``WorkConfiguration``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config = load_configuration(config_path, os.environ.get(DATABASE_URL_ENV) or None)

    validation = validate_configuration(config, registry)
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"config_id": config.config_id, "warning": warning})
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "domain_count": len(config.catalog.domains),
        },
    )
    return config


__all__ = [
    "DATABASE_URL_ENV",
    "WorkConfiguration",
    "get_active_config",
]
