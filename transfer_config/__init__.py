"""
transfer_config -- single public entrypoint for transfer configuration.

Responsibility:
    ``get_transfer_config()`` is the only way runtime code obtains a
    configuration.  It loads the YAML file, validates it, and returns an
    immutable ``TransferConfig`` snapshot.  Later changes (CLI overrides,
    test-table substitution) produce new snapshots; nothing mutates a
    snapshot once the pipeline has been built from it.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ConfigValidationError`` -- validation errors; the message lists all.

Every successful call emits a ``transfer_config_loaded`` log entry with the
configuration name, checksum and warning count.
"""

from __future__ import annotations

from pathlib import Path

from transfer_config.loader import compute_checksum, load_transfer_config
from transfer_config.schema import TransferConfig
from transfer_config.validator import ConfigValidationResult, validate_transfer_config
from transfer_kernel.exceptions import ConfigValidationError
from transfer_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "transfer.yaml"


def ensure_valid(config: TransferConfig, source: str | None = None) -> TransferConfig:
    """Validate ``config``; log warnings, raise ConfigValidationError on errors."""
    result = validate_transfer_config(config)
    for warning in result.warnings:
        logger.warning("config_warning", extra={"warning": warning, "config_source": source})
    if not result.is_valid:
        raise ConfigValidationError(result.errors, source=source)
    return config


def get_transfer_config(path: Path | None = None) -> TransferConfig:
    """Load and validate the configuration at ``path`` (default: the shipped set)."""
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_transfer_config(config_path)
    ensure_valid(config, source=str(config_path))
    logger.info(
        "transfer_config_loaded",
        extra={
            "config_name": config.name,
            "config_source": str(config_path),
            "checksum": compute_checksum(config),
            "page_size": config.page_size,
            "batch_size": config.batch_size,
        },
    )
    return config


__all__ = [
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "TransferConfig",
    "ensure_valid",
    "get_transfer_config",
    "validate_transfer_config",
]
