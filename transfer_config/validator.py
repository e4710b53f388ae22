"""
Configuration Validator (``transfer_config.validator``).

Validates a ``TransferConfig`` before any pipeline component is built, so
configuration mistakes fail the run before the first source row is read.

Checks
------
* Every table and column name is a plain SQL identifier.
* Each target has as many mapping tokens as insert columns, and every
  token is a known field, ``NULL`` or ``CONST:<value>``.
* Key columns are non-empty and present in both targets' insert columns
  (the upsert binds them from the inserted values).
* Page and batch sizes are positive; page sizes outside 1000-10000 warn.
* The two targets are distinct tables.
* Collaborator sections are coherent when enabled.

Errors block the run; warnings are logged and the run proceeds.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from transfer_config.schema import TargetDef, TransferConfig
from transfer_kernel.exceptions import ConfigurationError
from transfer_pipeline.mapping.binding import parse_mapping_token
from transfer_pipeline.sql.templates import validate_identifier

RECOMMENDED_PAGE_SIZE = (1000, 10000)

_SUFFIX = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _check_identifier(result: ConfigValidationResult, where: str, name: str, allow_schema: bool = False) -> None:
    try:
        validate_identifier(name, allow_schema=allow_schema)
    except ConfigurationError as exc:
        result.add_error(f"{where}: {exc}")


def _validate_target(result: ConfigValidationResult, label: str, target: TargetDef, key_columns: tuple[str, ...]) -> None:
    _check_identifier(result, f"targets.{label}.table", target.table, allow_schema=True)
    if not target.columns:
        result.add_error(f"targets.{label}: no insert columns configured")
        return
    for col in target.columns:
        _check_identifier(result, f"targets.{label}.columns", col)

    lowered = [c.lower() for c in target.columns]
    duplicates = sorted({c for c in lowered if lowered.count(c) > 1})
    if duplicates:
        result.add_error(f"targets.{label}: duplicate insert columns {duplicates}")

    if len(target.mapping) != len(target.columns):
        result.add_error(
            f"targets.{label}: {len(target.columns)} insert column(s) but "
            f"{len(target.mapping)} mapping token(s)"
        )
    for token in target.mapping:
        try:
            parse_mapping_token(token)
        except ConfigurationError as exc:
            result.add_error(f"targets.{label}.mapping: {exc}")

    missing = [k for k in key_columns if k.lower() not in lowered]
    if missing:
        result.add_error(f"targets.{label}: key columns {missing} are not insert columns")


def validate_transfer_config(config: TransferConfig) -> ConfigValidationResult:
    """Validate a configuration snapshot. Pure; never raises for bad input."""
    result = ConfigValidationResult()

    if config.page_size <= 0:
        result.add_error(f"page_size must be positive, got {config.page_size}")
    elif not RECOMMENDED_PAGE_SIZE[0] <= config.page_size <= RECOMMENDED_PAGE_SIZE[1]:
        result.add_warning(
            f"page_size {config.page_size} outside recommended range "
            f"{RECOMMENDED_PAGE_SIZE[0]}-{RECOMMENDED_PAGE_SIZE[1]}"
        )
    if config.batch_size <= 0:
        result.add_error(f"batch_size must be positive, got {config.batch_size}")

    src = config.source
    _check_identifier(result, "source.table", src.table, allow_schema=True)
    for col in (*src.select_columns, *src.ordering_key):
        _check_identifier(result, "source.columns", col)
    if config.mark_processed:
        _check_identifier(result, "source.columns.processed_flag", src.processed_flag_column)

    lk = config.lookup
    _check_identifier(result, "lookup.table", lk.table, allow_schema=True)
    for col in (lk.key_column, lk.id_column, lk.id_type_column):
        _check_identifier(result, "lookup", col)

    xr = config.xref
    _check_identifier(result, "xref.table", xr.table, allow_schema=True)
    for col in (xr.key_column, xr.value_column):
        _check_identifier(result, "xref", col)
    if not xr.trigger_code.strip():
        result.add_error("xref.trigger_code must not be blank")
    if not xr.replacement_code.strip():
        result.add_error("xref.replacement_code must not be blank")

    if not config.key_columns:
        result.add_error("key_columns must name at least one column")
    for col in config.key_columns:
        _check_identifier(result, "key_columns", col)

    _validate_target(result, "zero", config.target_zero, config.key_columns)
    _validate_target(result, "one", config.target_one, config.key_columns)
    if config.target_zero.table.upper() == config.target_one.table.upper():
        result.add_error(f"targets.zero and targets.one both write to {config.target_zero.table}")

    prov = config.provisioning
    if prov.enabled:
        if not _SUFFIX.match(prov.suffix):
            result.add_error(f"provisioning.suffix must be alphanumeric/underscore, got {prov.suffix!r}")
        if prov.data_copy_limit < 0:
            result.add_error("provisioning.data_copy_limit must be >= 0")
        for table in prov.tables:
            _check_identifier(result, "provisioning.tables", table, allow_schema=True)

    note = config.notification
    if note.enabled and not note.recipients:
        result.add_error("notification.enabled requires at least one recipient")

    return result
