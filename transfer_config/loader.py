"""
Configuration Loader (``transfer_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``transfer_config.schema``.  Runtime callers go through
``transfer_config.get_transfer_config()``, which also validates.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types (e.g. a mapping where a list is expected)  -> ``ValueError``.

Every key is optional: absent sections fall back to the schema defaults,
which reproduce the production table layout.
"""

from __future__ import annotations

import hashlib
import json
import os
import re
from pathlib import Path
from typing import Any

import yaml

from transfer_config.schema import (
    DEFAULT_TARGET_ONE,
    DEFAULT_TARGET_ZERO,
    DatabaseDef,
    LookupDef,
    NotificationDef,
    ProvisioningDef,
    SourceDef,
    TargetDef,
    TransferConfig,
    XrefDef,
)

_CSV_SPLIT = re.compile(r"\s*,\s*")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_name_list(value: Any) -> tuple[str, ...]:
    """
    Parse a list of names from YAML.

    Accepts a YAML sequence or a comma-separated string (``"a, b ,c"``);
    surrounding whitespace is dropped. ``None`` yields an empty tuple.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        stripped = value.strip()
        return tuple(_CSV_SPLIT.split(stripped)) if stripped else ()
    if isinstance(value, list | tuple):
        return tuple(str(v).strip() for v in value)
    raise ValueError(f"Expected a list or comma-separated string, got {value!r}")


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Section {key!r} must be a mapping, got {type(value).__name__}")
    return value


def _str(value: Any, default: str) -> str:
    # YAML turns unquoted codes like 103 into ints
    return default if value is None else str(value)


def parse_database(data: dict[str, Any]) -> DatabaseDef:
    """
    Parse a DatabaseDef; ``${VAR}`` references in the URL are expanded.

    A URL that still references an unset variable is treated as absent so
    the CLI options can supply it.
    """
    url = os.path.expandvars(data["url"]) if data.get("url") else None
    if url is not None and "${" in url:
        url = None
    return DatabaseDef(
        url=url,
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 5)),
    )


def parse_source(data: dict[str, Any]) -> SourceDef:
    d = SourceDef()
    columns = _section(data, "columns")
    return SourceDef(
        table=_str(data.get("table"), d.table),
        customer_key_column=_str(columns.get("customer_key"), d.customer_key_column),
        routing_code_column=_str(columns.get("routing_code"), d.routing_code_column),
        account_no_column=_str(columns.get("account_no"), d.account_no_column),
        discriminator_column=_str(columns.get("discriminator"), d.discriminator_column),
        maint_date_column=_str(columns.get("maint_date"), d.maint_date_column),
        note_column=_str(columns.get("note"), d.note_column),
        processed_flag_column=_str(columns.get("processed_flag"), d.processed_flag_column),
        processed_flag_value=_str(data.get("processed_flag_value"), d.processed_flag_value),
        order_by=parse_name_list(data.get("order_by")),
        verify_unique_order_key=bool(data.get("verify_unique_order_key", d.verify_unique_order_key)),
    )


def parse_lookup(data: dict[str, Any]) -> LookupDef:
    d = LookupDef()
    return LookupDef(
        table=_str(data.get("table"), d.table),
        key_column=_str(data.get("key_column"), d.key_column),
        id_column=_str(data.get("id_column"), d.id_column),
        id_type_column=_str(data.get("id_type_column"), d.id_type_column),
    )


def parse_xref(data: dict[str, Any]) -> XrefDef:
    d = XrefDef()
    return XrefDef(
        table=_str(data.get("table"), d.table),
        key_column=_str(data.get("key_column"), d.key_column),
        value_column=_str(data.get("value_column"), d.value_column),
        trigger_code=_str(data.get("trigger_code"), d.trigger_code).strip(),
        replacement_code=_str(data.get("replacement_code"), d.replacement_code).strip(),
    )


def parse_target(data: dict[str, Any], default: TargetDef) -> TargetDef:
    """Parse a TargetDef; columns and mapping fall back to ``default`` only together."""
    if "columns" in data or "mapping" in data:
        columns = parse_name_list(data.get("columns"))
        mapping = parse_name_list(data.get("mapping"))
    else:
        columns, mapping = default.columns, default.mapping
    return TargetDef(
        table=_str(data.get("table"), default.table),
        columns=columns,
        mapping=mapping,
    )


def parse_provisioning(data: dict[str, Any]) -> ProvisioningDef:
    d = ProvisioningDef()
    return ProvisioningDef(
        enabled=bool(data.get("enabled", d.enabled)),
        suffix=_str(data.get("suffix"), d.suffix),
        tables=parse_name_list(data.get("tables")),
        data_copy_limit=int(data.get("data_copy_limit", d.data_copy_limit)),
        copy_dependent_ddl=bool(data.get("copy_dependent_ddl", d.copy_dependent_ddl)),
    )


def parse_notification(data: dict[str, Any]) -> NotificationDef:
    d = NotificationDef()
    return NotificationDef(
        enabled=bool(data.get("enabled", d.enabled)),
        host=_str(data.get("host"), d.host),
        port=int(data.get("port", d.port)),
        use_tls=bool(data.get("use_tls", d.use_tls)),
        username=data.get("username"),
        password_env=data.get("password_env"),
        sender=_str(data.get("sender"), d.sender),
        recipients=parse_name_list(data.get("recipients")),
        subject=_str(data.get("subject"), d.subject),
    )


def parse_transfer_config(data: dict[str, Any]) -> TransferConfig:
    """
    Parse a ``TransferConfig`` from the document's ``transfer`` mapping.

    A document without a ``transfer`` key is treated as the mapping itself.
    """
    root = data.get("transfer", data)
    d = TransferConfig()
    databases = _section(root, "databases")
    targets = _section(root, "targets")
    key_columns = parse_name_list(root.get("key_columns"))
    return TransferConfig(
        name=_str(root.get("name"), d.name),
        page_size=int(root.get("page_size", d.page_size)),
        batch_size=int(root.get("batch_size", d.batch_size)),
        mark_processed=bool(root.get("mark_processed", d.mark_processed)),
        main_db=parse_database(_section(databases, "main")),
        lookup_db=parse_database(_section(databases, "lookup")),
        source=parse_source(_section(root, "source")),
        lookup=parse_lookup(_section(root, "lookup")),
        xref=parse_xref(_section(root, "xref")),
        key_columns=key_columns or d.key_columns,
        target_zero=parse_target(_section(targets, "zero"), DEFAULT_TARGET_ZERO),
        target_one=parse_target(_section(targets, "one"), DEFAULT_TARGET_ONE),
        provisioning=parse_provisioning(_section(root, "provisioning")),
        notification=parse_notification(_section(root, "notification")),
    )


def load_transfer_config(path: Path) -> TransferConfig:
    """Load and parse a configuration file (no validation)."""
    return parse_transfer_config(load_yaml_file(path))


def compute_checksum(config: TransferConfig) -> str:
    """Deterministic SHA-256 of the configuration, database URLs excluded."""
    from dataclasses import asdict

    payload = asdict(config)
    payload.pop("main_db", None)
    payload.pop("lookup_db", None)
    canonical = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
