"""
Field mapper: mapping tokens -> typed bindings -> bind-parameter dicts.

ZERO I/O. A target's mapping is a list of tokens parallel to its insert
columns. Each token is one of:

* a field of ``EnrichedRow`` (canonical name, or one of the legacy column
  aliases below; matching is case-insensitive),
* ``CONST:<value>`` -- the literal text after the colon,
* ``NULL`` -- an explicit null.

Anything else is a configuration error. The plan is compiled once, before
the first source row is read, and applied to every routed row.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from transfer_kernel.exceptions import BindingPlanError, UnknownMappingTokenError
from transfer_pipeline.domain.types import EnrichedRow
from transfer_pipeline.sql.templates import bind_name

CONSTANT_PREFIX = "CONST:"
NULL_TOKEN = "NULL"

ENRICHED_FIELDS: tuple[str, ...] = (
    "customer_id",
    "customer_id_type",
    "routing_code",
    "account_no",
    "maint_date",
    "note",
)

# Column names used by existing mapping files
LEGACY_ALIASES: dict[str, str] = {
    "ts_cust_id": "customer_id",
    "cust_id_type": "customer_id_type",
    "clna_bsb_used": "routing_code",
    "clna_acct_used": "account_no",
    "clna_last_maint_date": "maint_date",
    "transfer_note": "note",
}


class BindingKind(str, Enum):
    FIELD = "field"
    CONSTANT = "constant"
    NULL = "null"


@dataclass(frozen=True)
class Binding:
    """A parsed mapping token."""

    kind: BindingKind
    value: str | None = None  # field name for FIELD, literal for CONSTANT

    def resolve(self, row: EnrichedRow) -> Any:
        if self.kind is BindingKind.FIELD:
            return getattr(row, self.value)
        if self.kind is BindingKind.CONSTANT:
            return self.value
        return None


def parse_mapping_token(token: str) -> Binding:
    """
    Parse one mapping token. Pure function.

    Raises:
        UnknownMappingTokenError: token is not a field, ``NULL`` or ``CONST:``.
    """
    if not isinstance(token, str):
        raise UnknownMappingTokenError(repr(token), list(ENRICHED_FIELDS))
    stripped = token.strip()
    if stripped.upper().startswith(CONSTANT_PREFIX):
        return Binding(BindingKind.CONSTANT, stripped[len(CONSTANT_PREFIX):])
    if stripped.upper() == NULL_TOKEN:
        return Binding(BindingKind.NULL)
    lowered = stripped.lower()
    if lowered in ENRICHED_FIELDS:
        return Binding(BindingKind.FIELD, lowered)
    if lowered in LEGACY_ALIASES:
        return Binding(BindingKind.FIELD, LEGACY_ALIASES[lowered])
    raise UnknownMappingTokenError(token, list(ENRICHED_FIELDS) + sorted(LEGACY_ALIASES))


@dataclass(frozen=True)
class BindingPlan:
    """Compiled (column, binding) pairs for one target table."""

    target: str
    columns: tuple[str, ...]
    bindings: tuple[Binding, ...]

    @property
    def bind_names(self) -> tuple[str, ...]:
        return tuple(bind_name(c) for c in self.columns)

    def bind(self, row: EnrichedRow) -> dict[str, Any]:
        """Bind-parameter dict for ``row``, keyed by ``bind_name(column)``."""
        return {
            bind_name(column): binding.resolve(row)
            for column, binding in zip(self.columns, self.bindings)
        }


def compile_binding_plan(target: str, columns: Sequence[str], tokens: Sequence[str]) -> BindingPlan:
    """
    Resolve ``tokens`` against ``columns`` once.

    Raises:
        BindingPlanError: token count differs from column count.
        UnknownMappingTokenError: a token cannot be parsed.
    """
    if len(columns) != len(tokens):
        raise BindingPlanError(target, len(columns), len(tokens))
    bindings = tuple(parse_mapping_token(t) for t in tokens)
    return BindingPlan(target=target, columns=tuple(columns), bindings=bindings)
