"""
Transfer configuration schema.

Frozen dataclasses for the human-authored YAML configuration. The loader
parses YAML into these types, the validator checks them, and the resulting
``TransferConfig`` is the immutable snapshot handed to the orchestrator.
Changes (CLI overrides, test-table substitution) always produce a new
snapshot through ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

# ---------------------------------------------------------------------------
# Databases
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseDef:
    """Connection settings for one data store."""

    url: str | None = None
    echo: bool = False
    pool_size: int = 5


# ---------------------------------------------------------------------------
# Source, lookup and cross-reference tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceDef:
    """Source table and the columns a transfer reads from it."""

    table: str = "BANCS_MIN_CLNA"
    customer_key_column: str = "clna_cust_id_no"
    routing_code_column: str = "clna_bsb_no"
    account_no_column: str = "clna_acct_no"
    discriminator_column: str = "clna_nom_acct_type"
    maint_date_column: str = "clna_last_maint_date"
    note_column: str = "transfer_note"
    processed_flag_column: str = "issync"
    processed_flag_value: str = "Y"
    # Empty means (customer key, routing code, account number)
    order_by: tuple[str, ...] = ()
    verify_unique_order_key: bool = True

    @property
    def ordering_key(self) -> tuple[str, ...]:
        if self.order_by:
            return self.order_by
        return (self.customer_key_column, self.routing_code_column, self.account_no_column)

    @property
    def select_columns(self) -> tuple[str, ...]:
        """Columns in the order SourceRow.from_values expects them."""
        return (
            self.customer_key_column,
            self.routing_code_column,
            self.account_no_column,
            self.discriminator_column,
            self.maint_date_column,
            self.note_column,
        )


@dataclass(frozen=True)
class LookupDef:
    """Customer lookup table on the lookup store."""

    table: str = "BANCS_SK_CUST_INFO"
    key_column: str = "sk_cust_id"
    id_column: str = "ts_cust_id"
    id_type_column: str = "cust_id_type"


@dataclass(frozen=True)
class XrefDef:
    """Cross-reference table and its one substitution rule."""

    table: str = "XREF"
    key_column: str = "extn_ref_no"
    value_column: str = "intn_ref_no"
    trigger_code: str = "103"
    replacement_code: str = "812"


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TargetDef:
    """One destination table: ordered insert columns and parallel mapping tokens."""

    table: str
    columns: tuple[str, ...]
    mapping: tuple[str, ...]


DEFAULT_TARGET_ZERO = TargetDef(
    table="TRANSFERACCOUNT",
    columns=("userid", "brchid", "accountno", "updatedate", "memo", "email", "receivermemo", "synchancode"),
    mapping=(
        "ts_cust_id", "CLNA_BSB_USED", "CLNA_ACCT_USED", "clna_last_maint_date",
        "transfer_note", "NULL", "NULL", "CONST:RB",
    ),
)

DEFAULT_TARGET_ONE = TargetDef(
    table="CUSTSETTRANSACCT",
    columns=("userid", "useridtype", "brchid", "accountno", "updatedate", "memo", "email", "receivermemo"),
    mapping=(
        "ts_cust_id", "cust_id_type", "CLNA_BSB_USED", "CLNA_ACCT_USED",
        "clna_last_maint_date", "transfer_note", "NULL", "NULL",
    ),
)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProvisioningDef:
    """Test-table provisioning: copy tables under a suffix before the run."""

    enabled: bool = False
    suffix: str = "_TEST"
    # Empty means both target tables
    tables: tuple[str, ...] = ()
    data_copy_limit: int = 500
    copy_dependent_ddl: bool = True


@dataclass(frozen=True)
class NotificationDef:
    """SMTP settings for the run summary mail."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 25
    use_tls: bool = False
    username: str | None = None
    password_env: str | None = None
    sender: str = "account-transfer@localhost"
    recipients: tuple[str, ...] = ()
    subject: str = "Account transfer run summary"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransferConfig:
    """Complete, immutable configuration snapshot for one transfer run."""

    name: str = "account-transfer"
    page_size: int = 10000
    batch_size: int = 500
    mark_processed: bool = False
    main_db: DatabaseDef = field(default_factory=DatabaseDef)
    lookup_db: DatabaseDef = field(default_factory=DatabaseDef)
    source: SourceDef = field(default_factory=SourceDef)
    lookup: LookupDef = field(default_factory=LookupDef)
    xref: XrefDef = field(default_factory=XrefDef)
    key_columns: tuple[str, ...] = ("userid", "brchid", "accountno")
    target_zero: TargetDef = DEFAULT_TARGET_ZERO
    target_one: TargetDef = DEFAULT_TARGET_ONE
    provisioning: ProvisioningDef = field(default_factory=ProvisioningDef)
    notification: NotificationDef = field(default_factory=NotificationDef)

    def with_overrides(self, **changes: Any) -> TransferConfig:
        """Return a copy with top-level fields replaced; ``None`` values are ignored."""
        effective = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **effective) if effective else self

    def with_table_substitutions(self, substitutions: dict[str, str]) -> TransferConfig:
        """
        Return a copy whose main-store table names are swapped per ``substitutions``.

        Matching is case-insensitive. The lookup table lives on the other
        store and is never substituted.
        """
        if not substitutions:
            return self
        upper = {k.upper(): v for k, v in substitutions.items()}

        def swap(table: str) -> str:
            return upper.get(table.upper(), table)

        return replace(
            self,
            source=replace(self.source, table=swap(self.source.table)),
            xref=replace(self.xref, table=swap(self.xref.table)),
            target_zero=replace(self.target_zero, table=swap(self.target_zero.table)),
            target_one=replace(self.target_one, table=swap(self.target_one.table)),
        )

    @property
    def main_tables(self) -> tuple[str, ...]:
        return (self.source.table, self.xref.table, self.target_zero.table, self.target_one.table)
