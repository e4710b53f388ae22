"""
transfer_pipeline.domain.types -- Pure frozen dataclasses for the transfer pipeline.

ZERO I/O. Every DTO is a frozen dataclass; collections inside DTOs are
tuples or read-only copies so a value handed to another component cannot
change underneath it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


def _trim(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# =============================================================================
# Enums
# =============================================================================


class TargetVariant(str, Enum):
    """Destination shape, selected by the source row's discriminator."""

    ZERO = "0"
    ONE = "1"

    @classmethod
    def for_discriminator(cls, value: Any) -> TargetVariant | None:
        """Return the variant for ``value``; ``None`` for anything else."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


class SkipReason(str, Enum):
    """Why a source row produced no target record."""

    MISSING_CUSTOMER_KEY = "missing_customer_key"
    NO_LOOKUP_MATCH = "no_lookup_match"
    UNKNOWN_DISCRIMINATOR = "unknown_discriminator"


class TransferState(str, Enum):
    """Orchestrator lifecycle state."""

    IDLE = "idle"
    PAGE_LOADED = "page_loaded"
    ROW_ENRICHED = "row_enriched"
    ROW_ROUTED = "row_routed"
    BATCH_PENDING = "batch_pending"
    COMMITTED = "committed"
    DONE = "done"
    FAILED = "failed"


# =============================================================================
# Row DTOs
# =============================================================================


@dataclass(frozen=True)
class SourceRow:
    """One row of the source table, string fields already trimmed."""

    customer_key: str | None
    routing_code: str | None
    account_no: str | None
    discriminator: str | None
    maint_date: Any = None
    note: str | None = None

    @classmethod
    def from_values(cls, values: tuple[Any, ...] | list[Any]) -> SourceRow:
        """Build from a positional result row (``SourceDef.select_columns`` order)."""
        customer_key, routing_code, account_no, discriminator, maint_date, note = values
        return cls(
            customer_key=_trim(customer_key),
            routing_code=_trim(routing_code),
            account_no=_trim(account_no),
            discriminator=_trim(discriminator),
            maint_date=maint_date,
            note=_trim(note),
        )

    @property
    def has_customer_key(self) -> bool:
        return not _is_blank(self.customer_key)


@dataclass(frozen=True)
class LookupResult:
    """Canonical customer identity from the lookup store."""

    customer_id: str | None = None
    customer_id_type: str | None = None

    @property
    def found(self) -> bool:
        return not _is_blank(self.customer_id)


@dataclass(frozen=True)
class ResolvedRouting:
    """Effective (routing code, account number) after cross-reference."""

    routing_code: str | None
    account_no: str | None
    substituted: bool = False

    @classmethod
    def unchanged(cls, row: SourceRow) -> ResolvedRouting:
        return cls(routing_code=row.routing_code, account_no=row.account_no)


@dataclass(frozen=True)
class EnrichedRow:
    """
    The fields a target binding may reference.

    Field names are the canonical mapping-token names; see
    ``transfer_pipeline.mapping.binding``.
    """

    customer_id: str | None
    customer_id_type: str | None
    routing_code: str | None
    account_no: str | None
    maint_date: Any = None
    note: str | None = None

    @classmethod
    def combine(cls, row: SourceRow, routing: ResolvedRouting, lookup: LookupResult) -> EnrichedRow:
        return cls(
            customer_id=lookup.customer_id,
            customer_id_type=lookup.customer_id_type,
            routing_code=routing.routing_code,
            account_no=routing.account_no,
            maint_date=row.maint_date,
            note=row.note,
        )


# =============================================================================
# Paging
# =============================================================================


@dataclass(frozen=True)
class PageWindow:
    """Half-open rank window ``(lower, upper]``."""

    lower: int
    upper: int

    @classmethod
    def first(cls, size: int) -> PageWindow:
        if size <= 0:
            raise ValueError(f"page size must be positive, got {size}")
        return cls(lower=0, upper=size)

    @property
    def size(self) -> int:
        return self.upper - self.lower

    def next(self) -> PageWindow:
        return PageWindow(lower=self.upper, upper=self.upper + self.size)

    def as_tuple(self) -> tuple[int, int]:
        return (self.lower, self.upper)


@dataclass(frozen=True)
class SourcePage:
    """Rows returned for one window, in rank order."""

    window: PageWindow
    rows: tuple[SourceRow, ...] = ()

    @property
    def is_last(self) -> bool:
        return len(self.rows) < self.window.size


# =============================================================================
# Run result
# =============================================================================


@dataclass(frozen=True)
class TransferRunResult:
    """Immutable summary of one transfer run.

    Per-variant and per-reason counts are keyed by the enum ``value``
    (``"0"``/``"1"`` and the skip reason names) so the result serialises
    to JSON unchanged.
    """

    run_id: str
    state: TransferState
    processed: int = 0
    queued: dict[str, int] = field(default_factory=dict)
    inserted: dict[str, int] = field(default_factory=dict)
    flushes: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)
    pages: int = 0
    commits: int = 0
    marked_processed: int = 0
    last_window: tuple[int, int] | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "processed": self.processed,
            "queued": dict(self.queued),
            "inserted": dict(self.inserted),
            "flushes": dict(self.flushes),
            "skipped": dict(self.skipped),
            "pages": self.pages,
            "commits": self.commits,
            "marked_processed": self.marked_processed,
            "last_window": list(self.last_window) if self.last_window else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }
