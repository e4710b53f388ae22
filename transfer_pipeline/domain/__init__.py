"""Pure domain types for the transfer pipeline."""

from transfer_pipeline.domain.types import (
    EnrichedRow,
    LookupResult,
    PageWindow,
    ResolvedRouting,
    SkipReason,
    SourcePage,
    SourceRow,
    TargetVariant,
    TransferRunResult,
    TransferState,
)

__all__ = [
    "EnrichedRow",
    "LookupResult",
    "PageWindow",
    "ResolvedRouting",
    "SkipReason",
    "SourcePage",
    "SourceRow",
    "TargetVariant",
    "TransferRunResult",
    "TransferState",
]
