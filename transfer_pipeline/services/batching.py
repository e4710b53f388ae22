"""BatchAccumulator -- pending bind-parameter sets for one target variant."""

from __future__ import annotations

from typing import Any

from transfer_pipeline.domain.types import TargetVariant


class BatchAccumulator:
    """
    Pending upsert parameters plus the matching "mark processed" keys.

    The orchestrator flushes when ``is_full`` and again at end of stream.
    ``drain()`` hands the pending sets over and resets the accumulator.
    """

    def __init__(self, variant: TargetVariant, threshold: int):
        if threshold <= 0:
            raise ValueError(f"batch threshold must be positive, got {threshold}")
        self.variant = variant
        self.threshold = threshold
        self._params: list[dict[str, Any]] = []
        self._marks: list[dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._params)

    @property
    def is_full(self) -> bool:
        return len(self._params) >= self.threshold

    @property
    def is_empty(self) -> bool:
        return not self._params

    def add(self, params: dict[str, Any], mark_key: dict[str, Any] | None = None) -> None:
        self._params.append(params)
        if mark_key is not None:
            self._marks.append(mark_key)

    def drain(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        params, marks = self._params, self._marks
        self._params, self._marks = [], []
        return params, marks
