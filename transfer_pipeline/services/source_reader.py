"""
PaginatedSourceReader -- ranked window reads over the source table.

Windows are ``(0, P], (P, 2P], ...`` over ``ROW_NUMBER() OVER (ORDER BY
<ordering key>)``; one query per window, rows in rank order, stopping after
the first window that returns fewer than P rows. Each page is read fully,
so memory is bounded by the page size.

Query errors propagate to the caller; there is no partial-page retry.
"""

from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session

from transfer_config.schema import SourceDef
from transfer_kernel.exceptions import OrderingKeyNotUniqueError
from transfer_kernel.logging_config import get_logger
from transfer_pipeline.domain.types import PageWindow, SourcePage, SourceRow
from transfer_pipeline.sql.templates import build_duplicate_key_count_sql, build_page_select_sql

logger = get_logger("pipeline.source")


class PaginatedSourceReader:
    """Reads the source table page by page on the main store."""

    def __init__(self, session: Session, source: SourceDef, page_size: int):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._session = session
        self._source = source
        self._page_size = page_size
        self._page_sql = text(build_page_select_sql(source.table, source.select_columns, source.ordering_key))
        self._current: PageWindow | None = None

    @property
    def current_window(self) -> PageWindow | None:
        """Window being (or last) fetched; ``None`` before the first page."""
        return self._current

    def verify_unique_ordering_key(self) -> None:
        """
        Raises:
            OrderingKeyNotUniqueError: some ordering-key value occurs twice.
        """
        sql = build_duplicate_key_count_sql(self._source.table, self._source.ordering_key)
        duplicates = self._session.execute(text(sql)).scalar() or 0
        if duplicates:
            raise OrderingKeyNotUniqueError(self._source.table, self._source.ordering_key, int(duplicates))

    def fetch(self, window: PageWindow) -> SourcePage:
        self._current = window
        result = self._session.execute(self._page_sql, {"lower": window.lower, "upper": window.upper})
        rows = tuple(SourceRow.from_values(tuple(r)) for r in result.all())
        logger.debug(
            "page_fetched",
            extra={"table": self._source.table, "window": window.as_tuple(), "rows": len(rows)},
        )
        return SourcePage(window=window, rows=rows)

    def pages(self) -> Iterator[SourcePage]:
        window = PageWindow.first(self._page_size)
        while True:
            page = self.fetch(window)
            yield page
            if page.is_last:
                return
            window = window.next()
