"""
TransferOrchestrator -- drives one transfer run end to end.

Contract:
    ``run()`` pages through the source table, enriches and routes each row,
    accumulates bind-parameter sets per target variant and flushes them as
    insert-if-absent upserts with explicit commits. Returns a
    ``TransferRunResult``.

Architecture: transfer_pipeline/services. The only component with
    transactional or control-flow responsibility; the reader, resolver and
    enricher only query.

State machine::

    IDLE -> PAGE_LOADED -> ROW_ENRICHED -> ROW_ROUTED -> BATCH_PENDING
         -> COMMITTED -> (PAGE_LOADED | DONE)
    any state -> FAILED on error

Commit boundaries:
    - A variant whose pending count reaches ``batch_size`` is flushed as one
      executemany, followed by its "mark processed" updates, then committed.
    - At end of stream every non-empty variant is flushed and the session
      is committed once more.

Failure contract:
    The main session is rolled back explicitly, so the in-flight batch is
    discarded while committed batches stay durable. Data-store errors
    (``SQLAlchemyError``) are raised as ``TransferAbortedError`` carrying
    the last window and the committed counts; other exceptions propagate
    unchanged after the rollback.
"""

from __future__ import annotations

import time
from typing import Any
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transfer_config.schema import TargetDef, TransferConfig
from transfer_kernel.db.engine import LOOKUP, MAIN, get_session
from transfer_kernel.domain.clock import Clock, SystemClock
from transfer_kernel.exceptions import TransferAbortedError
from transfer_kernel.logging_config import LogContext, get_logger
from transfer_pipeline.domain.types import (
    EnrichedRow,
    SkipReason,
    SourceRow,
    TargetVariant,
    TransferRunResult,
    TransferState,
)
from transfer_pipeline.mapping.binding import BindingPlan, compile_binding_plan
from transfer_pipeline.services.batching import BatchAccumulator
from transfer_pipeline.services.lookup import LookupEnricher
from transfer_pipeline.services.source_reader import PaginatedSourceReader
from transfer_pipeline.services.xref import CrossReferenceResolver
from transfer_pipeline.sql.templates import bind_name, build_mark_processed_sql, build_upsert_sql

logger = get_logger("pipeline.orchestrator")


class TransferOrchestrator:
    """Runs a single transfer over one main-store and one lookup-store session.

    Contract:
        - Binding plans and SQL are compiled in ``__init__``; a bad mapping
          raises before any query is issued.
        - ``run()`` may be called once per instance.
        - Sessions passed in are not closed; sessions opened by
          ``from_engines()`` are closed by ``close()``.

    Non-goals:
        - No retries, no parallelism, no cancellation.
    """

    def __init__(
        self,
        config: TransferConfig,
        main_session: Session,
        lookup_session: Session,
        clock: Clock | None = None,
        reader: PaginatedSourceReader | None = None,
        lookup: LookupEnricher | None = None,
        xref: CrossReferenceResolver | None = None,
    ):
        self._config = config
        self._main = main_session
        self._clock = clock or SystemClock()
        self._reader = reader or PaginatedSourceReader(main_session, config.source, config.page_size)
        self._lookup = lookup or LookupEnricher(lookup_session, config.lookup)
        self._xref = xref or CrossReferenceResolver(main_session, config.xref)
        self._owned_sessions: tuple[Session, ...] = ()

        targets = {TargetVariant.ZERO: config.target_zero, TargetVariant.ONE: config.target_one}
        self._plans: dict[TargetVariant, BindingPlan] = {
            variant: compile_binding_plan(t.table, t.columns, t.mapping) for variant, t in targets.items()
        }
        dialect = main_session.get_bind().dialect.name
        self._upserts = {variant: text(self._upsert_sql(dialect, t)) for variant, t in targets.items()}
        self._targets = targets

        src = config.source
        self._mark_columns = (src.customer_key_column, src.routing_code_column, src.account_no_column)
        self._mark_sql = (
            text(build_mark_processed_sql(src.table, src.processed_flag_column, self._mark_columns))
            if config.mark_processed
            else None
        )

        self._batches = {v: BatchAccumulator(v, config.batch_size) for v in TargetVariant}
        self._state = TransferState.IDLE
        self._processed = 0
        self._pages = 0
        self._commits = 0
        self._marked = 0
        self._queued = {v: 0 for v in TargetVariant}
        self._inserted = {v: 0 for v in TargetVariant}
        self._flushes = {v: 0 for v in TargetVariant}
        self._skipped = {r: 0 for r in SkipReason}
        # Flushed but not yet committed: (variant, inserted, marked)
        self._uncommitted: list[tuple[TargetVariant, int, int]] = []

    def _upsert_sql(self, dialect: str, target: TargetDef) -> str:
        return build_upsert_sql(dialect, target.table, target.columns, self._config.key_columns)

    @classmethod
    def from_engines(cls, config: TransferConfig, clock: Clock | None = None) -> TransferOrchestrator:
        """Build from the kernel's registered ``main`` and ``lookup`` engines."""
        main_session = get_session(MAIN)
        lookup_session = get_session(LOOKUP)
        orchestrator = cls(config, main_session, lookup_session, clock=clock)
        orchestrator._owned_sessions = (main_session, lookup_session)
        return orchestrator

    def close(self) -> None:
        for session in self._owned_sessions:
            session.close()
        self._owned_sessions = ()

    def __enter__(self) -> TransferOrchestrator:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def state(self) -> TransferState:
        return self._state

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self) -> TransferRunResult:
        if self._state is not TransferState.IDLE:
            raise RuntimeError(f"Transfer already run (state={self._state.value})")

        run_id = str(uuid4())
        started_at = self._clock.now()
        start = time.monotonic()

        with LogContext.bind(run_id=run_id, stage="transfer", table=self._config.source.table):
            logger.info(
                "transfer_started",
                extra={
                    "config_name": self._config.name,
                    "page_size": self._config.page_size,
                    "batch_size": self._config.batch_size,
                    "mark_processed": self._config.mark_processed,
                    "targets": [t.table for t in self._targets.values()],
                },
            )
            try:
                self._execute()
            except SQLAlchemyError as exc:
                self._fail()
                window = self._reader.current_window
                error = TransferAbortedError(
                    run_id=run_id,
                    window=window.as_tuple() if window else None,
                    rows_processed=self._processed,
                    inserted={v.value: n for v, n in self._inserted.items()},
                    commits=self._commits,
                    cause=f"{type(exc).__name__}: {exc}",
                )
                logger.error("transfer_aborted", exc_info=error)
                raise error from exc
            except Exception:
                self._fail()
                logger.exception("transfer_failed")
                raise

            window = self._reader.current_window
            result = TransferRunResult(
                run_id=run_id,
                state=self._state,
                processed=self._processed,
                queued={v.value: n for v, n in self._queued.items()},
                inserted={v.value: n for v, n in self._inserted.items()},
                flushes={v.value: n for v, n in self._flushes.items()},
                skipped={r.value: n for r, n in self._skipped.items()},
                pages=self._pages,
                commits=self._commits,
                marked_processed=self._marked,
                last_window=window.as_tuple() if window else None,
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            logger.info("transfer_completed", extra={"summary": result.to_dict()})
            return result

    def _execute(self) -> None:
        if self._config.source.verify_unique_order_key:
            self._reader.verify_unique_ordering_key()

        for page in self._reader.pages():
            self._state = TransferState.PAGE_LOADED
            self._pages += 1
            window = page.window.as_tuple()
            with LogContext.bind(window=f"({window[0]}, {window[1]}]"):
                logger.info("page_loaded", extra={"rows": len(page.rows), "last_page": page.is_last})
                for row in page.rows:
                    self._process_row(row)

        for batch in self._batches.values():
            if not batch.is_empty:
                self._flush(batch)
        self._commit()
        self._state = TransferState.DONE

    def _process_row(self, row: SourceRow) -> None:
        self._processed += 1
        if not row.has_customer_key:
            self._skip(SkipReason.MISSING_CUSTOMER_KEY, row)
            return

        routing = self._xref.resolve(row.routing_code, row.account_no)
        found = self._lookup.lookup(row.customer_key)
        if not found.found:
            self._skip(SkipReason.NO_LOOKUP_MATCH, row)
            return
        self._state = TransferState.ROW_ENRICHED

        variant = TargetVariant.for_discriminator(row.discriminator)
        if variant is None:
            self._skip(SkipReason.UNKNOWN_DISCRIMINATOR, row)
            return
        self._state = TransferState.ROW_ROUTED

        enriched = EnrichedRow.combine(row, routing, found)
        batch = self._batches[variant]
        batch.add(self._plans[variant].bind(enriched), self._mark_key(row))
        self._queued[variant] += 1
        self._state = TransferState.BATCH_PENDING

        if batch.is_full:
            self._flush(batch)
            self._commit()

    def _skip(self, reason: SkipReason, row: SourceRow) -> None:
        self._skipped[reason] += 1
        logger.debug(
            "row_skipped",
            extra={"reason": reason.value, "customer_key": row.customer_key, "account_no": row.account_no},
        )

    def _mark_key(self, row: SourceRow) -> dict[str, Any] | None:
        if self._mark_sql is None:
            return None
        # Original values: the flag is set on the source row, not the substituted pair
        key = dict(zip(
            (bind_name(c) for c in self._mark_columns),
            (row.customer_key, row.routing_code, row.account_no),
        ))
        key["flag_value"] = self._config.source.processed_flag_value
        return key

    # -------------------------------------------------------------------------
    # Flush / commit / fail
    # -------------------------------------------------------------------------

    def _flush(self, batch: BatchAccumulator) -> None:
        params, marks = batch.drain()
        result = self._main.execute(self._upserts[batch.variant], params)
        inserted = max(result.rowcount, 0)
        marked = 0
        if marks:
            marked = max(self._main.execute(self._mark_sql, marks).rowcount, 0)
        self._uncommitted.append((batch.variant, inserted, marked))
        logger.info(
            "batch_flushed",
            extra={
                "variant": batch.variant.value,
                "target": self._targets[batch.variant].table,
                "rows": len(params),
                "inserted": inserted,
                "marked": marked,
            },
        )

    def _commit(self) -> None:
        self._main.commit()
        self._commits += 1
        for variant, inserted, marked in self._uncommitted:
            self._inserted[variant] += inserted
            self._flushes[variant] += 1
            self._marked += marked
        self._uncommitted.clear()
        self._state = TransferState.COMMITTED
        logger.debug("batch_committed", extra={"commits": self._commits})

    def _fail(self) -> None:
        self._main.rollback()
        self._uncommitted.clear()
        for batch in self._batches.values():
            batch.drain()
        self._state = TransferState.FAILED
