"""
CrossReferenceResolver -- conditional (routing code, account number) substitution.

Only rows whose routing code equals the configured trigger code consult the
reference table; a non-blank mapped value replaces the account number and
the routing code becomes the replacement code. Every other outcome keeps
the source pair. A missing mapping is never a skip.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.orm import Session

from transfer_config.schema import XrefDef
from transfer_kernel.logging_config import get_logger
from transfer_pipeline.domain.types import ResolvedRouting
from transfer_pipeline.sql.templates import build_point_select_sql

logger = get_logger("pipeline.xref")


class CrossReferenceResolver:
    """Looks up internal account numbers on the main store."""

    def __init__(self, session: Session, xref: XrefDef):
        self._session = session
        self._xref = xref
        self._trigger = xref.trigger_code.strip()
        self._replacement = xref.replacement_code.strip()
        self._sql = text(build_point_select_sql(xref.table, (xref.value_column,), xref.key_column, "ref_no"))

    def resolve(self, routing_code: str | None, account_no: str | None) -> ResolvedRouting:
        unchanged = ResolvedRouting(routing_code=routing_code, account_no=account_no)
        if routing_code is None or routing_code.strip() != self._trigger:
            return unchanged

        row = self._session.execute(self._sql, {"ref_no": account_no}).first()
        mapped = row[0] if row is not None else None
        if isinstance(mapped, str):
            mapped = mapped.strip()
        if mapped is None or mapped == "":
            logger.debug("xref_no_match", extra={"account_no": account_no})
            return unchanged

        return ResolvedRouting(
            routing_code=self._replacement,
            account_no=str(mapped),
            substituted=True,
        )
