"""LookupEnricher -- customer key to canonical customer identity."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.orm import Session

from transfer_config.schema import LookupDef
from transfer_pipeline.domain.types import LookupResult
from transfer_pipeline.sql.templates import build_point_select_sql

_ABSENT = LookupResult()


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class LookupEnricher:
    """
    Point query against the lookup store.

    The first returned row wins. No row, or a blank canonical id, yields
    an absent ``LookupResult`` (``found`` is false).
    """

    def __init__(self, session: Session, lookup: LookupDef):
        self._session = session
        self._sql = text(
            build_point_select_sql(
                lookup.table,
                (lookup.id_column, lookup.id_type_column),
                lookup.key_column,
                "customer_key",
            )
        )

    def lookup(self, customer_key: str) -> LookupResult:
        row = self._session.execute(self._sql, {"customer_key": customer_key}).first()
        if row is None:
            return _ABSENT
        customer_id = _clean(row[0])
        if customer_id is None:
            return _ABSENT
        return LookupResult(customer_id=customer_id, customer_id_type=_clean(row[1]))
