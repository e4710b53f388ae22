"""Tests for PaginatedSourceReader over the fixture main store."""

import pytest

from transfer_config.schema import SourceDef
from transfer_kernel.exceptions import OrderingKeyNotUniqueError
from transfer_pipeline.services.source_reader import PaginatedSourceReader


def _rows(n):
    return [(f"C{i}", "200", f"A{i}", "0", "2024-01-01", None) for i in range(1, n + 1)]


class TestPages:
    def test_five_rows_page_size_two(self, stores, main_session):
        stores.add_source_rows(_rows(5))
        reader = PaginatedSourceReader(main_session, SourceDef(), page_size=2)

        pages = list(reader.pages())

        assert [p.window.as_tuple() for p in pages] == [(0, 2), (2, 4), (4, 6)]
        assert [len(p.rows) for p in pages] == [2, 2, 1]
        assert [r.customer_key for p in pages for r in p.rows] == ["C1", "C2", "C3", "C4", "C5"]
        assert reader.current_window.as_tuple() == (4, 6)

    def test_exact_multiple_reads_one_empty_page(self, stores, main_session):
        stores.add_source_rows(_rows(4))
        pages = list(PaginatedSourceReader(main_session, SourceDef(), page_size=2).pages())
        assert [len(p.rows) for p in pages] == [2, 2, 0]

    def test_empty_table(self, main_session):
        pages = list(PaginatedSourceReader(main_session, SourceDef(), page_size=10).pages())
        assert len(pages) == 1
        assert pages[0].rows == ()

    def test_rows_ordered_by_ordering_key(self, stores, main_session):
        stores.add_source_rows([
            ("C2", "100", "A1", "0", None, None),
            ("C1", "300", "A1", "0", None, None),
            ("C1", "100", "A2", "0", None, None),
            ("C1", "100", "A1", "0", None, None),
        ])
        pages = list(PaginatedSourceReader(main_session, SourceDef(), page_size=10).pages())
        keys = [(r.customer_key, r.routing_code, r.account_no) for r in pages[0].rows]
        assert keys == [("C1", "100", "A1"), ("C1", "100", "A2"), ("C1", "300", "A1"), ("C2", "100", "A1")]

    def test_values_trimmed(self, stores, main_session):
        stores.add_source_rows([(" C1 ", " 103", "A1 ", " 1", "2024-01-01", " hello ")])
        row = next(PaginatedSourceReader(main_session, SourceDef(), page_size=10).pages()).rows[0]
        assert (row.customer_key, row.routing_code, row.account_no, row.discriminator, row.note) == (
            "C1", "103", "A1", "1", "hello",
        )

    def test_current_window_none_before_first_page(self, main_session):
        assert PaginatedSourceReader(main_session, SourceDef(), page_size=5).current_window is None

    def test_page_size_must_be_positive(self, main_session):
        with pytest.raises(ValueError):
            PaginatedSourceReader(main_session, SourceDef(), page_size=0)


class TestOrderingKey:
    def test_unique_key_passes(self, stores, main_session):
        stores.add_source_rows(_rows(3))
        PaginatedSourceReader(main_session, SourceDef(), page_size=2).verify_unique_ordering_key()

    def test_duplicates_raise(self, stores, main_session):
        stores.add_source_rows(_rows(3) + _rows(2))
        reader = PaginatedSourceReader(main_session, SourceDef(), page_size=2)
        with pytest.raises(OrderingKeyNotUniqueError) as exc_info:
            reader.verify_unique_ordering_key()
        assert exc_info.value.duplicate_groups == 2
        assert exc_info.value.ordering_key == ("clna_cust_id_no", "clna_bsb_no", "clna_acct_no")

    def test_configured_ordering_key(self, stores, main_session):
        stores.add_source_rows([("C1", "100", "A1", "0", None, None), ("C1", "100", "A2", "0", None, None)])
        reader = PaginatedSourceReader(main_session, SourceDef(order_by=("clna_cust_id_no",)), page_size=2)
        with pytest.raises(OrderingKeyNotUniqueError):
            reader.verify_unique_ordering_key()
