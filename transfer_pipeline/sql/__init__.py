"""SQL statement templates (pure)."""

from transfer_pipeline.sql.templates import (
    bind_name,
    build_duplicate_key_count_sql,
    build_insert_if_absent_sql,
    build_mark_processed_sql,
    build_merge_insert_sql,
    build_page_select_sql,
    build_point_select_sql,
    build_upsert_sql,
    validate_identifier,
)

__all__ = [
    "bind_name",
    "build_duplicate_key_count_sql",
    "build_insert_if_absent_sql",
    "build_mark_processed_sql",
    "build_merge_insert_sql",
    "build_page_select_sql",
    "build_point_select_sql",
    "build_upsert_sql",
    "validate_identifier",
]
