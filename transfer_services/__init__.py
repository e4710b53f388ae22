"""Collaborators around the transfer pipeline: test tables and notification."""

from transfer_services.notification import MailNotifier, format_failure, format_summary
from transfer_services.test_tables import TestTablePreparator, rewrite_dependent_ddl, with_test_suffix

__all__ = [
    "MailNotifier",
    "TestTablePreparator",
    "format_failure",
    "format_summary",
    "rewrite_dependent_ddl",
    "with_test_suffix",
]
