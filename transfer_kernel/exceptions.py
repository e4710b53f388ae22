"""
Typed exception hierarchy for the account transfer pipeline.

Every error carries a ``code`` class attribute (machine-readable) and its
context as public attributes, so callers catch by type and report by field
instead of parsing messages.

    TransferError (base)
    |
    +-- ConfigurationError
    |   +-- ConfigValidationError
    |   +-- InvalidIdentifierError
    |   +-- UnknownMappingTokenError
    |   +-- BindingPlanError
    |
    +-- SourceError
    |   +-- OrderingKeyNotUniqueError
    |
    +-- TransferAbortedError
    +-- ProvisioningError
    +-- NotificationError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIG_VALIDATION_FAILED    | Loaded configuration has errors
                | INVALID_SQL_IDENTIFIER      | Table/column name is not a plain identifier
                | UNKNOWN_MAPPING_TOKEN       | Mapping token names no enriched field
                | BINDING_PLAN_MISMATCH       | Token count != insert column count
----------------|-----------------------------|-----------------------------------------
Source          | ORDERING_KEY_NOT_UNIQUE     | Duplicate ordering key in source table
----------------|-----------------------------|-----------------------------------------
Run             | TRANSFER_ABORTED            | Data-store error during the run
----------------|-----------------------------|-----------------------------------------
Collaborators   | PROVISIONING_FAILED         | Test table could not be created
                | NOTIFICATION_FAILED         | Summary mail could not be sent

Data-quality skips (blank customer key, no lookup match, unknown
discriminator) are NOT exceptions. They are counted in the run result.
"""

from __future__ import annotations

from typing import Any


class TransferError(Exception):
    """Base exception for all transfer errors."""

    code: str = "TRANSFER_ERROR"


# Configuration errors: always raised before the first source row is read.


class ConfigurationError(TransferError):
    """Base exception for configuration problems."""

    code: str = "CONFIGURATION_ERROR"


class ConfigValidationError(ConfigurationError):
    """Configuration failed validation; ``errors`` lists every problem found."""

    code: str = "CONFIG_VALIDATION_FAILED"

    def __init__(self, errors: list[str], source: str | None = None):
        self.errors = list(errors)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"Configuration invalid{where}: {len(self.errors)} error(s): "
            + "; ".join(self.errors)
        )


class InvalidIdentifierError(ConfigurationError):
    """A configured table or column name is not a plain SQL identifier."""

    code: str = "INVALID_SQL_IDENTIFIER"

    def __init__(self, identifier: Any):
        self.identifier = identifier
        super().__init__(f"Invalid SQL identifier: {identifier!r}")


class UnknownMappingTokenError(ConfigurationError):
    """A mapping token is neither a known field, ``NULL`` nor ``CONST:``."""

    code: str = "UNKNOWN_MAPPING_TOKEN"

    def __init__(self, token: str, known_fields: list[str]):
        self.token = token
        self.known_fields = known_fields
        super().__init__(
            f"Unknown mapping token {token!r}; expected one of {known_fields}, "
            "'NULL' or 'CONST:<value>'"
        )


class BindingPlanError(ConfigurationError):
    """Insert column list and mapping token list differ in length."""

    code: str = "BINDING_PLAN_MISMATCH"

    def __init__(self, target: str, column_count: int, token_count: int):
        self.target = target
        self.column_count = column_count
        self.token_count = token_count
        super().__init__(
            f"Target {target}: {column_count} insert column(s) but "
            f"{token_count} mapping token(s)"
        )


# Source errors


class SourceError(TransferError):
    """Base exception for source table problems."""

    code: str = "SOURCE_ERROR"


class OrderingKeyNotUniqueError(SourceError):
    """
    The ordering key does not identify source rows uniquely.

    Page membership is only deterministic across runs when every row has a
    distinct rank, so the run refuses to start.
    """

    code: str = "ORDERING_KEY_NOT_UNIQUE"

    def __init__(self, table: str, ordering_key: tuple[str, ...], duplicate_groups: int):
        self.table = table
        self.ordering_key = ordering_key
        self.duplicate_groups = duplicate_groups
        super().__init__(
            f"Ordering key {list(ordering_key)} of {table} is not unique: "
            f"{duplicate_groups} duplicated key group(s)"
        )


# Run errors


class TransferAbortedError(TransferError):
    """
    A data-store error stopped the run.

    Everything committed before the failure is durable; the in-flight batch
    was rolled back. The attributes describe how far the run got so an
    operator can resume (re-running is safe, the upsert is insert-if-absent).
    """

    code: str = "TRANSFER_ABORTED"

    def __init__(
        self,
        run_id: str,
        window: tuple[int, int] | None,
        rows_processed: int,
        inserted: dict[str, int],
        commits: int,
        cause: str,
    ):
        self.run_id = run_id
        self.window = window
        self.rows_processed = rows_processed
        self.inserted = dict(inserted)
        self.commits = commits
        self.cause = cause
        where = f"window ({window[0]}, {window[1]}]" if window else "before the first page"
        super().__init__(
            f"Transfer {run_id} aborted at {where} after {rows_processed} "
            f"row(s) and {commits} commit(s): {cause}"
        )


# Collaborator errors


class ProvisioningError(TransferError):
    """A test table could not be provisioned."""

    code: str = "PROVISIONING_FAILED"

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(f"Provisioning of {table} failed: {reason}")


class NotificationError(TransferError):
    """The run summary mail could not be delivered."""

    code: str = "NOTIFICATION_FAILED"

    def __init__(self, recipients: tuple[str, ...], reason: str):
        self.recipients = recipients
        self.reason = reason
        super().__init__(f"Notification to {list(recipients)} failed: {reason}")
