"""
Typed exception hierarchy for the ledger kernel.

Every error has a typed class (catch by type, not message), a class-level
``code`` (machine-readable, API-safe) and structured attributes.

    LedgerKernelError (base)
    |
    +-- RecordError
    |   +-- InvalidRecordError
    |   +-- RecordNotFoundError
    |
    +-- AccessError
    |   +-- PermissionDeniedError
    |
    +-- PersistenceError
    |   +-- SnapshotLoadError
    |   +-- SnapshotSaveError
    |
    +-- ConfigError

Category     | Code                 | When Raised
-------------|----------------------|------------------------------------------
Record       | INVALID_RECORD       | Unparseable date, bad enum, qty <= 0 on post
             | RECORD_NOT_FOUND     | Mutation references a missing customer/hub
Access       | PERMISSION_DENIED    | Non-admin actor attempts a mutation
Persistence  | SNAPSHOT_LOAD_FAILED | Database read failed (wrapped SQLAlchemyError)
             | SNAPSHOT_SAVE_FAILED | Database write failed (wrapped SQLAlchemyError)
Config       | CONFIG_INVALID       | Configuration file fails validation

The calculation engines never raise for data-quality problems: missing
references are skipped and bad numbers are clamped to zero.  These
exceptions belong to the service and collaborator layers.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Record-related exceptions


class RecordError(LedgerKernelError):
    """Base exception for record-related errors."""

    code: str = "RECORD_ERROR"


class InvalidRecordError(RecordError):
    """A record field could not be parsed or violates a posting rule."""

    code: str = "INVALID_RECORD"

    def __init__(self, collection: str, field: str, value: object, reason: str):
        self.collection = collection
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(
            f"Invalid {collection}.{field}={value!r}: {reason}"
        )


class RecordNotFoundError(RecordError):
    """A mutation referenced a record that is not in the snapshot."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} not found: {record_id}")


# Access-related exceptions


class AccessError(LedgerKernelError):
    """Base exception for identity and role errors."""

    code: str = "ACCESS_ERROR"


class PermissionDeniedError(AccessError):
    """The acting user's role does not permit the requested mutation."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, user_id: str | None, action: str, reason: str):
        self.user_id = user_id
        self.action = action
        self.reason = reason
        super().__init__(
            f"Permission denied for {user_id or 'anonymous'} on {action}: {reason}"
        )


# Persistence-related exceptions


class PersistenceError(LedgerKernelError):
    """Base exception for snapshot persistence errors."""

    code: str = "PERSISTENCE_ERROR"


class SnapshotLoadError(PersistenceError):
    """Reading the snapshot from the database failed."""

    code: str = "SNAPSHOT_LOAD_FAILED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Snapshot load failed: {reason}")


class SnapshotSaveError(PersistenceError):
    """Writing the snapshot to the database failed."""

    code: str = "SNAPSHOT_SAVE_FAILED"

    def __init__(self, revision: int, reason: str):
        self.revision = revision
        self.reason = reason
        super().__init__(f"Snapshot save failed at revision {revision}: {reason}")


# Configuration exceptions


class ConfigError(LedgerKernelError):
    """Configuration file failed validation."""

    code: str = "CONFIG_INVALID"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration {path}: {reason}")
