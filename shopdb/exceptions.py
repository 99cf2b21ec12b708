"""
Exception Hierarchy

Every error raised by shopdb derives from ShopDbError, which carries a
machine readable code and a details mapping next to the message.
"""

from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError


class ShopDbError(Exception):
    """Base exception for all shopdb errors"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and display"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class PersistenceError(ShopDbError):
    """Staged changes could not be written; nothing from the failed call was applied"""


class ConstraintViolation(PersistenceError):
    """
    A database constraint rejected the staged changes.

    ``kind`` is one of duplicate_key, foreign_key, check, not_null or unknown.
    """

    DUPLICATE_KEY = "duplicate_key"
    FOREIGN_KEY = "foreign_key"
    CHECK = "check"
    NOT_NULL = "not_null"
    UNKNOWN = "unknown"

    # (kind, markers) pairs matched against lower-cased driver messages
    _MARKERS = (
        (DUPLICATE_KEY, ("unique constraint", "duplicate key", "unique violation")),
        (FOREIGN_KEY, ("foreign key",)),
        (CHECK, ("check constraint",)),
        (NOT_NULL, ("not null", "null value in column")),
    )

    def __init__(self, message: str, kind: str = UNKNOWN, details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        super().__init__(message, code="CONSTRAINT_VIOLATION", details={"kind": kind, **(details or {})})

    @classmethod
    def classify(cls, error_text: str) -> str:
        text = error_text.lower()
        for kind, markers in cls._MARKERS:
            if any(marker in text for marker in markers):
                return kind
        return cls.UNKNOWN

    @classmethod
    def from_integrity_error(cls, error: IntegrityError) -> "ConstraintViolation":
        """Build a ConstraintViolation from the driver error wrapped by SQLAlchemy"""
        original = str(error.orig) if error.orig is not None else str(error)
        kind = cls.classify(original)
        return cls(
            f"Constraint violation ({kind}): {original}",
            kind=kind,
            details={"statement": error.statement},
        )


class EntityNotFoundError(ShopDbError):
    """An update or delete referenced an identity that is not persisted"""

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            message=f"{entity_type} with id '{entity_id}' not found",
            code="ENTITY_NOT_FOUND",
            details={"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class ConnectivityError(ShopDbError):
    """The store could not be reached"""


class SchemaError(ShopDbError):
    """Schema creation or migration failed"""


class ScriptExecutionError(ShopDbError):
    """A database object script failed for a reason other than 'already exists'"""

    def __init__(self, script: str, batch: int, reason: str):
        self.script = script
        self.batch = batch
        super().__init__(
            message=f"Script '{script}' failed at batch {batch}: {reason}",
            code="SCRIPT_EXECUTION_FAILED",
            details={"script": script, "batch": batch},
        )


class DatabaseObjectUnavailableError(ShopDbError):
    """The named view, function or procedure does not exist for this dialect"""


class UserInputError(ShopDbError):
    """Invalid menu choice or malformed field entered at the console"""
