"""
Error taxonomy for the ledger services.

Every service raises one of these; the API layer maps them to HTTP statuses.
Store failures coming out of SQLAlchemy (or any provider that tags its errors
with a ``code`` attribute) are translated with ``translate_store_error``.
"""
import logging
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PERMISSION_CODES = {"permission-denied", "42501"}
INDEX_CODES = {"failed-precondition"}


class LedgerError(Exception):
    """Base class for all ledger errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Caller-supplied data is invalid. Nothing was written."""


class PermissionDeniedError(LedgerError):
    """The store or a role check rejected the caller."""


class IndexRequiredError(LedgerError):
    """A read needs a composite index that does not exist yet."""


class InvalidStateError(LedgerError):
    """A state transition was attempted from a state that does not allow it."""


class NotFoundError(LedgerError):
    """The referenced record does not exist."""


class UnexpectedError(LedgerError):
    """Anything else: network failure, malformed data."""


def _error_code(exc: Exception):
    code = getattr(exc, "code", None)
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        code = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "code", None) or code
    return code


def translate_store_error(exc: Exception, operation: str = "store operation") -> LedgerError:
    """Map a store exception onto the ledger taxonomy."""
    if isinstance(exc, LedgerError):
        return exc

    code = _error_code(exc)
    text = str(exc).lower()

    if code in PERMISSION_CODES or "permission denied" in text or "readonly database" in text:
        return PermissionDeniedError(
            f"Permission denied during {operation}. Check the access rules for this account."
        )
    if code in INDEX_CODES or "requires an index" in text or "no such index" in text:
        return IndexRequiredError(
            f"{operation} needs a database index that does not exist yet. Create the index and try again."
        )
    return UnexpectedError(f"Unexpected error during {operation}: {exc}")


def commit_batch(db: Session, operation: str) -> None:
    """Commit the session as one batch, rolling back and translating on failure."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Batch commit failed for {operation}: {e}")
        raise translate_store_error(e, operation) from e
