import pytest
from unittest.mock import Mock

from sqlalchemy.exc import IntegrityError, OperationalError

from spend_circle.services.errors import (
    IndexRequiredError, LedgerError, NotFoundError, PermissionDeniedError, UnexpectedError,
    commit_batch, translate_store_error
)


class ProviderError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


class PgError(Exception):
    pgcode = "42501"


@pytest.mark.unit
class TestTranslateStoreError:

    def test_provider_permission_code(self):
        error = translate_store_error(ProviderError("nope", "permission-denied"), "load debts")
        assert isinstance(error, PermissionDeniedError)
        assert "load debts" in error.message

    def test_provider_index_code(self):
        assert isinstance(translate_store_error(ProviderError("x", "failed-precondition")), IndexRequiredError)

    def test_postgres_insufficient_privilege(self):
        error = translate_store_error(OperationalError("UPDATE", {}, PgError("denied")))
        assert isinstance(error, PermissionDeniedError)

    def test_readonly_sqlite(self):
        error = translate_store_error(OperationalError("INSERT", {}, Exception("attempt to write a readonly database")))
        assert isinstance(error, PermissionDeniedError)

    def test_anything_else(self):
        assert isinstance(translate_store_error(RuntimeError("boom")), UnexpectedError)

    def test_ledger_errors_pass_through(self):
        original = NotFoundError("Debt not found")
        assert translate_store_error(original) is original
        assert isinstance(original, LedgerError)


@pytest.mark.unit
class TestCommitBatch:

    def test_rolls_back_and_translates(self):
        session = Mock()
        session.commit.side_effect = IntegrityError("INSERT", {}, Exception("constraint failed"))

        with pytest.raises(UnexpectedError) as exc_info:
            commit_batch(session, "record split expense")

        session.rollback.assert_called_once()
        assert isinstance(exc_info.value.__cause__, IntegrityError)

    def test_success(self):
        session = Mock()
        commit_batch(session, "anything")
        session.commit.assert_called_once()
        session.rollback.assert_not_called()
