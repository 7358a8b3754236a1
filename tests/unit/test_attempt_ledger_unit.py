"""
Unit tests for AttemptLedgerService failure handling.
"""

import pytest

from src.core.database.service import DatabaseService
from src.core.exceptions import DatabaseError
from src.core.logging.logger import get_logger
from src.modules.progression import AttemptLedgerService, attempt_key
from src.modules.shared.exceptions import ValidationError


@pytest.fixture
def ledger(mock_database_service, defaults_config_manager, mock_event_bus):
    return AttemptLedgerService(
        mock_database_service,
        defaults_config_manager,
        mock_event_bus,
        get_logger("tests.attempt_ledger"),
    )


@pytest.mark.unit
class TestAttemptLedgerFailClosed:
    async def test_store_failure_reports_not_first(self, ledger, mock_database_service):
        # Arrange
        mock_database_service.get_session.side_effect = DatabaseError(
            "read", RuntimeError("connection refused")
        )

        # Act
        result = await ledger.is_first_attempt("u-1", "section_read", "s-1")

        # Assert
        assert result is False
        mock_database_service.get_transaction.assert_not_called()

    async def test_uninitialized_database_reports_not_first(
        self, defaults_config_manager, mock_event_bus
    ):
        # Arrange
        uninitialized = DatabaseService.from_url("sqlite+aiosqlite:///:memory:")
        ledger = AttemptLedgerService(
            uninitialized,
            defaults_config_manager,
            mock_event_bus,
            get_logger("tests.attempt_ledger"),
        )

        # Act
        result = await ledger.is_first_attempt("u-1", "section_read", "s-1")

        # Assert
        assert result is False

    async def test_unknown_source_rejected(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.is_first_attempt("u-1", "video_watch", "v-1")


@pytest.mark.unit
def test_attempt_key_format():
    assert attempt_key("module_quiz", "q-7") == "module_quiz_q-7"
