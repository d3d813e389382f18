# tests/test_exceptions.py
"""
Tests for the llmsession.exceptions module.

Covers the class hierarchy the recovery orchestrator branches on, the
default messages, and the attributes carried by each error.
"""

import pytest

from llmsession.exceptions import (
    BackupError,
    ConfigError,
    CredentialRefreshError,
    LLMSessionError,
    SessionNotFoundError,
    SessionResumeError,
    SessionStorageError,
    StorageError,
)


class TestLLMSessionError:
    """Tests for the base LLMSessionError exception."""

    def test_default_message(self):
        """Test default error message."""
        error = LLMSessionError()
        assert "unspecified error" in str(error).lower()

    def test_custom_message(self):
        error = LLMSessionError("boom")
        assert str(error) == "boom"

    def test_is_exception(self):
        with pytest.raises(Exception):
            raise LLMSessionError()


class TestStorageErrors:
    """Tests for the storage error family."""

    @pytest.mark.parametrize("error_cls", [SessionStorageError, BackupError])
    def test_storage_subclasses(self, error_cls):
        """Storage failures share the StorageError base."""
        error = error_cls()
        assert isinstance(error, StorageError)
        assert isinstance(error, LLMSessionError)

    def test_session_not_found_carries_id(self):
        error = SessionNotFoundError("session-42")
        assert error.session_id == "session-42"
        assert "session-42" in str(error)
        assert isinstance(error, StorageError)

    def test_session_not_found_is_not_storage_io_error(self):
        """NotFound and IOFailure are distinct kinds."""
        assert not isinstance(SessionNotFoundError("x"), SessionStorageError)

    def test_config_error_is_not_storage(self):
        assert not isinstance(ConfigError(), StorageError)


class TestCredentialRefreshError:
    """Tests for CredentialRefreshError."""

    def test_default_session_id(self):
        error = CredentialRefreshError()
        assert error.session_id == "Unknown"

    def test_message_includes_session_and_reason(self):
        error = CredentialRefreshError("session-7", "token endpoint returned 500")
        assert "session-7" in str(error)
        assert "token endpoint returned 500" in str(error)

    def test_not_a_storage_error(self):
        """Credential failures must never be mistaken for storage failures."""
        assert not isinstance(CredentialRefreshError(), StorageError)


class TestSessionResumeError:
    """Tests for the terminal SessionResumeError."""

    def test_carries_cause(self):
        cause = SessionNotFoundError("session-1")
        error = SessionResumeError("session-1", cause=cause)
        assert error.session_id == "session-1"
        assert error.cause is cause
        assert "session-1" in str(error)

    def test_without_cause(self):
        error = SessionResumeError("session-1")
        assert error.cause is None
        assert "Cause" not in str(error)
