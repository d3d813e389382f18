# src/llmsession/exceptions.py
"""
Custom exceptions for the LLMSession library.

This module defines the error taxonomy used by the session persistence and
recovery engine. The recovery orchestrator branches on the exception *class*
(never on message text) to decide whether a failure can be recovered from a
backup snapshot:

- ``SessionNotFoundError``: no primary record; recoverable via backups.
- ``SessionStorageError``: storage unreadable/unwritable/corrupt; recoverable
  via backups on read, fatal on write.
- ``CredentialRefreshError``: refreshing the session credential failed;
  never recoverable via backups.
- ``SessionResumeError``: terminal wrapper raised by ``resume`` once all
  recovery avenues are exhausted.
"""

from typing import Optional


class LLMSessionError(Exception):
    """Base class for all LLMSession specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in LLMSession."):
        super().__init__(message)

class ConfigError(LLMSessionError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class StorageError(LLMSessionError):
    """Base class for errors related to storage operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)

class SessionStorageError(StorageError):
    """Raised when a session record cannot be read, written or parsed."""
    def __init__(self, message: str = "Session storage error."):
        super().__init__(message)

class SessionNotFoundError(StorageError):
    """
    Raised when a specified session ID has no primary record in storage.
    Inherits from StorageError as it's a storage-related lookup failure.
    """
    def __init__(self, session_id: str, message: str = "Session not found."):
        self.session_id = session_id
        super().__init__(f"{message} Session ID: '{session_id}'")

class BackupError(StorageError):
    """Raised for errors specific to backup snapshot operations."""
    def __init__(self, message: str = "Backup error."):
        super().__init__(message)

class CredentialRefreshError(LLMSessionError):
    """
    Raised when a session credential could not be refreshed.

    Stale credentials are not a storage problem, so the recovery
    orchestrator never falls back to backups for this error.
    """
    def __init__(self, session_id: str = "Unknown", message: str = "Credential refresh failed."):
        self.session_id = session_id
        super().__init__(f"Credential refresh for session '{session_id}' failed: {message}")

class SessionResumeError(LLMSessionError):
    """
    Terminal error raised by ``resume`` when no usable session could be produced.

    Attributes:
        session_id: The session that could not be resumed.
        cause: The exception that triggered the terminal state (the original
            load failure, or the credential refresh failure).
    """
    def __init__(self, session_id: str, cause: Optional[BaseException] = None,
                 message: str = "Cannot resume session."):
        self.session_id = session_id
        self.cause = cause
        detail = f" Cause: {cause}" if cause is not None else ""
        super().__init__(f"{message} Session ID: '{session_id}'.{detail}")
