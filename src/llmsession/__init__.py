# src/llmsession/__init__.py
"""
LLMSession - Crash-safe persistence and recovery for conversational sessions.

Sessions are stored as JSON Lines records written atomically, snapshotted
into a bounded set of timestamped backups, repaired on load, and have
their credentials renewed before they are handed back to the caller.
"""

from importlib.metadata import PackageNotFoundError, version

from .api import LLMSession
from .config import RecoveryConfig, load_recovery_config
from .exceptions import (
    BackupError,
    ConfigError,
    CredentialRefreshError,
    LLMSessionError,
    SessionNotFoundError,
    SessionResumeError,
    SessionStorageError,
    StorageError,
)
from .logging_config import configure_logging, log_display
from .models import (
    BackupHandle,
    Role,
    Session,
    SessionEntry,
    SessionMetadata,
    generate_session_id,
)
from .sessions import (
    CredentialRefresher,
    ResumeReport,
    ResumeState,
    SessionManager,
    SessionRecovery,
    SessionRegistry,
    SessionValidator,
)
from .storage import BackupManager, BaseSessionStorage, JsonlSessionStorage

try:
    __version__ = version("llmsession")
except PackageNotFoundError:
    __version__ = "0.0.0"


__all__ = [
    # Facade
    "LLMSession",
    # Configuration
    "RecoveryConfig",
    "load_recovery_config",
    "configure_logging",
    "log_display",
    # Models
    "BackupHandle",
    "Role",
    "Session",
    "SessionEntry",
    "SessionMetadata",
    "generate_session_id",
    # Components
    "BackupManager",
    "BaseSessionStorage",
    "CredentialRefresher",
    "JsonlSessionStorage",
    "ResumeReport",
    "ResumeState",
    "SessionManager",
    "SessionRecovery",
    "SessionRegistry",
    "SessionValidator",
    # Exceptions
    "BackupError",
    "ConfigError",
    "CredentialRefreshError",
    "LLMSessionError",
    "SessionNotFoundError",
    "SessionResumeError",
    "SessionStorageError",
    "StorageError",
    # Version
    "__version__",
]
