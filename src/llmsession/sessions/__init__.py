"""
Session management module for the LLMSession library.

Components:
    - SessionValidator: structural validation and repair
    - CredentialRefresher: credential renewal ahead of expiry
    - SessionManager: validate → snapshot → atomic save
    - SessionRecovery: the ``resume`` orchestrator with backup fallback
    - SessionRegistry: listing and deletion
"""

from .credentials import CredentialRefresher, RefreshCallback
from .manager import SessionManager
from .recovery import ResumeReport, ResumeState, SessionRecovery
from .registry import SessionRegistry
from .validator import SessionValidator

__all__ = [
    "CredentialRefresher",
    "RefreshCallback",
    "ResumeReport",
    "ResumeState",
    "SessionManager",
    "SessionRecovery",
    "SessionRegistry",
    "SessionValidator",
]
