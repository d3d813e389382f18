"""
Storage module for the LLMSession library.

Components:
    - BaseSessionStorage: interface of the durable primary-record store
    - JsonlSessionStorage: JSON Lines implementation with atomic writes
    - BackupManager: timestamped snapshots with bounded retention
"""

from .backups import BackupManager
from .base_session import BaseSessionStorage, validate_session_id
from .jsonl_session import JsonlSessionStorage

__all__ = [
    "BaseSessionStorage",
    "JsonlSessionStorage",
    "BackupManager",
    "validate_session_id",
]
