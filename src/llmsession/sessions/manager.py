# src/llmsession/sessions/manager.py
"""
Session Management for LLMSession.

This module defines the SessionManager class, responsible for the save
path: every session written to the durable store is first normalised by
the validator, snapshotted by the backup manager, stamped, and only then
written atomically.
"""

import logging

from ..config.recovery_config import RecoveryConfig
from ..exceptions import LLMSessionError, SessionStorageError
from ..models import Session, utcnow
from ..storage.backups import BackupManager
from ..storage.base_session import BaseSessionStorage
from .validator import SessionValidator

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Coordinates validation, backup and persistence of sessions.
    """

    def __init__(
        self,
        storage: BaseSessionStorage,
        backups: BackupManager,
        validator: SessionValidator,
        config: RecoveryConfig,
    ):
        """
        Initializes the SessionManager.

        Args:
            storage: An initialized BaseSessionStorage backend.
            backups: The BackupManager used for pre-save snapshots.
            validator: The SessionValidator applied before every save.
            config: Recovery configuration (``enable_auto_backup``).
        """
        if not storage:
            logger.error("SessionManager initialized without a valid storage backend.")
            raise LLMSessionError("SessionManager requires a valid storage backend instance.")
        self._storage = storage
        self._backups = backups
        self._validator = validator
        self._auto_backup = config.enable_auto_backup
        logger.debug("SessionManager initialized with storage backend: %s", type(storage).__name__)

    async def save_session(self, session: Session, force_snapshot: bool = False) -> None:
        """
        Validate, snapshot and persist a session.

        ``last_updated`` advances (never moves backwards) and the integrity
        digest is recomputed. If the write fails, ``last_updated`` is
        restored so it only reflects successful saves.

        Args:
            session: The Session to save. It is repaired in place.
            force_snapshot: Snapshot even when automatic backups are disabled.

        Raises:
            SessionStorageError: If the record cannot be written.
            ValueError: If the session is missing or its id is not usable
                as a file name.
        """
        if session is None:
            raise ValueError("Cannot save a missing session.")

        repaired = self._validator.repair(session)
        meta = session.metadata
        previous_update = meta.last_updated
        meta.last_updated = max(utcnow(), previous_update, meta.created_at)
        session.integrity_digest = session.compute_digest()

        if self._auto_backup or force_snapshot or repaired:
            await self._backups.snapshot(session)

        try:
            await self._storage.save(session)
        except SessionStorageError as e:
            meta.last_updated = previous_update
            logger.error("Storage error while saving session '%s': %s", session.session_id, e)
            raise
        logger.info("Session '%s' saved (%d messages).", session.session_id, len(session.messages))
