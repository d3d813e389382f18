# src/llmsession/sessions/registry.py
"""
Session Registry: listing and deletion across the whole store.
"""

import logging
from typing import List

from ..exceptions import SessionStorageError, StorageError
from ..models import SessionMetadata
from ..storage.backups import BackupManager
from ..storage.base_session import BaseSessionStorage, validate_session_id

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Enumerates known sessions and removes them together with their backups."""

    def __init__(self, storage: BaseSessionStorage, backups: BackupManager):
        self._storage = storage
        self._backups = backups

    async def list_sessions(self) -> List[SessionMetadata]:
        """
        List the metadata of every stored session, most recently updated first.

        Sessions that fail to load are logged and skipped. If the store
        itself cannot be listed, an empty list is returned.
        """
        try:
            session_ids = await self._storage.list_ids()
        except SessionStorageError as e:
            logger.error("Failed to list sessions: %s", e)
            return []

        sessions: List[SessionMetadata] = []
        for session_id in sorted(session_ids):
            try:
                session = await self._storage.load(session_id)
            except (StorageError, ValueError) as e:
                logger.warning("Failed to load session metadata for '%s': %s. Skipping.", session_id, e)
                continue
            sessions.append(session.metadata)

        sessions.sort(key=lambda meta: meta.last_updated, reverse=True)
        logger.debug("Found %d sessions.", len(sessions))
        return sessions

    async def delete_session(self, session_id: str) -> bool:
        """
        Remove the primary record and all backups of a session.

        A failure to remove the primary record is logged and does not stop
        backup removal.

        Returns:
            True if the primary record existed and was removed.
        """
        validate_session_id(session_id)
        try:
            existed = await self._storage.delete(session_id)
        except SessionStorageError as e:
            logger.error("Failed to delete primary record of session '%s': %s", session_id, e)
            existed = False

        removed_backups = await self._backups.delete_all(session_id)
        logger.info(
            "Session '%s' deleted (primary existed: %s, backups removed: %d).",
            session_id, existed, removed_backups,
        )
        return existed


__all__ = ["SessionRegistry"]
