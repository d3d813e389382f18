# src/llmsession/storage/backups.py
"""
Backup snapshots of sessions with bounded retention.

A backup is an immutable JSON document holding a full Session (metadata,
messages and digest), stored as::

    <backup_dir>/<session_id>-<YYYYmmddTHHMMSSffffffZ>.json

The timestamp part is fixed-width, so for one session id sorting by file
name is the same as sorting by age. Snapshot creation is best-effort:
losing the ability to back up degrades service but never fails a save.
"""

import json
import logging
import pathlib
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import aiofiles
import aiofiles.os as aios
from pydantic import ValidationError

from ..config.recovery_config import RecoveryConfig
from ..exceptions import BackupError
from ..models import BackupHandle, Session, utcnow
from .base_session import validate_session_id

logger = logging.getLogger(__name__)

_BACKUP_TS_FORMAT = "%Y%m%dT%H%M%S%fZ"
_BACKUP_NAME_PATTERN = re.compile(r"^(?P<session_id>.+)-(?P<ts>\d{8}T\d{12}Z)\.json$")


class BackupManager:
    """
    Maintains a bounded, time-ordered set of full-session snapshots.

    Args:
        config: Recovery configuration; ``backup_dir`` and ``max_backups``
            are used.
    """

    def __init__(self, config: RecoveryConfig):
        self._backup_dir = config.backup_dir
        self._max_backups = config.max_backups
        logger.debug(f"BackupManager initialized (dir={self._backup_dir}, max_backups={self._max_backups}).")

    @property
    def backup_dir(self) -> pathlib.Path:
        return self._backup_dir

    async def initialize(self) -> None:
        try:
            await aios.makedirs(self._backup_dir, exist_ok=True)
        except OSError as e:
            # Degraded: snapshots will fail and be logged individually.
            logger.error(f"Failed to create backup directory {self._backup_dir}: {e}")

    def _backup_path(self, session_id: str, created_at: datetime) -> pathlib.Path:
        return self._backup_dir / f"{session_id}-{created_at.strftime(_BACKUP_TS_FORMAT)}.json"

    def _parse_backup_name(self, filename: str) -> Optional[BackupHandle]:
        match = _BACKUP_NAME_PATTERN.match(filename)
        if not match:
            return None
        try:
            created_at = datetime.strptime(match.group("ts"), _BACKUP_TS_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            return None
        return BackupHandle(
            session_id=match.group("session_id"),
            created_at=created_at,
            path=self._backup_dir / filename,
        )

    # -- Snapshot lifecycle --------------------------------------------------

    async def snapshot(self, session: Session) -> Optional[BackupHandle]:
        """
        Write a timestamped copy of the session, then prune old copies.

        Best-effort: any failure is logged and ``None`` is returned.
        """
        session_id = session.session_id
        try:
            validate_session_id(session_id)
            existing = await self.list_backups(session_id)
            created_at = utcnow()
            if existing and existing[0].created_at >= created_at:
                # Keep names unique and strictly increasing on coarse clocks.
                created_at = existing[0].created_at + timedelta(microseconds=1)
            backup_path = self._backup_path(session_id, created_at)
            tmp_path = self._backup_dir / f".{backup_path.name}.{uuid.uuid4().hex}.tmp"

            document = session.model_dump_json(indent=2)
            await aios.makedirs(self._backup_dir, exist_ok=True)
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
                await f.write(document)
            await aios.replace(tmp_path, backup_path)
        except Exception as e:
            logger.warning(f"Failed to create backup for session '{session_id}': {e}", exc_info=True)
            return None

        handle = BackupHandle(session_id=session_id, created_at=created_at, path=backup_path)
        logger.debug(f"Session backup created: session={session_id}, backup={handle.name}.")
        await self.prune(session_id)
        return handle

    async def list_backups(self, session_id: str) -> List[BackupHandle]:
        """
        List the backups of one session, most recent first.

        An unreadable backup directory is logged and reported as empty.
        """
        try:
            if not await aios.path.isdir(self._backup_dir):
                return []
            filenames = await aios.listdir(self._backup_dir)
        except OSError as e:
            logger.warning(f"Could not list backups in {self._backup_dir}: {e}")
            return []

        handles = []
        for filename in filenames:
            handle = self._parse_backup_name(filename)
            if handle is not None and handle.session_id == session_id:
                handles.append(handle)
        handles.sort(key=lambda h: h.name, reverse=True)
        return handles

    async def load(self, handle: BackupHandle) -> Session:
        """
        Read and validate one backup document.

        Raises:
            BackupError: If the backup cannot be read or is not a valid Session.
        """
        try:
            async with aiofiles.open(handle.path, mode="r", encoding="utf-8") as f:
                content = await f.read()
            return Session.model_validate(json.loads(content))
        except (OSError, UnicodeDecodeError) as e:
            raise BackupError(f"Failed to read backup {handle.name}: {e}") from e
        except json.JSONDecodeError as e:
            raise BackupError(f"Corrupted backup {handle.name}: {e}") from e
        except ValidationError as e:
            raise BackupError(f"Backup {handle.name} is not a valid session: {e}") from e

    async def prune(self, session_id: str) -> int:
        """
        Delete all but the newest ``max_backups`` backups of a session.

        Returns:
            The number of backups deleted.
        """
        handles = await self.list_backups(session_id)
        deleted = 0
        for handle in handles[self._max_backups:]:
            try:
                await aios.remove(handle.path)
                deleted += 1
                logger.debug(f"Deleted old backup {handle.name}.")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to delete old backup {handle.name}: {e}")
        return deleted

    async def delete_all(self, session_id: str) -> int:
        """
        Delete every backup of a session.

        Returns:
            The number of backups deleted.
        """
        deleted = 0
        for handle in await self.list_backups(session_id):
            try:
                await aios.remove(handle.path)
                deleted += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"Failed to delete backup {handle.name} for session '{session_id}': {e}")
        if deleted:
            logger.info(f"Deleted {deleted} backup(s) for session '{session_id}'.")
        return deleted


__all__ = ["BackupManager"]
