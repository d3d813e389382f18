# src/llmsession/storage/jsonl_session.py
"""
JSON Lines file-based storage for Session objects.

Each session is stored as ``<session_dir>/<session_id>.jsonl``. The first
line is a metadata envelope::

    {"type": "metadata", "data": {...SessionMetadata...}, "digest": "..."}

and every following line is one JSON-encoded SessionEntry. Lines are
independently parseable, so a malformed or truncated line only loses
that one entry. Writes go to a temporary file in the same directory which
is then renamed over the target, so a reader always sees either the old
or the new record in full.

File operations are performed asynchronously with aiofiles.
"""

import json
import logging
import pathlib
import uuid
from typing import List, Optional, Set

import aiofiles
import aiofiles.os as aios
from pydantic import ValidationError

from ..config.recovery_config import RecoveryConfig
from ..exceptions import SessionNotFoundError, SessionStorageError
from ..models import Session, SessionEntry, SessionMetadata, utcnow
from .base_session import BaseSessionStorage, validate_session_id

logger = logging.getLogger(__name__)

METADATA_RECORD_TYPE = "metadata"


class JsonlSessionStorage(BaseSessionStorage):
    """
    Manages persistence of primary Session records in JSON Lines files.
    """
    _storage_dir: pathlib.Path
    _file_extension: str

    def __init__(self, config: RecoveryConfig):
        self._config = config
        self._storage_dir = config.session_dir
        self._file_extension = config.file_extension

    @property
    def storage_dir(self) -> pathlib.Path:
        return self._storage_dir

    async def initialize(self) -> None:
        """
        Create the session directory if it doesn't exist.

        Raises:
            SessionStorageError: If the directory cannot be created.
        """
        try:
            await aios.makedirs(self._storage_dir, exist_ok=True)
            logger.info(f"JSONL session storage initialized at: {self._storage_dir.resolve()}")
        except OSError as e:
            logger.error(f"Failed to create session storage directory {self._storage_dir}: {e}")
            raise SessionStorageError(f"Could not create session directory: {e}") from e

    def _get_session_path(self, session_id: str) -> pathlib.Path:
        """Constructs the file path for a given session ID."""
        return self._storage_dir / f"{validate_session_id(session_id)}{self._file_extension}"

    async def exists(self, session_id: str) -> bool:
        return await aios.path.isfile(self._get_session_path(session_id))

    async def load(self, session_id: str) -> Session:
        """
        Load a session from its JSON Lines record.

        Malformed message lines are skipped with a warning. A record with
        no metadata line gets default metadata. A record in which not a
        single line can be read is treated as corrupt.

        Raises:
            SessionNotFoundError: If the record does not exist.
            SessionStorageError: If the record is unreadable or corrupt.
        """
        session_file_path = self._get_session_path(session_id)
        try:
            async with aiofiles.open(session_file_path, mode="r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError as e:
            logger.debug(f"Session file not found for ID '{session_id}' at {session_file_path}")
            raise SessionNotFoundError(session_id) from e
        except UnicodeDecodeError as e:
            logger.error(f"Session file {session_file_path} is not valid UTF-8: {e}")
            raise SessionStorageError(f"Corrupted session file for '{session_id}': {e}") from e
        except OSError as e:
            logger.error(f"Error reading session file '{session_file_path}' for session '{session_id}': {e}")
            raise SessionStorageError(f"Failed to read session file for '{session_id}': {e}") from e

        session = self._parse_record(session_id, content)
        logger.debug(f"Session '{session_id}' loaded from {session_file_path} with {len(session.messages)} messages.")
        return session

    def _parse_record(self, session_id: str, content: str) -> Session:
        metadata: Optional[SessionMetadata] = None
        digest: Optional[str] = None
        messages: List[SessionEntry] = []
        readable_lines = 0

        for line_num, line in enumerate(content.splitlines(), 1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping malformed line {line_num} in session '{session_id}': {e}")
                continue
            if not isinstance(data, dict):
                logger.warning(f"Skipping non-object line {line_num} in session '{session_id}'.")
                continue

            if data.get("type") == METADATA_RECORD_TYPE:
                readable_lines += 1
                if metadata is not None:
                    logger.warning(f"Ignoring duplicate metadata line {line_num} in session '{session_id}'.")
                    continue
                try:
                    metadata = SessionMetadata.model_validate(data.get("data") or {})
                except ValidationError as e:
                    logger.warning(f"Invalid metadata in session '{session_id}', defaults will be generated: {e}")
                raw_digest = data.get("digest")
                digest = raw_digest if isinstance(raw_digest, str) else None
                continue

            try:
                messages.append(SessionEntry.model_validate(data))
                readable_lines += 1
            except ValidationError as e:
                logger.warning(f"Skipping invalid entry on line {line_num} in session '{session_id}': {e}")

        if readable_lines == 0:
            logger.error(f"Session file for '{session_id}' contains no readable lines.")
            raise SessionStorageError(f"Corrupted session file for '{session_id}': no readable lines.")

        if metadata is None:
            metadata = self._default_metadata(session_id, messages)
            logger.warning(f"Generated default metadata for session '{session_id}'.")

        session = Session(metadata=metadata, messages=messages, integrity_digest=digest)
        if digest and self._config.enable_checksum_validation and session.compute_digest() != digest:
            logger.warning(f"Integrity digest mismatch for session '{session_id}'; record may be corrupted.")
        return session

    def _default_metadata(self, session_id: str, messages: List[SessionEntry]) -> SessionMetadata:
        first_timestamp = next((m.timestamp for m in messages if m.timestamp is not None), None)
        now = utcnow()
        return SessionMetadata(
            session_id=session_id,
            created_at=min(first_timestamp, now) if first_timestamp else now,
            last_updated=now,
            total_messages=len(messages),
            is_active=False,
            schema_version=self._config.default_schema_version,
        )

    def serialize(self, session: Session) -> str:
        envelope = {
            "type": METADATA_RECORD_TYPE,
            "data": session.metadata.model_dump(mode="json"),
            "digest": session.integrity_digest,
        }
        lines = [json.dumps(envelope, ensure_ascii=False)]
        lines.extend(message.model_dump_json() for message in session.messages)
        return "\n".join(lines) + "\n"

    async def save(self, session: Session) -> None:
        """
        Atomically write a session to its JSON Lines record.

        Raises:
            SessionStorageError: If serialization or file I/O fails.
        """
        session_file_path = self._get_session_path(session.session_id)
        tmp_path = session_file_path.with_name(f".{session_file_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            content = self.serialize(session)
        except (TypeError, ValueError) as e:
            logger.error(f"Error serializing session '{session.session_id}': {e}")
            raise SessionStorageError(f"Failed to serialize session data for '{session.session_id}': {e}") from e

        try:
            await aios.makedirs(self._storage_dir, exist_ok=True)
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
                await f.write(content)
                await f.flush()
            await aios.replace(tmp_path, session_file_path)
            logger.debug(f"Session '{session.session_id}' with {len(session.messages)} messages saved to {session_file_path}")
        except OSError as e:
            logger.error(f"Error writing session '{session.session_id}' to file {session_file_path}: {e}")
            try:
                if await aios.path.exists(tmp_path):
                    await aios.remove(tmp_path)
            except OSError:
                logger.debug(f"Could not remove temporary file {tmp_path}")
            raise SessionStorageError(f"Failed to write session file for '{session.session_id}': {e}") from e

    async def list_ids(self) -> Set[str]:
        """
        Scan the session directory for primary records.

        Raises:
            SessionStorageError: If the directory cannot be listed.
        """
        try:
            if not await aios.path.isdir(self._storage_dir):
                logger.warning(f"Storage directory {self._storage_dir} does not exist or is not a directory.")
                return set()
            filenames = await aios.listdir(self._storage_dir)
        except OSError as e:
            logger.error(f"Error listing session files in {self._storage_dir}: {e}")
            raise SessionStorageError(f"Could not list sessions: {e}") from e

        ids = set()
        for filename in filenames:
            if filename.startswith(".") or not filename.endswith(self._file_extension):
                continue
            ids.add(filename[: -len(self._file_extension)])
        return ids

    async def delete(self, session_id: str) -> bool:
        """
        Delete the primary record of a session.

        Raises:
            SessionStorageError: If the file exists but cannot be removed.
        """
        session_file_path = self._get_session_path(session_id)
        try:
            await aios.remove(session_file_path)
        except FileNotFoundError:
            logger.warning(f"Attempted to delete non-existent session '{session_id}' at {session_file_path}")
            return False
        except OSError as e:
            logger.error(f"Error deleting session file {session_file_path} for session '{session_id}': {e}")
            raise SessionStorageError(f"Failed to delete session file for '{session_id}': {e}") from e
        logger.info(f"Session '{session_id}' deleted from {session_file_path}")
        return True

    async def close(self) -> None:
        logger.debug("JsonlSessionStorage closed (no specific action needed).")
