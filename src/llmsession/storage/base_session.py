# src/llmsession/storage/base_session.py
"""
Abstract Base Class for Session Storage backends.

This module defines the interface that the durable session store must
adhere to within the LLMSession library, together with the session id
rules shared by every component that derives a file name from an id.
"""

import abc
import re
from typing import Set

from ..models import Session

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-]{0,199}$")


def validate_session_id(session_id: str) -> str:
    """
    Ensure a session id can be used verbatim as a file name component.

    Raises:
        ValueError: If the id is empty, too long, or contains path
            separators or other characters outside ``[A-Za-z0-9_.-]``.
    """
    if not isinstance(session_id, str) or not _SESSION_ID_PATTERN.match(session_id):
        raise ValueError(f"Invalid session id {session_id!r}: expected [A-Za-z0-9_.-], not starting with '.' or '-'.")
    return session_id


class BaseSessionStorage(abc.ABC):
    """
    Abstract Base Class for primary session record storage.

    Concrete implementations map a session id to a location and handle
    the specifics of (de)serializing the record.
    """

    @abc.abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the backend (e.g. create directories). Must be awaited
        before any other method is used.
        """
        pass

    @abc.abstractmethod
    async def load(self, session_id: str) -> Session:
        """
        Load the primary record of a session.

        Raises:
            SessionNotFoundError: If no primary record exists.
            SessionStorageError: If the record is unreadable or corrupt.
        """
        pass

    @abc.abstractmethod
    async def save(self, session: Session) -> None:
        """
        Write the full session atomically, replacing any previous record.

        Raises:
            SessionStorageError: If the record cannot be written.
        """
        pass

    @abc.abstractmethod
    async def exists(self, session_id: str) -> bool:
        pass

    @abc.abstractmethod
    async def list_ids(self) -> Set[str]:
        """
        Enumerate the ids of all sessions that have a primary record.
        """
        pass

    @abc.abstractmethod
    async def delete(self, session_id: str) -> bool:
        """
        Remove the primary record of a session.

        Returns:
            True if a record existed and was removed, False otherwise.
        """
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        """
        Clean up resources used by the storage backend.
        """
        pass
