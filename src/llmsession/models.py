# src/llmsession/models.py
"""
Core data models for the LLMSession library.

This module defines the Pydantic models used to represent a persisted
conversation session: the per-message ``SessionEntry``, the
``SessionMetadata`` header record and the ``Session`` aggregate, plus the
``BackupHandle`` describing one snapshot on disk.

The models are deliberately lenient on input. Records written by older
tools may lack a session id on individual entries, carry epoch-millisecond
timestamps, zero timestamps, or camelCase keys; all of these load
successfully and are normalised later by
:class:`~llmsession.sessions.validator.SessionValidator`.
"""

import hashlib
import json
import pathlib
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import (AliasChoices, BaseModel, ConfigDict, Field,
                      field_serializer, field_validator)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_SCHEMA_VERSION = "1.0.0"

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    """Generate a fresh session id of the form ``session-<epoch ms>-<9 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"session-{int(time.time() * 1000)}-{suffix}"


def format_instant(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')


def coerce_instant(v: Any) -> Optional[datetime]:
    """
    Convert a raw instant into a UTC-aware datetime.

    Accepts datetimes, ISO-8601 strings (with or without a trailing ``Z``)
    and numeric epoch milliseconds. Anything missing, unparseable, or not
    strictly after the Unix epoch yields ``None`` so callers can treat it
    as "needs repair" rather than as a hard validation failure.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        if v <= 0:
            return None
        try:
            parsed = datetime.fromtimestamp(v / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(v, str):
        text = v.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text[:-1] + '+00:00' if text.endswith('Z') else text)
        except ValueError:
            return None
    elif isinstance(v, datetime):
        parsed = v
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    else:
        parsed = parsed.astimezone(timezone.utc)
    if parsed <= EPOCH:
        return None
    return parsed


class Role(str, Enum):
    """
    Enumeration of possible roles in a conversation.
    These roles define the origin or type of a message.
    """
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def _missing_(cls, value: object): # type: ignore[misc] # Pydantic uses this signature
        """
        Handles case-insensitive matching and common aliases for roles.
        For example, "Agent" or "AGENT" will be mapped to Role.ASSISTANT.
        """
        if isinstance(value, str):
            lower_value = value.lower()
            if lower_value == "agent":
                return cls.ASSISTANT
            for member in cls:
                if member.value == lower_value:
                    return member
        return None # Let Pydantic handle the error for truly invalid values


class SessionEntry(BaseModel):
    """
    A single message within a persisted session.

    Attributes:
        timestamp: When the message was recorded (UTC). ``None`` means the
            stored value was missing or invalid and must be repaired.
        role: The role of the entity that produced the message.
        content: The textual content of the message.
        session_id: Identifier of the owning session. Frequently missing
            on malformed input; backfilled by the validator.
        metadata: Opaque auxiliary data carried through untouched.
    """
    model_config = ConfigDict(use_enum_values=True, validate_assignment=True, extra="allow")

    timestamp: Optional[datetime] = Field(default=None, description="Timestamp of the message (UTC).")
    role: Role = Field(validation_alias=AliasChoices("role", "type"), description="The role of the message sender.")
    content: str = Field(description="The textual content of the message.")
    session_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("session_id", "sessionId"),
                                      description="Identifier of the session this message belongs to.")
    metadata: Any = Field(default_factory=dict, description="Opaque auxiliary message metadata.")

    @field_validator('timestamp', mode='before')
    @classmethod
    def normalize_timestamp(cls, v: Any) -> Optional[datetime]:
        return coerce_instant(v)

    @field_validator('metadata', mode='before')
    @classmethod
    def default_metadata(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_serializer('timestamp', when_used='json')
    def serialize_timestamp(self, dt: Optional[datetime]) -> Optional[str]:
        return format_instant(dt) if dt is not None else None


class SessionMetadata(BaseModel):
    """
    Header record of a persisted session.

    ``total_messages`` is derived data: it must always equal the length of
    the owning session's message list after repair or save.
    """
    model_config = ConfigDict(validate_assignment=True, extra="allow")

    session_id: str = Field(default="", validation_alias=AliasChoices("session_id", "sessionId"))
    created_at: datetime = Field(default_factory=utcnow, validation_alias=AliasChoices("created_at", "createdAt"))
    last_updated: datetime = Field(default_factory=utcnow, validation_alias=AliasChoices("last_updated", "lastUpdated"))
    total_messages: int = Field(default=0, ge=0, validation_alias=AliasChoices("total_messages", "totalMessages"))
    is_active: bool = Field(default=False, validation_alias=AliasChoices("is_active", "isActive"))
    credential_expiry: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("credential_expiry", "credentialExpiry", "oauthTokenExpiry"))
    schema_version: Optional[str] = Field(default=None, validation_alias=AliasChoices("schema_version", "version"))
    user_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))
    model_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("model_name", "modelName"))

    @field_validator('session_id', mode='before')
    @classmethod
    def default_session_id(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator('created_at', 'last_updated', mode='before')
    @classmethod
    def ensure_utc_timestamps(cls, v: Any) -> datetime:
        return coerce_instant(v) or utcnow()

    @field_validator('credential_expiry', mode='before')
    @classmethod
    def normalize_expiry(cls, v: Any) -> Optional[datetime]:
        return coerce_instant(v)

    @field_serializer('created_at', 'last_updated', 'credential_expiry', when_used='json')
    def serialize_instants(self, dt: Optional[datetime]) -> Optional[str]:
        return format_instant(dt) if dt is not None else None


class Session(BaseModel):
    """
    The unit of persistence and recovery: metadata, ordered messages and an
    advisory integrity digest over the messages.
    """
    model_config = ConfigDict(validate_assignment=True)

    metadata: SessionMetadata = Field(default_factory=SessionMetadata)
    messages: List[SessionEntry] = Field(default_factory=list)
    integrity_digest: Optional[str] = Field(default=None, validation_alias=AliasChoices("integrity_digest", "checksum"))

    @classmethod
    def create(cls, session_id: Optional[str] = None, **metadata: Any) -> "Session":
        """Start a new, empty session with a fresh (or the given) id."""
        return cls(metadata=SessionMetadata(session_id=session_id or generate_session_id(), **metadata))

    @property
    def session_id(self) -> str:
        return self.metadata.session_id

    def add_message(self, content: str, role: Role, metadata: Any = None) -> SessionEntry:
        entry = SessionEntry(
            timestamp=utcnow(), role=role, content=content,
            session_id=self.metadata.session_id or None, metadata={} if metadata is None else metadata,
        )
        self.messages.append(entry)
        self.metadata.total_messages = len(self.messages)
        return entry

    def compute_digest(self) -> str:
        """
        SHA-256 over the canonical JSON of the message list.

        Unkeyed, so it only detects accidental corruption; it is not a
        tamper-proofing control.
        """
        canonical = json.dumps(
            [m.model_dump(mode="json") for m in self.messages],
            sort_keys=True, separators=(",", ":"), ensure_ascii=False,
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class BackupHandle:
    """A point-in-time snapshot file of one session."""
    session_id: str
    created_at: datetime
    path: pathlib.Path

    @property
    def name(self) -> str:
        return self.path.name
