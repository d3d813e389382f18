# tests/conftest.py
"""
Shared fixtures for llmsession tests.

Every fixture keeps its files under pytest's ``tmp_path`` so tests never
touch the user's real session or backup directories.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

from llmsession.config import RecoveryConfig
from llmsession.models import Role, Session
from llmsession.sessions import SessionValidator
from llmsession.storage import BackupManager, JsonlSessionStorage


@pytest.fixture(autouse=True)
def clean_recovery_env(monkeypatch):
    """Keep LLMSESSION_RECOVERY__* variables from the host out of tests."""
    for key in list(os.environ):
        if key.startswith("LLMSESSION_RECOVERY__"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def recovery_config(tmp_path: Path) -> RecoveryConfig:
    return RecoveryConfig(
        session_dir=tmp_path / "sessions",
        backup_dir=tmp_path / "backups",
    )


@pytest.fixture
def storage(recovery_config: RecoveryConfig) -> JsonlSessionStorage:
    return JsonlSessionStorage(recovery_config)


@pytest.fixture
def backups(recovery_config: RecoveryConfig) -> BackupManager:
    return BackupManager(recovery_config)


@pytest.fixture
def validator(recovery_config: RecoveryConfig) -> SessionValidator:
    return SessionValidator(recovery_config)


@pytest.fixture
def sample_session() -> Session:
    """A well-formed session with three messages."""
    session = Session.create(
        session_id="session-1700000000000-abcdefghi",
        user_id="user-1",
        model_name="test-model",
        schema_version="1.0.0",
    )
    session.add_message("You are a helpful assistant.", Role.SYSTEM)
    session.add_message("Hello there", Role.USER)
    session.add_message("Hi! How can I help?", Role.ASSISTANT)
    return session


@pytest.fixture
def write_record(recovery_config: RecoveryConfig) -> Callable[[str, List[Any]], Path]:
    """
    Write a raw primary record. Dict items are JSON-encoded, strings are
    written verbatim (for malformed lines).
    """

    def _write(session_id: str, lines: List[Any]) -> Path:
        recovery_config.session_dir.mkdir(parents=True, exist_ok=True)
        path = recovery_config.session_dir / f"{session_id}{recovery_config.file_extension}"
        encoded = [line if isinstance(line, str) else json.dumps(line) for line in lines]
        path.write_text("\n".join(encoded) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def metadata_line() -> Callable[..., Dict[str, Any]]:
    """Build a metadata envelope in the on-disk camelCase shape."""

    def _build(session_id: str, **fields: Any) -> Dict[str, Any]:
        data = {
            "sessionId": session_id,
            "createdAt": "2024-01-01T00:00:00Z",
            "lastUpdated": "2024-01-01T00:05:00Z",
            "totalMessages": 0,
            "isActive": False,
            "version": "1.0.0",
        }
        data.update(fields)
        return {"type": "metadata", "data": data}

    return _build