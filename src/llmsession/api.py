# src/llmsession/api.py
"""
Core API Facade for the LLMSession library.

Wires the durable store, backup manager, validator, credential refresher,
save path, recovery orchestrator and registry together from one
:class:`RecoveryConfig`.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .config.recovery_config import RecoveryConfig, load_recovery_config
from .exceptions import ConfigError
from .models import Session, SessionMetadata
from .sessions.credentials import CredentialRefresher, RefreshCallback
from .sessions.manager import SessionManager
from .sessions.recovery import ResumeReport, SessionRecovery
from .sessions.registry import SessionRegistry
from .sessions.validator import SessionValidator
from .storage.backups import BackupManager
from .storage.jsonl_session import JsonlSessionStorage

logger = logging.getLogger(__name__)


class LLMSession:
    """
    Main class for persisting, recovering and managing sessions.

    Use ``await LLMSession.create(...)`` to obtain an initialized instance.

    Example::

        async with await LLMSession.create(refresh_callback=renew_token) as store:
            session = Session.create(user_id="u-1")
            session.add_message("hello", Role.USER)
            await store.save(session)
            resumed = await store.resume(session.session_id)
    """

    config: RecoveryConfig
    _storage: JsonlSessionStorage
    _backups: BackupManager
    _validator: SessionValidator
    _refresher: CredentialRefresher
    _session_manager: SessionManager
    _recovery: SessionRecovery
    _registry: SessionRegistry

    def __init__(self):
        """
        Private constructor. Use `LLMSession.create()` for initialization.
        """
        self._refresh_callback: Optional[RefreshCallback] = None

    @classmethod
    async def create(
        cls,
        config: Optional[RecoveryConfig] = None,
        config_file_path: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
        refresh_callback: Optional[RefreshCallback] = None,
    ) -> "LLMSession":
        """
        Asynchronously creates and initializes an LLMSession instance.

        Args:
            config: A ready RecoveryConfig. When omitted, configuration is
                loaded from ``config_file_path`` and the environment.
            config_file_path: TOML file whose ``[recovery]`` table is used.
            overrides: Recovery keys applied on top of everything else.
            refresh_callback: Async callable renewing a session credential
                and returning its new expiry.

        Raises:
            ConfigError: If the configuration cannot be loaded or is invalid.
        """
        instance = cls()
        instance._refresh_callback = refresh_callback
        if config is None:
            config = load_recovery_config(
                config_path=Path(config_file_path) if config_file_path else None,
                overrides=overrides,
            )
        elif overrides:
            config = _apply_changes(config, overrides)
        await instance._initialize_components(config)
        return instance

    async def _initialize_components(self, config: RecoveryConfig) -> None:
        """
        Initializes or re-initializes all components from a configuration.
        This method is used by both `create` and `update_config`.

        The new components are built and initialized before any of them
        replaces the current set, so a failure leaves the instance unchanged.
        """
        logger.info("Initializing LLMSession components from configuration...")
        storage = JsonlSessionStorage(config)
        await storage.initialize()
        backups = BackupManager(config)
        await backups.initialize()
        validator = SessionValidator(config)
        refresher = CredentialRefresher(config, self._refresh_callback)
        session_manager = SessionManager(storage, backups, validator, config)

        self.config = config
        self._storage = storage
        self._backups = backups
        self._validator = validator
        self._refresher = refresher
        self._session_manager = session_manager
        self._recovery = SessionRecovery(storage, backups, validator, refresher, session_manager)
        self._registry = SessionRegistry(storage, backups)
        logger.info("LLMSession components initialization complete.")

    async def save(self, session: Session) -> None:
        """Validate, snapshot and atomically persist a session."""
        await self._session_manager.save_session(session)

    async def resume(self, session_id: str) -> Session:
        """
        Load, repair, re-authenticate and persist a session, falling back to backups.

        Raises:
            SessionResumeError: If no usable session could be produced,
                including when ``session_id`` is not a valid session id.
        """
        return await self._recovery.resume(session_id)

    @property
    def last_resume_report(self) -> Optional[ResumeReport]:
        return self._recovery.last_report

    async def list_sessions(self) -> List[SessionMetadata]:
        return await self._registry.list_sessions()

    async def delete_session(self, session_id: str) -> bool:
        return await self._registry.delete_session(session_id)

    async def update_config(self, **changes: Any) -> RecoveryConfig:
        """
        Apply configuration changes and re-initialize all components.

        Raises:
            ConfigError: If a key is unknown or a value is invalid. The
                current configuration stays in effect.
            SessionStorageError: If the new storage cannot be initialized.
                The current configuration and components stay in effect.
        """
        new_config = _apply_changes(self.config, changes)
        old_storage = self._storage
        await self._initialize_components(new_config)
        await old_storage.close()
        logger.info(f"Session recovery configuration updated: {sorted(changes)}")
        return new_config

    async def close(self) -> None:
        """Releases storage resources."""
        logger.info("Closing LLMSession resources...")
        await self._storage.close()
        logger.info("LLMSession resources cleanup complete.")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _apply_changes(config: RecoveryConfig, changes: Dict[str, Any]) -> RecoveryConfig:
    unknown = set(changes) - set(RecoveryConfig.model_fields)
    if unknown:
        raise ConfigError(f"Unknown recovery configuration keys: {sorted(unknown)}")
    try:
        return RecoveryConfig(**{**config.model_dump(), **changes})
    except ValidationError as e:
        raise ConfigError(f"Invalid recovery configuration: {e}") from e
