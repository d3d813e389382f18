# src/llmsession/sessions/recovery.py
"""
Session Recovery Orchestrator.

Implements ``resume``: the load → repair → authenticate → persist
pipeline, with a fallback cascade through backup snapshots when the
primary record cannot be loaded.

State machine::

    LOADING ──ok──▶ REPAIRING ─▶ AUTHENTICATING ─▶ PERSISTING ─▶ DONE
       │                ▲               │
       │ NotFound /     │ ok            │ CredentialRefreshError
       │ IOFailure      │               ▼
       └──▶ RECOVERING_FROM_BACKUP(k) ─ FAILED ◀── backups exhausted
              │ failure
              └──▶ RECOVERING_FROM_BACKUP(k+1)

Rules:

- Only load failures cascade to backups. A credential refresh failure
  terminates immediately, since a backup cannot fix an expired credential.
- A snapshot failure while persisting is swallowed by the backup manager.
  A write failure does not cascade either: the in-memory session is still
  returned, and the failure is logged and recorded on the report.
- Intermediate backup attempts are logged, never surfaced; the caller
  sees either a usable Session or a single :class:`SessionResumeError`.
- An invalid session id fails immediately with a :class:`SessionResumeError`
  whose ``cause`` is the ``ValueError`` from id validation.

Example::

    recovery = SessionRecovery(storage, backups, validator, refresher, session_manager)
    session = await recovery.resume("session-1700000000000-abc123xyz")
    print(recovery.last_report.source)   # "primary" or a backup file name
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..exceptions import (BackupError, CredentialRefreshError,
                          SessionNotFoundError, SessionResumeError,
                          SessionStorageError)
from ..logging_config import log_display
from ..models import Session
from ..storage.backups import BackupManager
from ..storage.base_session import BaseSessionStorage, validate_session_id
from .credentials import CredentialRefresher
from .manager import SessionManager
from .validator import SessionValidator

logger = logging.getLogger(__name__)


class ResumeState(str, Enum):
    """States of one ``resume`` run."""

    LOADING = "loading"
    REPAIRING = "repairing"
    AUTHENTICATING = "authenticating"
    PERSISTING = "persisting"
    RECOVERING_FROM_BACKUP = "recovering_from_backup"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ResumeReport:
    """Outcome of the most recent ``resume`` call.

    Attributes:
        session_id: The requested session.
        state: Final (or current) state of the run.
        source: ``"primary"`` or the file name of the backup that was used.
        repaired: Whether any structural repair was applied.
        credential_refreshed: Whether the credential was renewed.
        persisted: Whether the resumed session was written back.
        backups_tried: Backup file names attempted, newest first.
        load_error: Why the primary record could not be used, if it couldn't.
        persist_error: Why writing back failed, if it did.
    """

    session_id: str
    state: ResumeState = ResumeState.LOADING
    source: str = "primary"
    repaired: bool = False
    credential_refreshed: bool = False
    persisted: bool = False
    backups_tried: List[str] = field(default_factory=list)
    load_error: Optional[str] = None
    persist_error: Optional[str] = None


class SessionRecovery:
    """Sequences loading, repair, credential refresh and persistence of a session.

    Args:
        storage: The durable store holding primary records.
        backups: The BackupManager used for the fallback cascade.
        validator: Repairs sessions after loading.
        refresher: Renews credentials near expiry.
        session_manager: Performs the snapshot-then-save write back.
    """

    def __init__(
        self,
        storage: BaseSessionStorage,
        backups: BackupManager,
        validator: SessionValidator,
        refresher: CredentialRefresher,
        session_manager: SessionManager,
    ) -> None:
        self._storage = storage
        self._backups = backups
        self._validator = validator
        self._refresher = refresher
        self._session_mgr = session_manager
        self._last_report: Optional[ResumeReport] = None

    @property
    def last_report(self) -> Optional[ResumeReport]:
        return self._last_report

    def _transition(self, report: ResumeReport, state: ResumeState, detail: str = "") -> None:
        logger.debug("Resume '%s': %s -> %s%s", report.session_id, report.state.value, state.value,
                     f" ({detail})" if detail else "")
        report.state = state

    async def resume(self, session_id: str) -> Session:
        """Resume a session, recovering from backups if the primary record is unusable.

        Returns:
            The repaired, authenticated Session.

        Raises:
            SessionResumeError: If no usable session could be produced; its
                ``cause`` is the original load failure, the
                :class:`CredentialRefreshError`, or the ``ValueError`` raised
                for an id that is not a valid session id.
        """
        report = ResumeReport(session_id=session_id)
        self._last_report = report
        try:
            validate_session_id(session_id)
        except ValueError as e:
            self._transition(report, ResumeState.FAILED)
            logger.error("Cannot resume session %r: %s", session_id, e)
            raise SessionResumeError(session_id, cause=e) from e
        logger.info("Attempting to resume session '%s'.", session_id)

        try:
            session = await self._storage.load(session_id)
            self._claim(session, session_id, report)
        except (SessionNotFoundError, SessionStorageError) as e:
            report.load_error = str(e)
            logger.error("Loading session '%s' failed: %s", session_id, e)
            session = await self._recover_from_backups(session_id, e, report)
        else:
            self._transition(report, ResumeState.REPAIRING)
            report.repaired = self._validator.repair(session) or report.repaired

        return await self._authenticate_and_persist(session, report)

    def _claim(self, session: Session, session_id: str, report: ResumeReport) -> None:
        """Bind a loaded record to the requested id, rejecting records of another session."""
        stored_id = session.metadata.session_id
        if not stored_id:
            session.metadata.session_id = session_id
            report.repaired = True
            logger.info("Session '%s' record had no id in its metadata; adopted the requested id.", session_id)
        elif stored_id != session_id:
            raise SessionStorageError(
                f"Record for '{session_id}' belongs to a different session ('{stored_id}')."
            )

    async def _recover_from_backups(
        self, session_id: str, original_error: Exception, report: ResumeReport
    ) -> Session:
        """Walk the backups newest-first until one loads and claims cleanly."""
        handles = await self._backups.list_backups(session_id)
        logger.info("Attempting recovery of session '%s' from %d backup(s).", session_id, len(handles))

        for k, handle in enumerate(handles):
            self._transition(report, ResumeState.RECOVERING_FROM_BACKUP, f"backup {k}: {handle.name}")
            report.backups_tried.append(handle.name)
            try:
                session = await self._backups.load(handle)
                self._claim(session, session_id, report)
            except (BackupError, SessionStorageError) as e:
                logger.warning("Backup %s for session '%s' is unusable: %s", handle.name, session_id, e)
                continue

            self._transition(report, ResumeState.REPAIRING)
            report.repaired = self._validator.repair(session) or report.repaired
            report.source = handle.name
            log_display(
                logger, logging.WARNING,
                "Session '%s' recovered from backup %s (%d messages).",
                session_id, handle.name, len(session.messages),
            )
            return session

        self._transition(report, ResumeState.FAILED)
        log_display(logger, logging.ERROR, "All recovery attempts for session '%s' failed.", session_id)
        raise SessionResumeError(session_id, cause=original_error) from original_error

    async def _authenticate_and_persist(self, session: Session, report: ResumeReport) -> Session:
        session_id = report.session_id

        self._transition(report, ResumeState.AUTHENTICATING)
        try:
            report.credential_refreshed = await self._refresher.ensure_valid(session)
        except CredentialRefreshError as e:
            self._transition(report, ResumeState.FAILED)
            logger.error("Cannot resume session '%s': %s", session_id, e)
            raise SessionResumeError(session_id, cause=e) from e

        self._transition(report, ResumeState.PERSISTING)
        session.metadata.is_active = True
        try:
            await self._session_mgr.save_session(session, force_snapshot=report.repaired)
            report.persisted = True
        except SessionStorageError as e:
            report.persist_error = str(e)
            log_display(logger, logging.ERROR,
                        "Session '%s' resumed but could not be persisted: %s", session_id, e)

        self._transition(report, ResumeState.DONE)
        logger.info("Session '%s' resumed from %s with %d messages.",
                    session_id, report.source, len(session.messages))
        return session


__all__ = [
    "ResumeReport",
    "ResumeState",
    "SessionRecovery",
]
