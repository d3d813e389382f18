# src/llmsession/sessions/validator.py
"""
Structural validation and repair of loaded sessions.

:meth:`SessionValidator.repair` brings a Session into compliance with the
structural invariants, in a fixed order:

1. the metadata carries a session id (a fresh one is generated only when
   it is entirely absent);
2. every entry carries that same session id;
3. every entry has a timestamp after the epoch; missing ones receive
   synthetic, strictly increasing timestamps ending at "now", preserving
   their relative order;
4. the schema version is populated;
5. ``total_messages`` equals the number of entries and
   ``last_updated >= created_at``.

Repair is deterministic, idempotent (a second pass changes nothing) and
never raises for any structural state: every invariant has a default.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ..config.recovery_config import RecoveryConfig
from ..models import EPOCH, Session, generate_session_id, utcnow

logger = logging.getLogger(__name__)

SYNTHETIC_TIMESTAMP_STEP = timedelta(milliseconds=1)


class SessionValidator:
    """Validates and repairs Session structure in place."""

    def __init__(self, config: RecoveryConfig):
        self._default_schema_version = config.default_schema_version

    def check(self, session: Session) -> List[str]:
        """
        Report invariant violations without modifying the session.

        Returns:
            Human-readable descriptions, empty if the session is compliant.
        """
        problems = []
        meta = session.metadata
        if not meta.session_id:
            problems.append("metadata has no session id")
        mismatched = sum(1 for m in session.messages if m.session_id != meta.session_id)
        if mismatched:
            problems.append(f"{mismatched} entries do not carry the session id")
        missing_ts = sum(1 for m in session.messages if m.timestamp is None or m.timestamp <= EPOCH)
        if missing_ts:
            problems.append(f"{missing_ts} entries have no valid timestamp")
        if not meta.schema_version:
            problems.append("schema version is missing")
        if meta.total_messages != len(session.messages):
            problems.append(f"total_messages is {meta.total_messages}, expected {len(session.messages)}")
        if meta.last_updated < meta.created_at:
            problems.append("last_updated precedes created_at")
        return problems

    def repair(self, session: Session, now: Optional[datetime] = None) -> bool:
        """
        Repair the session in place.

        Args:
            session: The session to normalise.
            now: Reference instant for synthetic timestamps; defaults to the
                current UTC time.

        Returns:
            True if any repair was applied.
        """
        now = now or utcnow()
        meta = session.metadata
        fixes: List[str] = []

        if not meta.session_id:
            meta.session_id = generate_session_id()
            fixes.append("generated session id")
        session_id = meta.session_id

        backfilled = 0
        for entry in session.messages:
            if entry.session_id != session_id:
                entry.session_id = session_id
                backfilled += 1
        if backfilled:
            fixes.append(f"backfilled session id on {backfilled} entries")

        missing = [entry for entry in session.messages if entry.timestamp is None or entry.timestamp <= EPOCH]
        for offset, entry in enumerate(reversed(missing)):
            entry.timestamp = now - offset * SYNTHETIC_TIMESTAMP_STEP
        if missing:
            fixes.append(f"synthesized {len(missing)} timestamps")

        if not meta.schema_version:
            meta.schema_version = self._default_schema_version
            fixes.append("defaulted schema version")

        if meta.total_messages != len(session.messages):
            meta.total_messages = len(session.messages)
            fixes.append("recomputed total_messages")

        if meta.last_updated < meta.created_at:
            fixes.append("advanced last_updated past created_at")

        if fixes:
            meta.last_updated = max(now, meta.created_at)
            logger.info("Session '%s' structure repaired: %s.", session_id, "; ".join(fixes))
        else:
            logger.debug("Session '%s' passed validation unchanged.", session_id)
        return bool(fixes)


__all__ = ["SessionValidator", "SYNTHETIC_TIMESTAMP_STEP"]
