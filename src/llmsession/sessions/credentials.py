# src/llmsession/sessions/credentials.py
"""
Credential refresh for resumed sessions.

A session may carry a ``credential_expiry`` watermark. Before a session is
handed back to a caller, :class:`CredentialRefresher` makes sure that the
credential will not expire within the configured lookahead window,
renewing it through an injected async callback otherwise. The callback is
an opaque external call (e.g. an OAuth token refresh) that returns the new
expiry instant; it is the only operation in the engine with network
latency and is therefore bounded by a timeout.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from ..config.recovery_config import RecoveryConfig
from ..exceptions import CredentialRefreshError
from ..logging_config import log_display
from ..models import Session, coerce_instant, format_instant, utcnow

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[Session], Awaitable[datetime]]


class CredentialRefresher:
    """
    Renews session credentials ahead of expiry.

    Args:
        config: Recovery configuration (lookahead window and timeout).
        refresh_callback: Async callable receiving the session and
            returning the new credential expiry. Without one, any session
            whose credential needs renewing fails with
            :class:`CredentialRefreshError`.
    """

    def __init__(self, config: RecoveryConfig, refresh_callback: Optional[RefreshCallback] = None):
        self._threshold = config.refresh_threshold
        self._timeout = config.refresh_timeout_seconds
        self._refresh_callback = refresh_callback

    def needs_refresh(self, session: Session, now: Optional[datetime] = None) -> bool:
        expiry = session.metadata.credential_expiry
        if expiry is None:
            return False
        return expiry - (now or utcnow()) < self._threshold

    async def ensure_valid(self, session: Session) -> bool:
        """
        Refresh the session credential if it expires within the lookahead window.

        Returns:
            True if a refresh was performed, False if none was needed.

        Raises:
            CredentialRefreshError: If the refresh call fails, times out,
                returns an unusable expiry, or no callback is configured.
        """
        session_id = session.session_id
        expiry = session.metadata.credential_expiry
        if expiry is None:
            logger.debug("Session '%s' has no credential expiry; skipping refresh.", session_id)
            return False

        now = utcnow()
        if not self.needs_refresh(session, now):
            return False

        if self._refresh_callback is None:
            raise CredentialRefreshError(session_id, "credential is near expiry and no refresh callback is configured.")

        logger.info(
            "Credential for session '%s' expires at %s (within %s); refreshing.",
            session_id, format_instant(expiry), self._threshold,
        )
        try:
            raw_expiry = await asyncio.wait_for(self._refresh_callback(session), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            log_display(logger, logging.ERROR, "Credential refresh for session '%s' timed out after %.1fs.",
                        session_id, self._timeout)
            raise CredentialRefreshError(session_id, f"refresh did not complete within {self._timeout}s.") from e
        except CredentialRefreshError:
            raise
        except Exception as e:
            log_display(logger, logging.ERROR, "Credential refresh for session '%s' failed: %s", session_id, e)
            raise CredentialRefreshError(session_id, str(e)) from e

        new_expiry = coerce_instant(raw_expiry)
        if new_expiry is None or new_expiry <= now:
            raise CredentialRefreshError(session_id, f"refresh returned an unusable expiry: {raw_expiry!r}.")
        if new_expiry - now < self._threshold:
            logger.warning("Refreshed credential for session '%s' still expires within the lookahead window.", session_id)

        session.metadata.credential_expiry = new_expiry
        logger.info("Credential for session '%s' refreshed; new expiry %s.", session_id, format_instant(new_expiry))
        return True


__all__ = ["CredentialRefresher", "RefreshCallback"]
