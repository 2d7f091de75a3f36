"""
Token Cache for the controller's client-credentials access token.

A cached token is handed out until ``safety_margin_seconds`` before the
provider's expiry. When a refresh is needed exactly one caller performs the
exchange; concurrent callers wait on the same future and observe the same
token or the same error.
"""

import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..config import TokenConfig, get_config
from ..db.db_base import utc_now
from ..exceptions import TransientError
from ..schemas.controller_schemas import CachedToken, TokenGrant
from ..schemas.credential_schemas import Credential
from ..utils.logger import get_logger
from .credential_service import CredentialService

Authorizer = Callable[[Credential], TokenGrant]


class TokenCache:
    """
    Single-slot token cache with single-flight refresh.

    Never retries a failed exchange itself; the caller decides.
    """

    def __init__(
        self,
        credentials: CredentialService,
        authorizer: Authorizer,
        config: Optional[TokenConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.credentials = credentials
        self.authorizer = authorizer
        self.config = config or get_config().token
        self.clock = clock or utc_now
        self.logger = get_logger()

        self._lock = threading.Lock()
        self._token: Optional[CachedToken] = None
        self._inflight: Optional[Future] = None
        self._generation = 0

        credentials.add_reload_listener(self._on_credentials_changed)

    def get_valid_token(self) -> str:
        """
        Return a usable access token, refreshing it if needed.

        Raises:
            CredentialError: the controller rejected the credential
            TransientError: network failure or timeout during the exchange
        """
        with self._lock:
            token = self._token
            if token is not None and token.is_usable(self.clock(), self.config.safety_margin_seconds):
                return token.value

            future = self._inflight
            is_leader = future is None
            if is_leader:
                future = Future()
                self._inflight = future
                generation = self._generation

        if not is_leader:
            return self._wait_for(future).value

        try:
            token = self._exchange()
        except Exception as e:
            with self._lock:
                if self._inflight is future:
                    self._inflight = None
            future.set_exception(e)
            raise

        with self._lock:
            # An invalidate() during the exchange means this token must not be cached
            if self._generation == generation:
                self._token = token
            if self._inflight is future:
                self._inflight = None
        future.set_result(token)
        return token.value

    def invalidate(self) -> None:
        """Drop the cached token; the next call performs a fresh exchange."""
        with self._lock:
            had_token = self._token is not None
            self._token = None
            self._inflight = None
            self._generation += 1
        if had_token:
            self.logger.info("Access token invalidated")

    def force_refresh(self) -> str:
        """Invalidate and exchange again, returning the new token."""
        self.invalidate()
        return self.get_valid_token()

    def get_token_info(self) -> Dict[str, Any]:
        """Non-secret view of the cache state."""
        now = self.clock()
        with self._lock:
            token = self._token
            refreshing = self._inflight is not None
        if token is None:
            return {"has_token": False, "refresh_in_progress": refreshing}
        return {
            "has_token": True,
            "usable": token.is_usable(now, self.config.safety_margin_seconds),
            "obtained_at": token.obtained_at.isoformat(),
            "expires_at": token.expires_at.isoformat(),
            "seconds_remaining": token.seconds_remaining(now),
            "refresh_in_progress": refreshing,
        }

    def _exchange(self) -> CachedToken:
        credential = self.credentials.current()
        obtained_at = self.clock()
        grant = self.authorizer(credential)

        ttl = grant.expires_in
        if not ttl or ttl <= 0:
            ttl = self.config.default_ttl_seconds
        token = CachedToken.issued(grant.access_token, obtained_at, ttl)

        self.logger.info(
            "Access token obtained",
            extra={"expires_at": token.expires_at.isoformat(), "ttl_seconds": ttl},
        )
        return token

    def _wait_for(self, future: Future) -> CachedToken:
        try:
            return future.result(timeout=self.config.refresh_wait_timeout_seconds)
        except FutureTimeoutError as e:
            raise TransientError(
                "Timed out waiting for an in-flight token refresh",
                cause=e,
                timeout_seconds=self.config.refresh_wait_timeout_seconds,
            ) from e

    def _on_credentials_changed(self, credential: Optional[Credential]) -> None:
        self.invalidate()
