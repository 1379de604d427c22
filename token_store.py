"""Bearer token acquisition and caching for the Marketo REST API."""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

import requests

from errors import AuthenticationError
from models import Credential, Token

logger = logging.getLogger('marketo_template_exporter.auth')

DEFAULT_REFRESH_SKEW = 300


class Authenticator:
    """Exchanges client credentials for a bearer token."""

    def __init__(
        self,
        credential: Credential,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        verify_ssl: bool = True,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the authenticator.

        Args:
            credential: Client id, secret and identity endpoint
            session: Optional pre-built HTTP session
            timeout: HTTP request timeout in seconds
            verify_ssl: Whether to verify SSL certificates
            clock: Time source used to stamp issued tokens
        """
        self.credential = credential
        self.session = session or requests.Session()
        self.session.verify = verify_ssl
        self.timeout = timeout
        self.clock = clock

    def authenticate(self) -> Token:
        """
        Perform one client-credentials exchange.

        Returns:
            Freshly issued Token

        Raises:
            AuthenticationError: On network failure, non-2xx status or a
                response without ``access_token``/numeric ``expires_in``
        """
        params = {
            'grant_type': 'client_credentials',
            'client_id': self.credential.client_id,
            'client_secret': self.credential.client_secret
        }

        logger.debug(f"Requesting access token from {self.credential.identity_url}")

        try:
            response = self.session.get(
                self.credential.identity_url,
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Authentication request failed: {str(e)}") from e

        if not 200 <= response.status_code < 300:
            detail = self._error_description(response)
            message = f"Authentication failed with HTTP {response.status_code}"
            if detail:
                message += f": {detail}"
            raise AuthenticationError(message)

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError("Authentication response is not valid JSON") from e

        if not isinstance(data, dict) or not data.get('access_token'):
            detail = self._error_description(response)
            raise AuthenticationError(
                f"Authentication response missing access_token{': ' + detail if detail else ''}"
            )

        expires_in = data.get('expires_in')
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise AuthenticationError("Authentication response missing numeric expires_in")

        token = Token(
            bearer_value=data['access_token'],
            issued_at=self.clock(),
            ttl_seconds=float(expires_in)
        )
        logger.info(f"Obtained access token (expires in {int(expires_in)}s)")
        return token

    @staticmethod
    def _error_description(response: requests.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get('error_description') or body.get('error')
        return None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'Authenticator':
        """
        Initialize authenticator from configuration dictionary.

        Args:
            config: Configuration dictionary with marketo and advanced settings

        Returns:
            Authenticator instance
        """
        marketo_config = config.get('marketo', {})
        advanced_config = config.get('advanced', {})

        credential = Credential(
            client_id=marketo_config.get('client_id'),
            client_secret=marketo_config.get('client_secret'),
            identity_url=marketo_config.get('identity_url')
        )
        return cls(
            credential,
            timeout=advanced_config.get('request_timeout', 30),
            verify_ssl=marketo_config.get('verify_ssl', True)
        )


class TokenStore:
    """
    Owns the current bearer token for one export session.

    A token is handed out only while ``now < expires_at - refresh_skew``.
    Refresh is single-flight: concurrent callers that find the token stale
    queue on one lock and the first one through performs the exchange.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        refresh_skew: float = DEFAULT_REFRESH_SKEW,
        clock: Callable[[], float] = time.time
    ):
        self.authenticator = authenticator
        self.refresh_skew = refresh_skew
        self.clock = clock
        self._token: Optional[Token] = None
        self._lock = threading.Lock()
        # Completed refresh attempts, successful or not
        self._attempts = 0
        self._last_error: Optional[AuthenticationError] = None
        self.refresh_count = 0

    @property
    def token(self) -> Optional[Token]:
        return self._token

    def get_token(self) -> str:
        """
        Return a usable bearer value, refreshing it first when needed.

        Callers that queued behind a failed refresh get that same failure
        instead of starting another exchange.

        Raises:
            AuthenticationError: If the refresh fails
        """
        token = self._token
        if token is not None and token.is_usable(self.clock(), self.refresh_skew):
            return token.bearer_value

        attempts_seen = self._attempts
        with self._lock:
            # Another caller may have refreshed while we waited
            token = self._token
            if token is not None and token.is_usable(self.clock(), self.refresh_skew):
                return token.bearer_value
            if self._attempts != attempts_seen and self._last_error is not None:
                raise self._last_error

            logger.debug("Access token absent or stale, refreshing")
            try:
                token = self.authenticator.authenticate()
            except AuthenticationError as e:
                self._last_error = e
                raise
            finally:
                self._attempts += 1
            self._last_error = None
            self._token = token
            self.refresh_count += 1
            return token.bearer_value

    def invalidate(self, rejected: Optional[str] = None) -> bool:
        """
        Drop the cached token so the next call re-authenticates.

        Args:
            rejected: Bearer value the server refused. When given, the cache
                is cleared only if it still holds that value, so a token
                another thread already refreshed survives.

        Returns:
            True if the cached token was dropped
        """
        with self._lock:
            current = self._token
            if current is None:
                return False
            if rejected is not None and current.bearer_value != rejected:
                return False
            self._token = None
        logger.debug("Access token invalidated")
        return True

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'TokenStore':
        advanced_config = config.get('advanced', {})
        return cls(
            Authenticator.from_config(config),
            refresh_skew=advanced_config.get('token_refresh_skew', DEFAULT_REFRESH_SKEW)
        )


__all__ = ['Authenticator', 'TokenStore', 'DEFAULT_REFRESH_SKEW']
