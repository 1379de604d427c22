"""Marketo Asset REST API client with retry logic, rate limiting and token handling."""

import logging
import threading
import time
from typing import Any, Dict, List, Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from errors import ProviderBusinessError
from token_store import TokenStore

logger = logging.getLogger('marketo_template_exporter.client')

# Provider codes meaning the bearer token was rejected
TOKEN_ERROR_CODES = {'601', '602'}
# Provider code for "no data found"
NOT_FOUND_CODE = '702'

# Transport-level statuses worth another attempt. Marketo's own 606
# (rate limited) arrives as HTTP 200 and surfaces as a business error.
RETRY_STATUSES = (429, 500, 502, 503, 504)


def _build_session(
    session: Optional[requests.Session],
    verify_ssl: bool,
    max_retries: int,
    backoff_factor: float
) -> requests.Session:
    session = session or requests.Session()
    session.verify = verify_ssl
    if not verify_ssl:
        logger.warning("TLS certificate verification is off for the Marketo REST API")
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    retry = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False
    )
    for prefix in ("https://", "http://"):
        session.mount(prefix, HTTPAdapter(max_retries=retry))
    return session


class MarketoClient:
    """
    Thin wrapper over the Marketo Asset API endpoints used by the exporter.

    Every call borrows the bearer token from a shared TokenStore, so one
    client can be used from several worker threads.
    """

    def __init__(
        self,
        rest_url: str,
        token_store: TokenStore,
        verify_ssl: bool = True,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_factor: float = 2.0,
        rate_limit: float = 0.0,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            rest_url: REST base URL including ``/rest``
                (e.g., "https://123-ABC-456.mktorest.com/rest")
            token_store: Token owner shared by every request of this client
            verify_ssl: Verify the server certificate
            timeout: Seconds before a single HTTP attempt is abandoned
            max_retries: Attempts for 429/5xx responses before giving up
            retry_backoff_factor: Backoff factor passed to urllib3
            rate_limit: Minimum spacing between requests in seconds, 0 disables it
            session: Optional pre-built HTTP session
        """
        if not rest_url:
            raise ValueError("rest_url is required")

        self.rest_url = rest_url.rstrip('/')
        self.token_store = token_store
        self.timeout = timeout
        self.rate_limit = rate_limit
        self._next_request_at = 0.0
        self._rate_lock = threading.Lock()
        self.session = _build_session(session, verify_ssl, max_retries, retry_backoff_factor)

        logger.debug(f"Marketo client for {self.rest_url}: timeout {timeout}s, "
                     f"{max_retries} retries, spacing {rate_limit}s")

    def _wait_for_slot(self) -> None:
        """Block until ``rate_limit`` seconds have passed since the previous request."""
        if self.rate_limit <= 0:
            return

        with self._rate_lock:
            delay = self._next_request_at - time.monotonic()
            if delay > 0:
                logger.debug(f"Throttling request for {delay:.2f}s")
                time.sleep(delay)
            self._next_request_at = time.monotonic() + self.rate_limit

    def _make_request(self, method: str, endpoint: str, bearer: Optional[str] = None,
                      **kwargs) -> requests.Response:
        """
        Send one authenticated request to the REST API.

        Args:
            method: HTTP method
            endpoint: Path relative to the REST base URL (e.g., "/asset/v1/emails.json")
            bearer: Token to send, fetched from the token store when omitted
            **kwargs: Passed through to ``Session.request``

        Raises:
            AuthenticationError: If a token cannot be obtained
            requests.exceptions.HTTPError: For non-200 responses
            requests.exceptions.RequestException: For transport failures
        """
        headers = dict(kwargs.pop('headers', None) or {})
        headers['Authorization'] = f'Bearer {bearer or self.token_store.get_token()}'
        url = f"{self.rest_url}/{endpoint.lstrip('/')}"

        self._wait_for_slot()
        started = time.monotonic()
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.error(f"{method} {endpoint} timed out after {self.timeout}s")
            raise
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise

        logger.debug(f"{method} {endpoint} -> {response.status_code} "
                     f"in {time.monotonic() - started:.3f}s")

        if response.status_code != 200:
            logger.error(f"{method} {endpoint} returned HTTP {response.status_code}")
            logger.debug(f"Response body: {response.text[:500]}")
            response.raise_for_status()

        return response

    def _get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET an endpoint and unwrap the Marketo response envelope.

        A rejected token (601/602) is invalidated and the call repeated once.

        Raises:
            ProviderBusinessError: If the envelope reports ``success: false``
                or carries errors
            ValueError: If the body is not a JSON object
        """
        retried = False
        while True:
            bearer = self.token_store.get_token()
            response = self._make_request('GET', endpoint, bearer=bearer, params=params)

            try:
                data = response.json()
            except ValueError as e:
                raise ValueError(f"Invalid JSON response from {endpoint}") from e

            if not isinstance(data, dict):
                raise ValueError(f"Unexpected response shape from {endpoint}")

            errors = data.get('errors') or []
            if not errors and data.get('success', True) is not False:
                return data

            code, message = self._first_error(errors)
            if code in TOKEN_ERROR_CODES and not retried:
                logger.warning(f"Access token rejected ({code}), re-authenticating")
                self.token_store.invalidate(bearer)
                retried = True
                continue

            raise ProviderBusinessError(code, message, endpoint=endpoint)

    @staticmethod
    def _first_error(errors: List[Any]):
        if errors and isinstance(errors[0], dict):
            first = errors[0]
            code = first.get('code')
            return (str(code) if code is not None else None,
                    first.get('message') or 'Unknown error')
        return None, 'Request was not successful'

    def list_emails(
        self,
        max_return: int = 200,
        offset: Optional[int] = None,
        next_page_token: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Fetch one page of email assets.

        Args:
            max_return: Page size (Marketo maximum is 200)
            offset: Offset cursor, ignored when next_page_token is given
            next_page_token: Continuation token from the previous page

        Returns:
            Raw envelope with ``result`` and optional ``nextPageToken``/``moreResult``
        """
        params: Dict[str, Any] = {'maxReturn': max_return}
        if next_page_token:
            params['nextPageToken'] = next_page_token
        else:
            params['offset'] = offset or 0

        return self._get_json('/asset/v1/emails.json', params=params)

    def get_email(self, email_id: Any) -> Optional[Dict[str, Any]]:
        """
        Fetch one email asset by id.

        Returns:
            Email dictionary, or None if Marketo has no such email
        """
        try:
            data = self._get_json(f'/asset/v1/email/{email_id}.json')
        except ProviderBusinessError as e:
            if e.code == NOT_FOUND_CODE:
                return None
            raise

        results = data.get('result') or []
        return results[0] if results else None

    def get_email_full_content(self, email_id: Any) -> Optional[str]:
        """
        Fetch the fully rendered HTML of an email.

        Returns:
            HTML string, or None when the result carries no content
        """
        data = self._get_json(f'/asset/v1/email/{email_id}/fullContent.json')
        results = data.get('result') or []
        if not results or not isinstance(results[0], dict):
            return None
        content = results[0].get('content')
        return content if isinstance(content, str) and content else None

    def get_email_content(self, email_id: Any) -> List[Dict[str, Any]]:
        """
        Fetch the editable content sections of an email.

        Returns:
            List of raw section dictionaries
        """
        data = self._get_json(f'/asset/v1/email/{email_id}/content.json')
        results = data.get('result') or []
        return [section for section in results if isinstance(section, dict)]

    def get_folder(self, folder_id: Any, folder_type: str = 'Folder') -> Optional[Dict[str, Any]]:
        """
        Fetch one folder by id.

        Args:
            folder_id: Folder or program id
            folder_type: "Folder" or "Program"

        Returns:
            Folder dictionary, or None if not found
        """
        try:
            data = self._get_json(f'/asset/v1/folder/{folder_id}.json', params={'type': folder_type})
        except ProviderBusinessError as e:
            if e.code == NOT_FOUND_CODE:
                return None
            raise

        results = data.get('result') or []
        return results[0] if results else None

    def test_connection(self) -> bool:
        """
        Authenticate and fetch a single email to prove the credentials work.

        Raises:
            AuthenticationError, ProviderBusinessError, requests.RequestException
        """
        self.token_store.get_token()
        self.list_emails(max_return=1, offset=0)
        logger.info("Connection to Marketo verified")
        return True

    @classmethod
    def from_config(cls, config: Dict[str, Any], token_store: TokenStore) -> 'MarketoClient':
        """
        Initialize Marketo client from configuration dictionary.

        Args:
            config: Configuration dictionary with marketo and advanced settings
            token_store: Token owner for this client

        Returns:
            MarketoClient instance
        """
        marketo_config = config.get('marketo', {})
        advanced_config = config.get('advanced', {})

        return cls(
            rest_url=marketo_config.get('rest_url'),
            token_store=token_store,
            verify_ssl=marketo_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', 30),
            max_retries=advanced_config.get('max_retries', 3),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', 2.0),
            rate_limit=advanced_config.get('rate_limit', 0.0)
        )


__all__ = ['MarketoClient', 'TOKEN_ERROR_CODES', 'NOT_FOUND_CODE']
