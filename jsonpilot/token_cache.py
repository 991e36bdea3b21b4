# jsonpilot/token_cache.py

import logging
import threading
import time
from typing import Callable, Optional

import httpx

from jsonpilot.config import DEFAULT_COPILOT_TOKEN_URL
from jsonpilot.errors import TokenFetchError

logger = logging.getLogger("jsonpilot_backend")


class CopilotTokenCache:
    """
    Process-wide cache for the short-lived Copilot API token.

    - The token is refreshed when it is within `buffer_seconds` of `expires_at`.
    - One instance is created at startup and handed to whoever needs a credential.
    """

    def __init__(
        self,
        oauth_token: Optional[str],
        *,
        token_url: str = DEFAULT_COPILOT_TOKEN_URL,
        buffer_seconds: float = 5 * 60,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.oauth_token = oauth_token
        self.token_url = token_url
        self.buffer_seconds = buffer_seconds
        self._http_client = http_client
        self._clock = clock
        self._lock = threading.Lock()
        self.token: Optional[str] = None
        self.expires_at: Optional[float] = None

    def _is_fresh_unlocked(self) -> bool:
        if not self.token or self.expires_at is None:
            return False
        return self.expires_at - self.buffer_seconds > self._clock()

    def _fetch(self) -> dict:
        if not self.oauth_token:
            raise TokenFetchError("GITHUB_OAUTH_TOKEN is not configured")
        headers = {"authorization": f"token {self.oauth_token}"}
        try:
            if self._http_client is not None:
                resp = self._http_client.get(self.token_url, headers=headers)
            else:
                resp = httpx.get(self.token_url, headers=headers, timeout=10.0)
        except httpx.HTTPError as e:
            raise TokenFetchError(f"Failed to fetch Copilot token: {e}") from e
        if resp.status_code >= 400:
            raise TokenFetchError(f"GitHub API error: {resp.status_code}")
        data = resp.json()
        if not data.get("token"):
            raise TokenFetchError("GitHub API response carried no token")
        return data

    def get_token(self) -> str:
        with self._lock:
            if self._is_fresh_unlocked():
                return self.token  # type: ignore[return-value]
            data = self._fetch()
            self.token = data["token"]
            expires_at = data.get("expires_at")
            self.expires_at = float(expires_at) if expires_at is not None else None
            logger.info(f"[copilot] refreshed token, expires_at={self.expires_at}")
            return self.token

    def invalidate(self) -> None:
        with self._lock:
            self.token = None
            self.expires_at = None
