from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol

import httpx

from redditstats.config import Settings
from redditstats.schemas.post import Post, parse_listing

logger = logging.getLogger(__name__)

# Refresh the bearer token a little before Reddit expires it.
_TOKEN_EXPIRY_MARGIN_SECONDS = 30.0


class RedditAPIError(Exception):
    pass


class RedditAuthError(RedditAPIError):
    pass


class RedditRateLimitError(RedditAPIError):
    def __init__(self, message: str, retry_after: float) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PostFetcher(Protocol):
    async def fetch_posts(self, subreddit: str) -> list[Post]: ...


def _header_float(headers: httpx.Headers, name: str) -> float | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class RedditClient:
    """Script-app Reddit client: password grant auth plus the ``new`` listing."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout_seconds)
        )
        self._clock = clock
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._ratelimit_remaining: float | None = None
        self._ratelimit_reset_at = 0.0

    async def __aenter__(self) -> RedditClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.settings.user_agent}

    async def authenticate(self) -> str:
        try:
            response = await self._client.post(
                self.settings.reddit_auth_url,
                auth=(self.settings.reddit_client_id or "", self.settings.reddit_client_secret or ""),
                data={
                    "grant_type": "password",
                    "username": self.settings.reddit_username or "",
                    "password": self.settings.reddit_password or "",
                },
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise RedditAuthError(f"Token request failed: {exc}") from exc

        if not response.is_success:
            raise RedditAuthError(f"Token request failed with HTTP {response.status_code}")

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise RedditAuthError(f"Token response missing access_token: {data.get('error', 'unknown')}")

        expires_in = float(data.get("expires_in", 3600))
        self._access_token = str(token)
        self._token_expires_at = self._clock() + max(expires_in - _TOKEN_EXPIRY_MARGIN_SECONDS, 0.0)
        logger.debug("Obtained Reddit access token (expires in %ss)", expires_in)
        return self._access_token

    async def _ensure_token(self) -> str:
        if self._access_token is None or self._clock() >= self._token_expires_at:
            return await self.authenticate()
        return self._access_token

    def _check_rate_limit(self) -> None:
        if self._ratelimit_remaining is None or self._ratelimit_remaining >= 1:
            return
        wait = self._ratelimit_reset_at - self._clock()
        if wait > 0:
            raise RedditRateLimitError(f"Rate limit exhausted, resets in {wait:.0f}s", retry_after=wait)
        self._ratelimit_remaining = None

    def _record_rate_limit(self, headers: httpx.Headers) -> None:
        remaining = _header_float(headers, "X-Ratelimit-Remaining")
        reset = _header_float(headers, "X-Ratelimit-Reset")
        if remaining is not None:
            self._ratelimit_remaining = remaining
        if reset is not None:
            self._ratelimit_reset_at = self._clock() + reset

    async def _get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        url = f"{self.settings.reddit_api_base_url.rstrip('/')}{path}"
        for attempt in (1, 2):
            token = await self._ensure_token()
            headers = {**self._headers, "Authorization": f"bearer {token}"}
            try:
                response = await self._client.get(url, params=params, headers=headers)
            except httpx.HTTPError as exc:
                raise RedditAPIError(f"Request to {path} failed: {exc}") from exc

            self._record_rate_limit(response.headers)
            if response.status_code != 401:
                return response
            if attempt == 1:
                logger.info("Reddit token rejected, re-authenticating")
                self._access_token = None

        raise RedditAuthError("Reddit rejected a freshly issued token")

    async def fetch_posts(self, subreddit: str) -> list[Post]:
        name = subreddit.strip()
        if not name:
            raise ValueError("subreddit must be a non-empty name")

        self._check_rate_limit()
        response = await self._get(f"/r/{name}/new", {"limit": self.settings.fetch_limit})

        if response.status_code == 429:
            retry_after = _header_float(response.headers, "Retry-After")
            if retry_after is None:
                retry_after = _header_float(response.headers, "X-Ratelimit-Reset") or 0.0
            self._ratelimit_remaining = 0.0
            self._ratelimit_reset_at = self._clock() + retry_after
            raise RedditRateLimitError("Reddit returned HTTP 429", retry_after=retry_after)
        if not response.is_success:
            raise RedditAPIError(f"Fetching r/{name} failed with HTTP {response.status_code}")

        posts = parse_listing(response.json())
        logger.debug("Fetched %s posts from r/%s", len(posts), name)
        return posts[: self.settings.fetch_limit]
