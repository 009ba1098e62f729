# redditpulse/feed/reddit.py
"""Paginated reader for a subreddit's public ``new.json`` listing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from redditpulse.core.exceptions import FeedFetchError

logger = logging.getLogger("redditpulse.feed")

REDDIT_BASE = "https://www.reddit.com"
PAGE_SIZE = 100
FETCH_TIMEOUT = 30


def _thumbnail(value: Optional[str]) -> Optional[str]:
    # reddit uses "self", "default", "nsfw" as placeholders
    if value and value.startswith("http"):
        return value
    return None


@dataclass(frozen=True)
class FeedPost:
    reddit_id: str
    title: str
    selftext: str
    author: Optional[str]
    score: int
    num_comments: int
    permalink: str
    created_utc: float
    thumbnail: Optional[str] = None
    link_flair_text: Optional[str] = None

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created_utc, tz=timezone.utc)

    @property
    def url(self) -> str:
        return f"https://reddit.com{self.permalink}"

    @classmethod
    def from_listing(cls, data: Dict[str, Any]) -> "FeedPost":
        return cls(
            reddit_id=str(data["id"]),
            title=data.get("title") or "",
            selftext=data.get("selftext") or "",
            author=data.get("author"),
            score=int(data.get("score") or 0),
            num_comments=int(data.get("num_comments") or 0),
            permalink=data.get("permalink") or "",
            created_utc=float(data.get("created_utc") or 0),
            thumbnail=_thumbnail(data.get("thumbnail")),
            link_flair_text=data.get("link_flair_text") or None,
        )


@dataclass(frozen=True)
class FeedPage:
    posts: List[FeedPost]
    after: Optional[str]


class RedditFeed:
    def __init__(
        self,
        subreddit: str,
        user_agent: str,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = REDDIT_BASE,
    ) -> None:
        self.subreddit = subreddit
        self.base_url = base_url.rstrip("/")
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}
        self._client = client
        self._owns_client = False

    async def __aenter__(self) -> "RedditFeed":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=FETCH_TIMEOUT)
            self._owns_client = True
        return self

    async def __aexit__(self, *exc) -> None:
        if self._owns_client:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _get(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        return await self._client.get(url, params=params, headers=self._headers)

    async def fetch_page(self, after: Optional[str] = None, limit: int = PAGE_SIZE) -> FeedPage:
        """
        Fetch one listing page.
        - Transport errors are retried (3 attempts, exponential backoff).
        - Any non-2xx answer raises FeedFetchError without retrying.
        """
        if self._client is None:
            raise RuntimeError("RedditFeed must be used as an async context manager")

        url = f"{self.base_url}/r/{self.subreddit}/new.json"
        params: Dict[str, Any] = {"limit": limit}
        if after:
            params["after"] = after

        try:
            response = await self._get(url, params)
        except httpx.TransportError as e:
            raise FeedFetchError(f"Feed unreachable: {e}") from e

        if not response.is_success:
            logger.error("Reddit API returned %s: %s", response.status_code, response.text[:200])
            raise FeedFetchError(f"Reddit API error: {response.status_code}", response.status_code)

        try:
            payload = response.json()
            data = payload["data"]
            children = data["children"]
        except (ValueError, KeyError, TypeError) as e:
            raise FeedFetchError(f"Invalid Reddit API response: {response.text[:200]}") from e

        posts = [FeedPost.from_listing(child["data"]) for child in children if child.get("data")]
        return FeedPage(posts=posts, after=data.get("after"))
