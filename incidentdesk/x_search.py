from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import requests

from ._util import is_non_empty_str, utc_iso
from .models import Author, Engagement, Media, Post

logger = logging.getLogger(__name__)

X_SEARCH_ENDPOINT = "https://api.twitter.com/2/tweets/search/recent"

_SEARCH_FIELDS = {
    "tweet.fields": "created_at,author_id,public_metrics,attachments,entities",
    "expansions": "author_id,attachments.media_keys",
    "media.fields": "type,url,preview_image_url",
    "user.fields": "username,name,verified,profile_image_url",
}

# Posts without any of these need a verified author or some engagement to be kept.
RELEVANT_KEYWORDS: tuple[str, ...] = (
    "shooting", "shots fired", "active shooter", "emergency", "police", "swat",
    "evacuate", "incident", "alert", "crime", "arrest", "suspect", "victim",
    "hospital", "ambulance", "fire", "explosion", "threat", "danger", "lockdown",
    "breaking", "officer", "respond", "scene", "investigation", "homicide",
    "stabbing", "assault", "robbery", "weapon", "gun", "violence",
)


class XApiError(RuntimeError):
    """Search API error with the HTTP status when there was one."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = int(status_code) if isinstance(status_code, int) else None


def clamp_max_results(n: int) -> int:
    # The recent-search endpoint accepts 10..100.
    return int(max(10, min(100, n)))


def load_bearer_token(*, home: Path, token_path: Path | None = None) -> str:
    env = os.environ.get("X_BEARER_TOKEN")
    if env and env.strip():
        return env.strip()
    if token_path is None:
        # Prefer an untracked local token file to avoid committing secrets.
        local = home / "secrets" / "x_bearer_token.local.txt"
        token_path = local if local.exists() else (home / "secrets" / "x_bearer_token.txt")
    if not token_path.exists():
        raise RuntimeError(f"Missing X API token. Set X_BEARER_TOKEN or create {token_path}.")
    token = token_path.read_text(encoding="utf-8").strip()
    if not token:
        raise RuntimeError(f"X API token file is empty: {token_path}")
    return token


def _error_message(resp: requests.Response) -> str:
    msg = f"X API Error: {resp.status_code}"
    text = resp.text or ""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        if data.get("error"):
            msg = str(data["error"])
        elif isinstance(data.get("errors"), list) and data["errors"]:
            msg = ", ".join(
                str(e.get("message") or e.get("detail") or "") for e in data["errors"] if isinstance(e, dict)
            )
    elif text:
        msg = text[:200]

    status = resp.status_code
    if status == 401:
        return f"X API authentication failed (401). {msg}. Check the API credentials."
    if status == 403:
        return f"X API access forbidden (403). {msg}. Check the API permissions."
    if status == 429:
        return f"X API rate limit exceeded (429). {msg}. Wait a few minutes and try again."
    if status == 500 or status >= 502:
        return f"X API server error ({status}). {msg}."
    return msg


def _map_media(m: dict[str, Any]) -> Media | None:
    url = m.get("url") or m.get("preview_image_url")
    if not is_non_empty_str(url):
        return None
    kind = m.get("type")
    if kind == "animated_gif":
        kind = "gif"
    elif kind not in ("photo", "video"):
        kind = "photo"
    preview = m.get("preview_image_url") or m.get("url")
    return Media(kind=kind, url=url, preview_url=preview if is_non_empty_str(preview) else None)


def _is_relevant(tweet: dict[str, Any], author: dict[str, Any] | None) -> bool:
    text = str(tweet.get("text") or "").lower()
    if any(k in text for k in RELEVANT_KEYWORDS):
        return True
    if isinstance(author, dict) and author.get("verified"):
        return True
    metrics = tweet.get("public_metrics") or {}
    if not isinstance(metrics, dict):
        return False
    return int(metrics.get("like_count") or 0) > 10 or int(metrics.get("retweet_count") or 0) > 5


def parse_search_response(data: Any) -> list[Post]:
    """Map a v2 recent-search response body into Post records.

    Posts without id/text and posts failing the incident-relevance filter are
    dropped; missing author/media/metrics are defaulted.
    """
    if not isinstance(data, dict):
        return []
    tweets = data.get("data") or []
    if not isinstance(tweets, list):
        logger.warning("X API returned non-list data: %s", type(tweets).__name__)
        return []

    includes = data.get("includes") or {}
    users: dict[str, dict[str, Any]] = {}
    media: dict[str, dict[str, Any]] = {}
    if isinstance(includes, dict):
        for u in includes.get("users") or []:
            if isinstance(u, dict) and u.get("id"):
                users[str(u["id"])] = u
        for m in includes.get("media") or []:
            if isinstance(m, dict) and m.get("media_key"):
                media[str(m["media_key"])] = m

    out: list[Post] = []
    for tweet in tweets:
        if not isinstance(tweet, dict) or not tweet.get("id") or not tweet.get("text"):
            continue
        user = users.get(str(tweet.get("author_id") or ""))
        if not _is_relevant(tweet, user):
            continue

        author = Author.from_dict(user) if user else Author()
        keys: list[str] = []
        for k in (tweet.get("attachments") or {}).get("media_keys") or []:
            if k not in keys:
                keys.append(k)
        for ent in (tweet.get("entities") or {}).get("media") or []:
            k = ent.get("media_key") if isinstance(ent, dict) else None
            if k and k not in keys:
                keys.append(k)
        items = [_map_media(media[k]) for k in keys if k in media]

        tid = str(tweet["id"])
        out.append(
            Post(
                id=tid,
                text=str(tweet.get("text") or ""),
                author=author,
                url=f"https://twitter.com/{author.username}/status/{tid}",
                timestamp=str(tweet.get("created_at") or utc_iso()),
                engagement=Engagement.from_dict(tweet.get("public_metrics")),
                media=tuple(m for m in items if m is not None),
            )
        )
    return out


class XSearchClient:
    """Thin recent-search client; one HTTP GET per query, no retry."""

    def __init__(
        self,
        *,
        bearer_token: str | None = None,
        endpoint: str | None = None,
        timeout_s: float = 20.0,
        session: requests.Session | None = None,
    ) -> None:
        self.endpoint = endpoint or os.environ.get("X_SEARCH_ENDPOINT") or X_SEARCH_ENDPOINT
        self.timeout_s = float(timeout_s)
        self._session = session or requests.Session()
        self._headers = {"Accept": "application/json"}
        if bearer_token:
            self._headers["Authorization"] = f"Bearer {bearer_token}"

    def search(self, query: str, max_results: int = 100) -> list[Post]:
        query = (query or "").strip()
        if not query:
            raise ValueError("query is required")
        params: dict[str, Any] = {"query": query, "max_results": clamp_max_results(max_results)}
        params.update(_SEARCH_FIELDS)

        try:
            resp = self._session.get(self.endpoint, headers=self._headers, params=params, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise XApiError(f"X API request failed: {e}") from e

        if resp.status_code != 200:
            raise XApiError(_error_message(resp), status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise XApiError("X API returned invalid JSON", status_code=resp.status_code) from e

        errors = data.get("errors") if isinstance(data, dict) else None
        if isinstance(errors, list) and errors:
            raise XApiError(
                "X API Error: " + ", ".join(str(e.get("message") or e) for e in errors if isinstance(e, dict)),
                status_code=resp.status_code,
            )
        return parse_search_response(data)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> XSearchClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def search_posts(
    query: str,
    max_results: int = 100,
    *,
    bearer_token: str | None = None,
    endpoint: str | None = None,
    timeout_s: float = 20.0,
) -> list[Post]:
    """One-shot search without keeping a session around."""
    with XSearchClient(bearer_token=bearer_token, endpoint=endpoint, timeout_s=timeout_s) as client:
        return client.search(query, max_results=max_results)
