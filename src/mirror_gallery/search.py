"""Client for the third-party name-search API.

The mirrors themselves only search posts; finding a creator or Discord
server by name goes through a separate host:
    GET {base}/kemono?keyword=<q>
    GET {base}/coomer?keyword=<q>
    GET {base}/kemono/discord[?keyword=<q>]

Override the host with MIRROR_GALLERY_SEARCH_BASE.
"""

import logging
import os
from datetime import datetime, timezone

import httpx

from .headers import search_headers
from .models import ApiSource, CreatorSearchResult, DiscordServer
from .parser import parse_search_result, parse_timestamp
from .shapes import normalize_list

logger = logging.getLogger(__name__)

SEARCH_BASE_URL = os.environ.get(
    "MIRROR_GALLERY_SEARCH_BASE", "https://kemono-api.mbaharip.com"
)
SEARCH_TIMEOUT = 10.0
MAX_CREATOR_RESULTS = 10
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SearchError(RuntimeError):
    """The search API failed or answered with an error status."""


class SearchUnavailableError(SearchError):
    """The search API answered 503."""


class SearchClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = SEARCH_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or SEARCH_BASE_URL).rstrip("/")
        self._client = httpx.Client(
            headers=search_headers(),
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def _get(self, path: str, params: dict | None = None):
        url = f"{self.base_url}{path}"
        try:
            response = self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise SearchError(f"Search service unavailable: {e}") from e

        if response.status_code == 503:
            raise SearchUnavailableError(
                "Search service temporarily unavailable. Please try again later."
            )
        if not 200 <= response.status_code < 300:
            raise SearchError(f"Search failed: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise SearchError(f"Search returned invalid JSON: {e}") from e

    def search_creators(
        self, query: str, source: ApiSource = ApiSource.KEMONO
    ) -> list[CreatorSearchResult]:
        data = self._get(f"/{source.value}", params={"keyword": query})
        results = []
        for record in normalize_list(data)[:MAX_CREATOR_RESULTS]:
            try:
                results.append(parse_search_result(record))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed search result: %s", e)
        logger.info("Name search %r returned %d creators", query, len(results))
        return results

    def search_discord_servers(self, query: str | None = None) -> list[DiscordServer]:
        """Discord servers by name; popular servers when ``query`` is empty."""
        params = {"keyword": query} if query else None
        data = self._get("/kemono/discord", params=params)

        servers = []
        for record in normalize_list(data):
            if str(record.get("service", "")).lower() != "discord":
                continue
            servers.append(
                DiscordServer(
                    id=str(record.get("id") or ""),
                    name=str(record.get("name") or ""),
                    indexed=parse_timestamp(record.get("indexed"), EPOCH).value,
                    updated=parse_timestamp(record.get("updated"), EPOCH).value,
                )
            )
        return servers

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
