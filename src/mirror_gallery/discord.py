"""Discord archive endpoints (``/v1/discord/...``).

These go through the same domain fallback as the rest of the API. The
Discord archive is frequently down for maintenance and answers 503 while
it is. When any domain answered 503 and none succeeded, the failure is
raised as ``DiscordUnavailableError`` so callers can show a
"try again later" message instead of a generic failure.
"""

import logging

from .client import AllDomainsFailedError, MirrorClient, ShapeMismatchError
from .models import ApiSource, DiscordChannel, DiscordServer, DiscordServerDetail, Post
from .parser import (
    parse_discord_channels,
    parse_discord_server,
    parse_discord_servers,
    parse_posts,
)
from .shapes import ShapeKind, parse_shape

logger = logging.getLogger(__name__)


class DiscordUnavailableError(AllDomainsFailedError):
    """The Discord archive answered 503 (temporarily unavailable)."""


class DiscordClient:
    def __init__(self, client: MirrorClient):
        self._client = client

    def _get(self, endpoint: str, source: ApiSource, params: dict | None = None):
        try:
            return self._client.fetch(endpoint, source, params=params).json()
        except AllDomainsFailedError as e:
            if any(f.status == 503 for f in e.failures):
                logger.warning("Discord archive unavailable (503): %s", endpoint)
                raise DiscordUnavailableError(e.endpoint, e.failures) from e
            raise

    def _get_list(
        self, endpoint: str, source: ApiSource, params: dict | None = None
    ) -> list[dict]:
        shape = parse_shape(self._get(endpoint, source, params))
        if shape.kind not in (ShapeKind.LIST, ShapeKind.ENVELOPE):
            raise ShapeMismatchError(f"Unexpected response shape from {endpoint}")
        return shape.records

    def get_servers(self, source: ApiSource = ApiSource.KEMONO) -> list[DiscordServer]:
        return parse_discord_servers(self._get_list("/v1/discord/server", source))

    def get_server(
        self, server_id: str, source: ApiSource = ApiSource.KEMONO
    ) -> DiscordServerDetail:
        """Server metadata plus its channel tree."""
        endpoint = f"/v1/discord/server/{server_id}"
        decoded = self._get(endpoint, source)
        if isinstance(decoded, list):
            # Some deployments answer with the bare channel list
            return DiscordServerDetail(
                server=parse_discord_server({"id": server_id}),
                channels=parse_discord_channels(decoded, server_id),
            )
        if not isinstance(decoded, dict):
            raise ShapeMismatchError(f"Unexpected response shape from {endpoint}")

        server_data = decoded.get("server") if isinstance(decoded.get("server"), dict) else decoded
        channels = decoded.get("channels")
        if not isinstance(channels, list):
            channels = []
        return DiscordServerDetail(
            server=parse_discord_server({"id": server_id, **server_data}),
            channels=parse_discord_channels(channels, server_id),
        )

    def lookup_channels(
        self, server_id: str, source: ApiSource = ApiSource.KEMONO
    ) -> list[DiscordChannel]:
        endpoint = f"/v1/discord/channel/lookup/{server_id}"
        return parse_discord_channels(self._get_list(endpoint, source), server_id)

    def load_channel_posts(
        self, channel_id: str, offset: int = 0, source: ApiSource = ApiSource.KEMONO
    ) -> list[Post]:
        endpoint = f"/v1/discord/channel/{channel_id}"
        records = self._get_list(endpoint, source, params={"offset": offset})
        posts = parse_posts(records)
        logger.debug("Loaded %d posts from channel %s", len(posts), channel_id)
        return posts
