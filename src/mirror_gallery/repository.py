"""Join remote mirror data with local favorites and saved posts.

Remote entities never carry authoritative ``favorited``/``saved`` flags;
both are overlaid here from the local store.
"""

import logging
import re

from .client import MirrorClient, MirrorError
from .discord import DiscordClient
from .models import (
    ApiSource,
    Comment,
    Creator,
    DiscordChannel,
    DiscordServer,
    DiscordServerDetail,
    Folder,
    Post,
)
from .parser import parse_comments
from .search import SearchClient
from .state import LocalStore

logger = logging.getLogger(__name__)

_NUMERIC_ID = re.compile(r"^\d+$")


class Repository:
    def __init__(
        self,
        client: MirrorClient,
        local: LocalStore,
        discord: DiscordClient | None = None,
        search: SearchClient | None = None,
    ):
        self.client = client
        self.local = local
        self.discord = discord or DiscordClient(client)
        self.search = search

    # ── Overlays ───────────────────────────────────────────────────────

    def _overlay_favorites(self, creators: list[Creator]) -> list[Creator]:
        favorites = {c.key for c in self.local.list_favorite_creators()}
        return [c.with_favorited(c.key in favorites) for c in creators]

    def _overlay_saved(self, posts: list[Post]) -> list[Post]:
        saved = self.local.saved_post_ids()
        return [p.with_saved(p.id in saved) for p in posts]

    # ── Creators ───────────────────────────────────────────────────────

    def list_creators(
        self, service: str | None = None, source: ApiSource = ApiSource.KEMONO
    ) -> list[Creator]:
        return self._overlay_favorites(self.client.get_creators(service, source))

    def get_creator(
        self, service: str, creator_id: str, source: ApiSource = ApiSource.KEMONO
    ) -> Creator:
        creator = self.client.get_creator(service, creator_id, source)
        return self._overlay_favorites([creator])[0]

    def get_creator_links(
        self, service: str, creator_id: str, source: ApiSource = ApiSource.KEMONO
    ) -> list[dict]:
        return self.client.get_creator_links(service, creator_id, source)

    def search_creators(
        self,
        query: str,
        source: ApiSource = ApiSource.KEMONO,
        service: str | None = None,
    ) -> list[Creator]:
        """Tiered creator search.

        A numeric query with a concrete service is tried as a direct profile
        lookup first. Otherwise, or when that fails, the creator list is
        filtered and returned as exact-id matches, then exact-name matches,
        then substring matches on id, name or service.
        """
        q = query.lower().strip()
        if not q:
            return []

        if _NUMERIC_ID.match(q) and service and service != "all":
            try:
                creator = self.client.get_creator(service, q, source)
                logger.info("Direct lookup found %s (%s)", creator.name, creator.id)
                return self._overlay_favorites([creator])
            except MirrorError as e:
                logger.info("Direct lookup for %s/%s failed, filtering list: %s", service, q, e)

        exact_id: list[Creator] = []
        exact_name: list[Creator] = []
        partial: list[Creator] = []
        for creator in self.client.get_creators(service, source):
            creator_id = creator.id.lower()
            name = creator.name.lower()
            if creator_id == q:
                exact_id.append(creator)
            elif name == q:
                exact_name.append(creator)
            elif q in creator_id or q in name or q in creator.service.lower():
                partial.append(creator)

        return self._overlay_favorites([*exact_id, *exact_name, *partial])

    def search_creators_by_name(
        self, query: str, source: ApiSource = ApiSource.KEMONO
    ) -> list[Creator]:
        if self.search is None:
            raise MirrorError("No search service configured")
        results = self.search.search_creators(query, source)
        return self._overlay_favorites([r.to_creator() for r in results])

    # ── Posts ──────────────────────────────────────────────────────────

    def list_creator_posts(
        self,
        service: str,
        creator_id: str,
        offset: int = 0,
        source: ApiSource = ApiSource.KEMONO,
    ) -> list[Post]:
        posts = self.client.get_creator_posts(service, creator_id, offset, source)
        return self._overlay_saved(posts)

    def get_post(
        self,
        service: str,
        creator_id: str,
        post_id: str,
        source: ApiSource = ApiSource.KEMONO,
    ) -> Post:
        post = self.client.get_post(service, creator_id, post_id, source)
        return self._overlay_saved([post])[0]

    def search_posts(
        self,
        query: str,
        offset: int = 0,
        limit: int = 50,
        source: ApiSource = ApiSource.KEMONO,
    ) -> list[Post]:
        return self._overlay_saved(self.client.search_posts(query, offset, limit, source))

    def get_posts_by_tags(
        self, tags: list[str], offset: int = 0, source: ApiSource = ApiSource.KEMONO
    ) -> list[Post]:
        return self.search_posts(" ".join(tags), offset=offset, source=source)

    def get_comments(
        self,
        post_id: str,
        service: str,
        creator_id: str,
        source: ApiSource = ApiSource.KEMONO,
    ) -> list[Comment]:
        """Best-effort: any failure yields an empty list.

        The returned comments have empty ``post_id``/``service``; attach them
        with ``Comment.with_context`` where needed.
        """
        try:
            records = self.client.get_comments(post_id, service, creator_id, source)
            return parse_comments(records)
        except (MirrorError, TypeError, ValueError) as e:
            logger.warning("Error fetching comments for %s: %s", post_id, e)
            return []

    # ── Discord ────────────────────────────────────────────────────────

    def list_discord_servers(self, source: ApiSource = ApiSource.KEMONO) -> list[DiscordServer]:
        return self.discord.get_servers(source)

    def get_discord_server(
        self, server_id: str, source: ApiSource = ApiSource.KEMONO
    ) -> DiscordServerDetail:
        return self.discord.get_server(server_id, source)

    def lookup_discord_channels(
        self, server_id: str, source: ApiSource = ApiSource.KEMONO
    ) -> list[DiscordChannel]:
        return self.discord.lookup_channels(server_id, source)

    def list_discord_channel_posts(
        self, channel_id: str, offset: int = 0, source: ApiSource = ApiSource.KEMONO
    ) -> list[Post]:
        posts = self.discord.load_channel_posts(channel_id, offset, source)
        return self._overlay_saved(posts)

    # ── Local collections ──────────────────────────────────────────────

    def list_favorite_creators(self) -> list[Creator]:
        return self.local.list_favorite_creators()

    def save_favorite_creator(self, creator: Creator) -> None:
        self.local.upsert_favorite_creator(creator)

    def remove_favorite_creator(self, creator_id: str, service: str | None = None) -> bool:
        return self.local.remove_favorite_creator(creator_id, service)

    def list_saved_posts(self, offset: int = 0, limit: int = 50) -> list[Post]:
        return [p.with_saved(True) for p in self.local.list_saved_posts(offset, limit)]

    def save_post(self, post: Post) -> None:
        self.local.save_post(post)

    def remove_saved_post(self, post_id: str) -> None:
        self.local.remove_saved_post(post_id)

    def list_folders(self) -> list[Folder]:
        return self.local.list_folders()

    def get_settings(self) -> dict:
        return self.local.get_settings()

    def save_settings(self, settings: dict) -> None:
        self.local.save_settings(settings)
