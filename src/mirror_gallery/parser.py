"""Map normalized API records into model objects.

Mappers are total: a missing or mistyped field falls back to a default
instead of raising. Timestamps accept ISO-8601 strings or integer epoch
seconds. When neither parses, post and comment timestamps fall back to
"now", so malformed posts surface first in publish order. Creator
timestamps fall back to epoch zero.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, NamedTuple

from .models import (
    Comment,
    Creator,
    CreatorIndexItem,
    CreatorSearchResult,
    DiscordChannel,
    DiscordServer,
    DownloadedFile,
    Post,
    PostFile,
    utcnow,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class Parsed(NamedTuple):
    """A parsed value plus whether the default had to be used."""

    value: Any
    defaulted: bool


def _from_epoch(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _parse_iso(value: str) -> datetime | None:
    text = value.strip()
    # fromisoformat accepts compact dates like "20240105"; digits are epochs
    if not text or text.lstrip("-").isdigit():
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    return None


def parse_timestamp(value: Any, default: datetime) -> Parsed:
    """ISO-8601 first, then integer epoch seconds, else ``default``."""
    if isinstance(value, str):
        iso = _parse_iso(value)
        if iso is not None:
            return Parsed(iso, False)
    seconds = _parse_int(value)
    if seconds is not None:
        try:
            return Parsed(_from_epoch(seconds), False)
        except (OverflowError, OSError, ValueError):
            pass
    return Parsed(default, True)


def parse_epoch_seconds(value: Any, default: int = 0) -> Parsed:
    """Like ``parse_timestamp`` but yields integer seconds."""
    if isinstance(value, str):
        iso = _parse_iso(value)
        if iso is not None:
            return Parsed(int(iso.timestamp()), False)
    seconds = _parse_int(value)
    if seconds is not None:
        return Parsed(seconds, False)
    return Parsed(default, True)


def parse_bool(value: Any) -> bool:
    """Coerce booleans sent as 0/1 or "true"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "true":
            return True
        number = _parse_int(text)
        return number is not None and number > 0
    return False


def _str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _int(value: Any, default: int = 0) -> int:
    number = _parse_int(value)
    return default if number is None else number


def parse_creator(raw: dict) -> Creator:
    return Creator(
        id=_str(raw.get("id")).strip(),
        service=_str(raw.get("service")),
        name=_str(raw.get("name")),
        indexed=parse_epoch_seconds(raw.get("indexed")).value,
        updated=parse_epoch_seconds(raw.get("updated")).value,
        favorited=parse_bool(raw.get("favorited")),
        avatar=_str(raw.get("avatar")),
        bio=_str(raw.get("bio")),
        fans=_parse_int(raw.get("fans")),
        followed=parse_bool(raw.get("followed")),
    )


def parse_post_file(raw: dict) -> PostFile:
    mime = raw.get("type") or raw.get("mime")
    return PostFile(
        id=_str(raw.get("id")),
        name=_str(raw.get("name")),
        path=_str(raw.get("path")),
        type=_optional_str(mime),
        size=_parse_int(raw.get("size")),
    )


def _post_files(value: Any) -> tuple[PostFile, ...]:
    # "file" is a single object on most endpoints and a list on some
    if isinstance(value, dict):
        return (parse_post_file(value),) if value else ()
    if isinstance(value, list):
        return tuple(parse_post_file(v) for v in value if isinstance(v, dict))
    return ()


def _shared_file(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return str(value)


def _embed_url(value: Any) -> str | None:
    if isinstance(value, dict):
        return _optional_str(value.get("url"))
    return None


def parse_post(raw: dict, clock: Clock = utcnow) -> Post:
    if isinstance(raw.get("post"), dict):
        raw = raw["post"]

    now = clock()
    published = parse_timestamp(raw.get("published"), now)

    title = _str(raw.get("title"))
    if not title:
        day = "" if published.defaulted else str(published.value.day)
        title = f"Post from {day}".rstrip()

    content = raw.get("content")
    if content is None:
        content = raw.get("substring")
    if content is None:
        content = raw.get("text")

    tags = raw.get("tags")
    if not isinstance(tags, list):
        tags = []

    return Post(
        id=_str(raw.get("id")),
        user=_str(raw.get("user")),
        service=_str(raw.get("service")),
        title=title,
        content=_str(content),
        embed_url=_embed_url(raw.get("embed")),
        shared_file=_shared_file(raw.get("shared_file")),
        added=parse_timestamp(raw.get("added"), now).value,
        published=published.value,
        edited=parse_timestamp(raw.get("edited"), now).value,
        attachments=_post_files(raw.get("attachments")),
        file=_post_files(raw.get("file")),
        tags=tuple(str(t) for t in tags),
        saved=parse_bool(raw.get("saved")),
    )


def parse_comment(raw: dict, clock: Clock = utcnow) -> Comment:
    return Comment(
        id=_str(raw.get("id")),
        username=_str(raw.get("commenter_name")) or "Anonymous",
        content=_str(raw.get("content")),
        timestamp=parse_timestamp(raw.get("published"), clock()).value,
    )


def parse_discord_server(raw: dict, clock: Clock = utcnow) -> DiscordServer:
    now = clock()
    return DiscordServer(
        id=_str(raw.get("id")),
        name=_str(raw.get("name")),
        indexed=parse_timestamp(raw.get("indexed"), now).value,
        updated=parse_timestamp(raw.get("updated"), now).value,
    )


def parse_discord_channel(raw: dict, server_id: str = "") -> DiscordChannel:
    return DiscordChannel(
        id=_str(raw.get("id")),
        server_id=_str(raw.get("server_id"), server_id),
        name=_str(raw.get("name")),
        parent_id=_optional_str(raw.get("parent_channel_id")),
        is_nsfw=parse_bool(raw.get("is_nsfw")),
        type=_int(raw.get("type"), 11),
        position=_int(raw.get("position")),
        post_count=_int(raw.get("post_count")),
        emoji=_optional_str(raw.get("icon_emoji")),
    )


def parse_search_result(raw: dict) -> CreatorSearchResult:
    return CreatorSearchResult(
        id=_str(raw.get("id")),
        name=_str(raw.get("name")),
        service=_str(raw.get("service")),
        avatar=_optional_str(raw.get("avatar")),
        fans=_parse_int(raw.get("fans")),
        favorited=_parse_int(raw.get("favorited")),
        indexed=_optional_str(raw.get("indexed")),
    )


def parse_downloaded_file(raw: dict) -> DownloadedFile:
    return DownloadedFile(
        id=_str(raw.get("id")),
        name=_str(raw.get("name")),
        post_id=_str(raw.get("postId")),
        creator_name=_str(raw.get("creatorName")),
        service=_str(raw.get("service")),
        file_path=_str(raw.get("filePath")),
        download_date=_int(raw.get("downloadDate")),
        file_size=_int(raw.get("fileSize")),
    )


def parse_index_line(line: str) -> CreatorIndexItem | None:
    """Parse one ``service,user_id,name`` line; the name may hold commas."""
    parts = line.split(",")
    if len(parts) < 3:
        return None
    return CreatorIndexItem(
        service=parts[0].strip(),
        user_id=parts[1].strip(),
        name=",".join(parts[2:]).strip(),
    )


def parse_index_record(raw: dict) -> CreatorIndexItem | None:
    """Map one creators.txt JSON record; rows without service or id are dropped."""
    service = _str(raw.get("service")).strip()
    user_id = _str(raw.get("id")).strip()
    if not service or not user_id:
        return None
    return CreatorIndexItem(service=service, user_id=user_id, name=_str(raw.get("name")).strip())


def _parse_many(records: Iterable[Any], mapper: Callable, kind: str) -> list:
    parsed = []
    for record in records:
        if not isinstance(record, dict):
            continue
        try:
            parsed.append(mapper(record))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping malformed %s %s: %s", kind, record.get("id", "?"), e)
    return parsed


def parse_creators(records: Iterable[Any]) -> list[Creator]:
    return _parse_many(records, parse_creator, "creator")


def parse_posts(records: Iterable[Any], clock: Clock = utcnow) -> list[Post]:
    return _parse_many(records, lambda r: parse_post(r, clock), "post")


def parse_comments(records: Iterable[Any], clock: Clock = utcnow) -> list[Comment]:
    return _parse_many(records, lambda r: parse_comment(r, clock), "comment")


def parse_discord_servers(
    records: Iterable[Any], clock: Clock = utcnow
) -> list[DiscordServer]:
    return _parse_many(records, lambda r: parse_discord_server(r, clock), "server")


def parse_discord_channels(
    records: Iterable[Any], server_id: str = ""
) -> list[DiscordChannel]:
    channels = _parse_many(
        records, lambda r: parse_discord_channel(r, server_id), "channel"
    )
    return sorted(channels, key=lambda c: c.position)
