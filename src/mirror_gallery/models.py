"""Data models for creators, posts, comments, folders and Discord data."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .domains import DomainRegistry

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".webm")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiSource(str, Enum):
    """Which mirror family a remote call goes to."""

    KEMONO = "kemono"
    COOMER = "coomer"

    @classmethod
    def parse(cls, value: str | None) -> ApiSource:
        if value and value.strip().lower() == cls.COOMER.value:
            return cls.COOMER
        return cls.KEMONO


@dataclass(frozen=True)
class Creator:
    id: str
    service: str
    name: str
    indexed: int = 0  # epoch seconds
    updated: int = 0  # epoch seconds
    favorited: bool = False
    avatar: str = ""
    bio: str = ""
    fans: int | None = None
    followed: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.service, self.id)

    def with_favorited(self, favorited: bool) -> Creator:
        return replace(self, favorited=favorited)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service": self.service,
            "name": self.name,
            "indexed": self.indexed,
            "updated": self.updated,
            "favorited": self.favorited,
            "avatar": self.avatar,
            "bio": self.bio,
            "fans": self.fans,
            "followed": self.followed,
        }


@dataclass(frozen=True)
class PostFile:
    id: str
    name: str
    path: str  # relative to the media host
    type: str | None = None  # MIME type when the API sends one
    size: int | None = None

    @property
    def is_image(self) -> bool:
        if self.type and "image" in self.type:
            return True
        return self.name.lower().endswith(IMAGE_EXTENSIONS)

    @property
    def is_video(self) -> bool:
        if self.type and "video" in self.type:
            return True
        return self.name.lower().endswith(VIDEO_EXTENSIONS)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "type": self.type,
            "size": self.size,
        }


@dataclass(frozen=True)
class Post:
    id: str
    user: str  # creator id
    service: str
    title: str
    content: str
    added: datetime
    published: datetime
    edited: datetime
    embed_url: str | None = None
    shared_file: str = ""
    attachments: tuple[PostFile, ...] = ()
    file: tuple[PostFile, ...] = ()
    tags: tuple[str, ...] = ()
    saved: bool = False

    def with_saved(self, saved: bool) -> Post:
        return replace(self, saved=saved)

    @property
    def all_files(self) -> list[PostFile]:
        return [*self.attachments, *self.file]

    @property
    def has_image(self) -> bool:
        return any(f.is_image for f in self.all_files)

    @property
    def has_video(self) -> bool:
        return any(f.is_video for f in self.all_files)

    @property
    def first_image(self) -> PostFile | None:
        return next((f for f in self.all_files if f.is_image), None)

    @property
    def first_video(self) -> PostFile | None:
        return next((f for f in self.all_files if f.is_video), None)

    @property
    def media_count(self) -> int:
        return len(self.attachments) + len(self.file)

    @property
    def image_count(self) -> int:
        return sum(1 for f in self.all_files if f.is_image)

    @property
    def video_count(self) -> int:
        return sum(1 for f in self.all_files if f.is_video)

    def thumbnail_url(
        self, source: ApiSource, registry: DomainRegistry | None = None
    ) -> str | None:
        """Thumbnail for the first image, else the first file of any kind."""
        from .domains import DEFAULT_REGISTRY

        registry = registry or DEFAULT_REGISTRY
        target = self.first_image
        if target is None and self.all_files:
            target = self.all_files[0]
        if target is None:
            return None
        return registry.thumbnail_url(target.path, source)

    def media_urls(
        self, source: ApiSource, registry: DomainRegistry | None = None
    ) -> list[str]:
        from .domains import DEFAULT_REGISTRY

        registry = registry or DEFAULT_REGISTRY
        return [
            registry.media_url(f.path, source) for f in self.all_files if f.path
        ]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user": self.user,
            "service": self.service,
            "title": self.title,
            "content": self.content,
            "embed": {"url": self.embed_url} if self.embed_url else None,
            "shared_file": self.shared_file,
            "added": self.added.isoformat(),
            "published": self.published.isoformat(),
            "edited": self.edited.isoformat(),
            "attachments": [f.to_dict() for f in self.attachments],
            "file": [f.to_dict() for f in self.file],
            "tags": list(self.tags),
            "saved": self.saved,
        }


@dataclass(frozen=True)
class Comment:
    """A post comment.

    The comments endpoint does not echo back which post it belongs to, so
    ``post_id`` and ``service`` stay empty until the caller supplies them
    with :meth:`with_context`.
    """

    id: str
    username: str
    content: str
    timestamp: datetime
    avatar: str | None = None
    post_id: str = ""
    service: str = ""

    def with_context(self, post_id: str, service: str) -> Comment:
        return replace(self, post_id=post_id, service=service)


@dataclass(frozen=True)
class Folder:
    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    post_ids: tuple[str, ...] = ()

    @classmethod
    def create(cls, name: str, clock: Callable[[], datetime] = utcnow) -> Folder:
        now = clock()
        return cls(
            id=str(int(now.timestamp() * 1000)),
            name=name,
            created_at=now,
            updated_at=now,
        )

    @property
    def post_count(self) -> int:
        return len(self.post_ids)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "postIds": list(self.post_ids),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class DiscordServer:
    id: str
    name: str
    indexed: datetime
    updated: datetime


@dataclass(frozen=True)
class DiscordChannel:
    id: str
    server_id: str
    name: str
    parent_id: str | None = None
    is_nsfw: bool = False
    type: int = 11  # 0 text, 4 category, 11 forum, 12 thread
    position: int = 0
    post_count: int = 0
    emoji: str | None = None

    @property
    def is_category(self) -> bool:
        return self.type == 4

    @property
    def is_thread(self) -> bool:
        return self.type == 12

    @property
    def is_post_channel(self) -> bool:
        return self.type in (0, 11)

    @property
    def can_open(self) -> bool:
        return not self.is_category and self.post_count > 0

    @property
    def display_emoji(self) -> str:
        if self.emoji:
            return self.emoji
        if self.is_category:
            return "\U0001F4C1"
        if self.is_thread:
            return "\U0001F4AC"
        return "\U0001F4C4"


@dataclass(frozen=True)
class DiscordServerDetail:
    server: DiscordServer
    channels: list[DiscordChannel] = field(default_factory=list)

    @property
    def post_channels(self) -> list[DiscordChannel]:
        return [c for c in self.channels if c.is_post_channel]


@dataclass(frozen=True)
class CreatorSearchResult:
    """Row returned by the secondary name-search API."""

    id: str
    name: str
    service: str
    avatar: str | None = None
    fans: int | None = None
    favorited: int | None = None  # the API sends a count, not a flag
    indexed: str | None = None

    def to_creator(self) -> Creator:
        return Creator(
            id=self.id,
            service=self.service,
            name=self.name,
            indexed=0,
            updated=int(time.time()),
            favorited=(self.favorited or 0) > 0,
            avatar=self.avatar or "",
            fans=self.fans,
        )


@dataclass(frozen=True)
class CreatorIndexItem:
    service: str
    user_id: str
    name: str

    @property
    def name_key(self) -> str:
        return self.name.lower().strip()


@dataclass(frozen=True)
class DownloadedFile:
    """One media file written to disk, as kept in the downloads ledger."""

    id: str
    name: str
    post_id: str
    service: str
    file_path: str
    download_date: int  # epoch milliseconds
    file_size: int = 0
    creator_name: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "postId": self.post_id,
            "creatorName": self.creator_name,
            "service": self.service,
            "filePath": self.file_path,
            "downloadDate": self.download_date,
            "fileSize": self.file_size,
        }


def format_size(size: float) -> str:
    """Human-readable byte count: ``1.5 MB``."""
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
