"""Local favorites, saved posts, folders, settings and downloads.

Each collection is one JSON document under a fixed key, stored as
``<state_dir>/<key>.json``:
    favorite_creators.json  [ {creator}, ... ]
    saved_posts.json        [ {post}, ... ]       most recently saved first
    saved_folders.json      [ {folder}, ... ]
    app_settings.json       { "theme_mode": "system", ... }
    downloaded_files.json   [ {download}, ... ]   most recent first

Missing or corrupt files read as empty. Writes replace the file
atomically, and every read-modify-write holds a per-key lock.
"""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterator

from .models import Creator, DownloadedFile, Folder, Post, utcnow
from .parser import parse_creator, parse_downloaded_file, parse_post, parse_timestamp

logger = logging.getLogger(__name__)

FAVORITE_CREATORS_KEY = "favorite_creators"
SAVED_POSTS_KEY = "saved_posts"
FOLDERS_KEY = "saved_folders"
SETTINGS_KEY = "app_settings"
DOWNLOADS_KEY = "downloaded_files"

DEFAULT_SETTINGS = {
    "theme_mode": "system",
    "grid_columns": 2,
    "auto_play_video": False,
    "default_service": "all",
    "nsfw_filter": False,
    "load_thumbnails": True,
    "default_api_source": "kemono",
}


class JsonStore:
    """Key-value store holding one JSON document per key."""

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def path(self, key: str) -> Path:
        return self.state_dir / f"{key}.json"

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        with self._locks_guard:
            key_lock = self._locks.setdefault(key, threading.RLock())
        with key_lock:
            yield

    def get(self, key: str) -> Any:
        path = self.path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable state %s: %s", path, e)
            return None

    def set(self, key: str, value: Any) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        path = self.path(key)
        fd, tmp = tempfile.mkstemp(dir=self.state_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, ensure_ascii=False)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self.path(key).unlink(missing_ok=True)


def _folder_from_dict(raw: dict) -> Folder:
    created = parse_timestamp(raw.get("createdAt"), utcnow()).value
    updated = parse_timestamp(raw.get("updatedAt"), created).value
    post_ids = raw.get("postIds")
    if not isinstance(post_ids, list):
        post_ids = []
    return Folder(
        id=str(raw["id"]),
        name=str(raw.get("name", "")),
        post_ids=tuple(str(p) for p in post_ids),
        created_at=created,
        updated_at=updated,
    )


class LocalStore:
    """CRUD over the locally persisted collections."""

    def __init__(self, store: JsonStore, clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._clock = clock

    def _read_list(self, key: str) -> list:
        value = self._store.get(key)
        if not isinstance(value, list):
            if value is not None:
                logger.warning("State %s is not a list; treating as empty", key)
            return []
        return [item for item in value if isinstance(item, dict)]

    # ── Favorite creators ──────────────────────────────────────────────

    def list_favorite_creators(self) -> list[Creator]:
        return [parse_creator(raw) for raw in self._read_list(FAVORITE_CREATORS_KEY)]

    def upsert_favorite_creator(self, creator: Creator) -> None:
        """Add or refresh a favorite. The stored copy is always ``favorited``."""
        favorite = creator.with_favorited(True)
        with self._store.lock(FAVORITE_CREATORS_KEY):
            creators = self.list_favorite_creators()
            for i, existing in enumerate(creators):
                if existing.key == favorite.key:
                    creators[i] = favorite
                    break
            else:
                creators.append(favorite)
            self._store.set(FAVORITE_CREATORS_KEY, [c.to_dict() for c in creators])
        logger.info("Favorited %s/%s", creator.service, creator.id)

    def remove_favorite_creator(self, creator_id: str, service: str | None = None) -> bool:
        """Remove a favorite; without ``service`` every match on id goes.

        Returns whether anything was removed. Nothing is written otherwise.
        """
        with self._store.lock(FAVORITE_CREATORS_KEY):
            creators = self.list_favorite_creators()
            if service is not None:
                kept = [c for c in creators if not (c.id == creator_id and c.service == service)]
            else:
                kept = [c for c in creators if c.id != creator_id]
            if len(kept) == len(creators):
                return False
            self._store.set(FAVORITE_CREATORS_KEY, [c.to_dict() for c in kept])
        return True

    def is_favorite(self, creator_id: str, service: str) -> bool:
        return any(
            c.id == creator_id and c.service == service
            for c in self.list_favorite_creators()
        )

    # ── Saved posts ────────────────────────────────────────────────────

    def list_saved_posts(self, offset: int = 0, limit: int | None = None) -> list[Post]:
        records = self._read_list(SAVED_POSTS_KEY)
        end = None if limit is None else offset + limit
        return [parse_post(raw, self._clock) for raw in records[offset:end]]

    def save_post(self, post: Post) -> None:
        """Save ``post`` at the front; an earlier save of the same id is dropped."""
        with self._store.lock(SAVED_POSTS_KEY):
            records = [r for r in self._read_list(SAVED_POSTS_KEY) if str(r.get("id")) != post.id]
            records.insert(0, post.with_saved(True).to_dict())
            self._store.set(SAVED_POSTS_KEY, records)

    def remove_saved_post(self, post_id: str) -> None:
        with self._store.lock(SAVED_POSTS_KEY):
            records = [r for r in self._read_list(SAVED_POSTS_KEY) if str(r.get("id")) != post_id]
            self._store.set(SAVED_POSTS_KEY, records)

    def is_saved(self, post_id: str) -> bool:
        return any(str(r.get("id")) == post_id for r in self._read_list(SAVED_POSTS_KEY))

    def saved_post_ids(self) -> set[str]:
        return {str(r.get("id")) for r in self._read_list(SAVED_POSTS_KEY)}

    # ── Folders ────────────────────────────────────────────────────────

    def list_folders(self) -> list[Folder]:
        folders = []
        for raw in self._read_list(FOLDERS_KEY):
            try:
                folders.append(_folder_from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed folder: %s", e)
        return folders

    def _write_folders(self, folders: list[Folder]) -> None:
        self._store.set(FOLDERS_KEY, [f.to_dict() for f in folders])

    def create_folder(self, name: str) -> Folder:
        folder = Folder.create(name, self._clock)
        self.upsert_folder(folder)
        return folder

    def upsert_folder(self, folder: Folder) -> None:
        with self._store.lock(FOLDERS_KEY):
            folders = self.list_folders()
            for i, existing in enumerate(folders):
                if existing.id == folder.id:
                    folders[i] = folder
                    break
            else:
                folders.append(folder)
            self._write_folders(folders)

    def remove_folder(self, folder_id: str) -> None:
        with self._store.lock(FOLDERS_KEY):
            self._write_folders([f for f in self.list_folders() if f.id != folder_id])

    def _touched(self, folder: Folder) -> datetime:
        now = self._clock()
        if now <= folder.updated_at:
            now = folder.updated_at + timedelta(microseconds=1)
        return now

    def add_post_to_folder(self, folder_id: str, post_id: str) -> None:
        """Append ``post_id``; no-op (and no timestamp bump) if already present."""
        with self._store.lock(FOLDERS_KEY):
            folders = self.list_folders()
            for i, folder in enumerate(folders):
                if folder.id != folder_id:
                    continue
                if post_id in folder.post_ids:
                    return
                folders[i] = Folder(
                    id=folder.id,
                    name=folder.name,
                    post_ids=(*folder.post_ids, post_id),
                    created_at=folder.created_at,
                    updated_at=self._touched(folder),
                )
                self._write_folders(folders)
                return

    def remove_post_from_folder(self, folder_id: str, post_id: str) -> None:
        # updated_at moves even when post_id was not a member
        with self._store.lock(FOLDERS_KEY):
            folders = self.list_folders()
            for i, folder in enumerate(folders):
                if folder.id != folder_id:
                    continue
                folders[i] = Folder(
                    id=folder.id,
                    name=folder.name,
                    post_ids=tuple(p for p in folder.post_ids if p != post_id),
                    created_at=folder.created_at,
                    updated_at=self._touched(folder),
                )
                self._write_folders(folders)
                return

    # ── Settings ───────────────────────────────────────────────────────

    def get_settings(self) -> dict:
        stored = self._store.get(SETTINGS_KEY)
        if not isinstance(stored, dict):
            return dict(DEFAULT_SETTINGS)
        return {**DEFAULT_SETTINGS, **stored}

    def save_settings(self, settings: dict) -> None:
        with self._store.lock(SETTINGS_KEY):
            self._store.set(SETTINGS_KEY, dict(settings))

    # ── Downloads ──────────────────────────────────────────────────────

    def list_downloads(self) -> list[DownloadedFile]:
        downloads = []
        for raw in self._read_list(DOWNLOADS_KEY):
            try:
                downloads.append(parse_downloaded_file(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed download: %s", e)
        return downloads

    def add_download(self, download: DownloadedFile) -> bool:
        """Record ``download`` at the front; False if its id is already recorded."""
        with self._store.lock(DOWNLOADS_KEY):
            records = self._read_list(DOWNLOADS_KEY)
            if any(str(r.get("id")) == download.id for r in records):
                return False
            records.insert(0, download.to_dict())
            self._store.set(DOWNLOADS_KEY, records)
        return True

    def remove_download(self, file_id: str) -> bool:
        with self._store.lock(DOWNLOADS_KEY):
            records = self._read_list(DOWNLOADS_KEY)
            kept = [r for r in records if str(r.get("id")) != file_id]
            if len(kept) == len(records):
                return False
            self._store.set(DOWNLOADS_KEY, kept)
        return True

    def is_downloaded(self, file_id: str) -> bool:
        return any(str(r.get("id")) == file_id for r in self._read_list(DOWNLOADS_KEY))

    def get_download(self, file_id: str) -> DownloadedFile | None:
        for download in self.list_downloads():
            if download.id == file_id:
                return download
        return None

    def downloaded_ids(self) -> set[str]:
        return {str(r.get("id")) for r in self._read_list(DOWNLOADS_KEY)}

    def clear_downloads(self) -> None:
        with self._store.lock(DOWNLOADS_KEY):
            self._store.set(DOWNLOADS_KEY, [])

    def total_download_size(self) -> int:
        return sum(d.file_size for d in self.list_downloads())
