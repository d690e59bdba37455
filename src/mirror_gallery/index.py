"""Downloaded creator index for offline name search.

The index is cached as ``creators_index.txt`` with a sibling
``creators_index.txt.meta`` holding the ISO download time. A cached index
older than ``max_age`` (24h by default) is downloaded again.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterator

import httpx

from .client import MirrorError
from .models import CreatorIndexItem, utcnow
from .parser import parse_index_line, parse_index_record
from .shapes import decode_body, normalize_list

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "creators_index.txt"
DEFAULT_MAX_AGE = timedelta(hours=24)
MIN_QUERY_LENGTH = 2
MAX_SEARCH_RESULTS = 50

_INDEX_HEADERS = {
    "Accept": "text/css",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}


@dataclass
class CreatorIndex:
    items: list[CreatorIndexItem] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def search(self, query: str) -> list[CreatorIndexItem]:
        """Substring match on the lowercased name, capped at 50 hits."""
        q = query.lower().strip()
        if len(q) < MIN_QUERY_LENGTH:
            return []
        results = []
        for item in self.items:
            if q in item.name_key:
                results.append(item)
                if len(results) >= MAX_SEARCH_RESULTS:
                    break
        return results

    def find(self, service: str, user_id: str) -> CreatorIndexItem | None:
        for item in self.items:
            if item.service == service and item.user_id == user_id:
                return item
        return None

    def popular(self, limit: int = 100) -> list[CreatorIndexItem]:
        return self.items[:limit]


class CreatorIndexCache:
    def __init__(
        self,
        cache_dir: Path,
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Callable[[], datetime] = utcnow,
        transport: httpx.BaseTransport | None = None,
    ):
        self.cache_dir = Path(cache_dir)
        self.index_file = self.cache_dir / INDEX_FILE_NAME
        self.meta_file = self.cache_dir / f"{INDEX_FILE_NAME}.meta"
        self.max_age = max_age
        self._clock = clock
        self._transport = transport

    def has_valid_index(self) -> bool:
        if not self.index_file.exists() or not self.meta_file.exists():
            return False
        try:
            downloaded = datetime.fromisoformat(self.meta_file.read_text().strip())
        except (OSError, ValueError) as e:
            logger.warning("Unreadable index metadata %s: %s", self.meta_file, e)
            return False
        return self._clock() - downloaded < self.max_age

    def download(self, site_base: str) -> Path:
        """Stream ``{site_base}/api/v1/creators.txt`` into the cache file.

        The body goes to a temp file that replaces the cache only once the
        stream completes, so a failed download leaves the old index intact.
        """
        url = f"{site_base.rstrip('/')}/api/v1/creators.txt"
        logger.info("Downloading creator index from %s", url)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{INDEX_FILE_NAME}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                with httpx.Client(timeout=60.0, follow_redirects=True, transport=self._transport) as client:
                    with client.stream("GET", url, headers=_INDEX_HEADERS) as response:
                        if response.status_code != 200:
                            raise MirrorError(f"Failed to download index: {response.status_code}")
                        for chunk in response.iter_bytes():
                            f.write(chunk)
            os.replace(tmp, self.index_file)
        except httpx.HTTPError as e:
            Path(tmp).unlink(missing_ok=True)
            raise MirrorError(f"Failed to download index: {e}") from e
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

        self.meta_file.write_text(self._clock().isoformat())
        logger.info("Creator index downloaded to %s", self.index_file)
        return self.index_file

    def read_lines(self) -> Iterator[str]:
        with open(self.index_file, encoding="utf-8") as f:
            for line in f:
                line = line.rstrip("\n")
                if not line.strip() or line.startswith("#"):
                    continue
                yield line

    def read_items(self) -> Iterator[CreatorIndexItem]:
        """Items from the cached file.

        The live endpoint serves a JSON array despite the ``.txt`` name;
        older dumps are ``service,user_id,name`` lines.
        """
        text = self.index_file.read_text(encoding="utf-8")
        if text.lstrip().startswith(("[", "{")):
            for record in normalize_list(decode_body(text)):
                item = parse_index_record(record)
                if item is not None:
                    yield item
            return

        for count, line in enumerate(self.read_lines(), start=1):
            item = parse_index_line(line)
            if item is not None:
                yield item
            if count % 10000 == 0:
                logger.debug("Processed %d index lines...", count)

    def load(self, site_base: str, force: bool = False) -> CreatorIndex:
        """Return the index, downloading it first when missing or stale."""
        if force or not self.has_valid_index():
            self.download(site_base)
        else:
            logger.info("Using cached creator index %s", self.index_file)

        index = CreatorIndex(list(self.read_items()))
        logger.info("Creator index ready: %d creators", len(index))
        return index
