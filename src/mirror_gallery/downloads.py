"""Download post media to disk.

Files land under ``<dest_dir>/<service>/<user>/<post_id>/<name>``. Each file
is streamed to a ``.tmp`` sibling and renamed once complete, so an
interrupted download never leaves a partial file under the final name.
"""

import logging
import os
import re
import time
from pathlib import Path

import httpx

from .client import MirrorError
from .domains import DEFAULT_REGISTRY, DomainRegistry
from .headers import media_headers
from .models import ApiSource, DownloadedFile, Post, PostFile

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60.0
CHUNK_SIZE = 65536

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", name).strip(" .")
    return cleaned or "file"


def file_id(file: PostFile) -> str:
    """Ledger key for a file; the API leaves ``id`` empty on most files."""
    return file.id or file.path


def _file_name(file: PostFile) -> str:
    return sanitize_filename(file.name or file.path.rsplit("/", 1)[-1])


class MediaDownloader:
    def __init__(
        self,
        registry: DomainRegistry | None = None,
        timeout: float = DOWNLOAD_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.registry = registry or DEFAULT_REGISTRY
        self._client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def download_file(
        self, file: PostFile, target: Path, source: ApiSource = ApiSource.KEMONO
    ) -> int:
        """Stream one file to ``target``; returns the number of bytes written."""
        url = self.registry.media_url(file.path, source)
        headers = media_headers(referer=f"{self.registry.site_base(source)}/")
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")

        written = 0
        try:
            with self._client.stream("GET", url, headers=headers) as response:
                if response.status_code != 200:
                    raise MirrorError(f"Failed to download {url}: {response.status_code}")
                with open(tmp, "wb") as f:
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
            os.replace(tmp, target)
        except httpx.HTTPError as e:
            tmp.unlink(missing_ok=True)
            raise MirrorError(f"Failed to download {url}: {e}") from e
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        logger.debug("Downloaded %s (%d bytes)", url, written)
        return written

    def download_post(
        self,
        post: Post,
        dest_dir: Path,
        source: ApiSource = ApiSource.KEMONO,
        skip: set[str] | frozenset[str] = frozenset(),
        creator_name: str = "",
    ) -> list[DownloadedFile]:
        """Download every file of ``post`` whose id is not in ``skip``."""
        post_dir = Path(dest_dir) / post.service / post.user / post.id
        downloaded = []
        for file in post.all_files:
            if not file.path:
                continue
            key = file_id(file)
            if key in skip:
                logger.info("Skipping already downloaded %s", file.name or key)
                continue
            target = post_dir / _file_name(file)
            size = self.download_file(file, target, source)
            downloaded.append(
                DownloadedFile(
                    id=key,
                    name=target.name,
                    post_id=post.id,
                    creator_name=creator_name,
                    service=post.service,
                    file_path=str(target),
                    download_date=int(time.time() * 1000),
                    file_size=size,
                )
            )
        logger.info("Downloaded %d files for post %s", len(downloaded), post.id)
        return downloaded

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def download_media(
    post: Post,
    dest_dir: Path,
    source: ApiSource = ApiSource.KEMONO,
    registry: DomainRegistry | None = None,
    transport: httpx.BaseTransport | None = None,
) -> list[DownloadedFile]:
    with MediaDownloader(registry, transport=transport) as downloader:
        return downloader.download_post(post, dest_dir, source)
