"""Tests for media downloads."""

import httpx
import pytest
import respx

from mirror_gallery.client import MirrorError
from mirror_gallery.downloads import MediaDownloader, download_media, file_id, sanitize_filename
from mirror_gallery.models import ApiSource, PostFile

COVER_URL = "https://n4.a.test/data/aa/bb/cover.png"
CLIP_URL = "https://n4.a.test/data/cc/dd/clip.mp4"


class TestSanitizeFilename:
    def test_replaces_unsafe_characters(self):
        assert sanitize_filename('a/b:c*?"d.png') == "a_b_c___d.png"

    def test_empty_name(self):
        assert sanitize_filename(" .. ") == "file"


class TestFileId:
    def test_prefers_id(self):
        assert file_id(PostFile(id="f1", name="a.png", path="/data/a.png")) == "f1"

    def test_falls_back_to_path(self):
        assert file_id(PostFile(id="", name="a.png", path="/data/a.png")) == "/data/a.png"


class TestDownloadMedia:
    @respx.mock
    def test_downloads_every_file(self, sample_posts, registry, tmp_path):
        cover = respx.get(COVER_URL).mock(return_value=httpx.Response(200, content=b"png-bytes"))
        clip = respx.get(CLIP_URL).mock(return_value=httpx.Response(200, content=b"mp4"))

        downloaded = download_media(sample_posts[0], tmp_path, ApiSource.KEMONO, registry)

        post_dir = tmp_path / "patreon" / "111" / "1001"
        assert (post_dir / "cover.png").read_bytes() == b"png-bytes"
        assert (post_dir / "clip.mp4").read_bytes() == b"mp4"
        assert cover.call_count == 1
        assert clip.call_count == 1
        # attachments come before the main file
        assert [d.name for d in downloaded] == ["clip.mp4", "cover.png"]
        assert downloaded[1].id == "/data/aa/bb/cover.png"
        assert downloaded[1].file_size == len(b"png-bytes")
        assert downloaded[1].post_id == "1001"
        assert downloaded[1].service == "patreon"
        assert downloaded[1].file_path == str(post_dir / "cover.png")
        assert not list(post_dir.glob("*.tmp"))

    @respx.mock
    def test_sends_media_headers_with_site_referer(self, sample_posts, registry, tmp_path):
        route = respx.get(COVER_URL).mock(return_value=httpx.Response(200, content=b"x"))
        respx.get(CLIP_URL).mock(return_value=httpx.Response(200, content=b"y"))

        download_media(sample_posts[0], tmp_path, ApiSource.KEMONO, registry)

        request = route.calls.last.request
        assert request.headers["Referer"] == "https://a.test/"

    @respx.mock
    def test_skips_known_files(self, sample_posts, registry, tmp_path):
        cover = respx.get(COVER_URL).mock(return_value=httpx.Response(200, content=b"x"))
        clip = respx.get(CLIP_URL).mock(return_value=httpx.Response(200, content=b"y"))

        with MediaDownloader(registry) as downloader:
            downloaded = downloader.download_post(
                sample_posts[0], tmp_path, skip={"/data/cc/dd/clip.mp4"}
            )

        assert [d.name for d in downloaded] == ["cover.png"]
        assert cover.call_count == 1
        assert clip.call_count == 0

    def test_post_without_files(self, sample_posts, registry, tmp_path):
        assert download_media(sample_posts[1], tmp_path, registry=registry) == []

    @respx.mock
    def test_error_status_raises_and_leaves_nothing(self, sample_posts, registry, tmp_path):
        respx.get(CLIP_URL).mock(return_value=httpx.Response(404))

        with pytest.raises(MirrorError, match="404"):
            download_media(sample_posts[0], tmp_path, registry=registry)

        post_dir = tmp_path / "patreon" / "111" / "1001"
        assert list(post_dir.iterdir()) == []

    def test_interrupted_stream_keeps_no_partial_file(self, sample_posts, registry, tmp_path):
        class BrokenStream(httpx.SyncByteStream):
            def __iter__(self):
                yield b"partial"
                raise httpx.ReadError("connection reset")

        def handler(request):
            return httpx.Response(200, stream=BrokenStream())

        with pytest.raises(MirrorError, match="connection reset"):
            download_media(
                sample_posts[0],
                tmp_path,
                registry=registry,
                transport=httpx.MockTransport(handler),
            )

        post_dir = tmp_path / "patreon" / "111" / "1001"
        assert list(post_dir.iterdir()) == []
