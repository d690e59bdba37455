"""Tests for the downloaded creator index."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from mirror_gallery.client import MirrorError
from mirror_gallery.index import CreatorIndex, CreatorIndexCache
from mirror_gallery.models import CreatorIndexItem

SITE = "https://a.test"
INDEX_URL = f"{SITE}/api/v1/creators.txt"
INDEX_BODY = "# service,id,name\npatreon,111,Alice Art\n\nfanbox,222,Bob, the Builder\nbroken line\n"

INDEX_RECORDS = [
    {"favorited": 12, "id": "111", "indexed": 1704412800, "name": "Alice Art", "service": "patreon", "updated": 1704499200},
    {"favorited": 3, "id": "222", "indexed": 1704412800, "name": "Bob, the Builder", "service": "fanbox", "updated": 1704499200},
    {"favorited": 0, "id": "333", "indexed": 1704412800, "name": "Carl Artwork", "service": "fantia", "updated": 1704499200},
    {"name": "no id or service"},
]

NOW = datetime(2025, 2, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def cache(tmp_path):
    return CreatorIndexCache(tmp_path / "index", clock=lambda: NOW)


class TestCreatorIndexCache:
    @respx.mock
    def test_download_and_load(self, cache):
        route = respx.get(INDEX_URL).mock(return_value=httpx.Response(200, text=INDEX_BODY))

        index = cache.load(SITE)

        assert route.call_count == 1
        assert len(index) == 2
        assert index.find("fanbox", "222").name == "Bob, the Builder"
        assert cache.meta_file.read_text() == NOW.isoformat()
        assert cache.has_valid_index()

    @respx.mock
    def test_fresh_cache_is_reused(self, cache):
        route = respx.get(INDEX_URL).mock(return_value=httpx.Response(200, text=INDEX_BODY))

        cache.load(SITE)
        cache.load(SITE)

        assert route.call_count == 1

    @respx.mock
    def test_stale_cache_downloads_again(self, tmp_path):
        route = respx.get(INDEX_URL).mock(return_value=httpx.Response(200, text=INDEX_BODY))
        clock_now = [NOW]
        cache = CreatorIndexCache(tmp_path / "index", clock=lambda: clock_now[0])

        cache.load(SITE)
        clock_now[0] = NOW + timedelta(hours=25)
        assert not cache.has_valid_index()
        cache.load(SITE)

        assert route.call_count == 2

    @respx.mock
    def test_force_refresh(self, cache):
        route = respx.get(INDEX_URL).mock(return_value=httpx.Response(200, text=INDEX_BODY))

        cache.load(SITE)
        cache.load(SITE, force=True)

        assert route.call_count == 2

    @respx.mock
    def test_download_failure_raises(self, cache):
        respx.get(INDEX_URL).mock(return_value=httpx.Response(502))

        with pytest.raises(MirrorError, match="502"):
            cache.download(SITE)

    def test_missing_meta_is_invalid(self, cache):
        cache.cache_dir.mkdir(parents=True)
        cache.index_file.write_text(INDEX_BODY)
        assert not cache.has_valid_index()

    @respx.mock
    def test_json_array_body(self, cache):
        respx.get(INDEX_URL).mock(return_value=httpx.Response(200, json=INDEX_RECORDS))

        index = cache.load(SITE)

        assert len(index) == 3
        assert index.find("fanbox", "222").name == "Bob, the Builder"
        assert [i.user_id for i in index.search("art")] == ["111", "333"]

    def test_interrupted_download_keeps_previous_index(self, tmp_path):
        class BrokenStream(httpx.SyncByteStream):
            def __iter__(self):
                yield b'[{"service": "patreon", "id": "999", '
                raise httpx.ReadError("connection reset")

        def handler(request):
            return httpx.Response(200, stream=BrokenStream())

        clock_now = [NOW]
        cache_dir = tmp_path / "index"
        with respx.mock:
            respx.get(INDEX_URL).mock(return_value=httpx.Response(200, json=INDEX_RECORDS))
            CreatorIndexCache(cache_dir, clock=lambda: clock_now[0]).load(SITE)
        previous = (cache_dir / "creators_index.txt").read_text()

        clock_now[0] = NOW + timedelta(hours=1)
        cache = CreatorIndexCache(
            cache_dir, clock=lambda: clock_now[0], transport=httpx.MockTransport(handler)
        )
        with pytest.raises(MirrorError, match="connection reset"):
            cache.download(SITE)

        assert cache.index_file.read_text() == previous
        assert cache.meta_file.read_text() == NOW.isoformat()
        assert cache.has_valid_index()
        assert len(cache.load(SITE)) == 3
        assert not list(cache_dir.glob("*.tmp"))


class TestCreatorIndex:
    @pytest.fixture
    def index(self):
        items = [CreatorIndexItem("patreon", str(i), f"Artist {i}") for i in range(60)]
        items.append(CreatorIndexItem("fanbox", "x", "Someone Else"))
        return CreatorIndex(items)

    def test_search_caps_results(self, index):
        assert len(index.search("artist")) == 50

    def test_search_is_case_insensitive(self, index):
        assert [i.user_id for i in index.search("SOMEONE")] == ["x"]

    def test_short_query_returns_nothing(self, index):
        assert index.search("a") == []

    def test_popular(self, index):
        assert len(index.popular(10)) == 10
