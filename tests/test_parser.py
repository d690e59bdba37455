"""Tests for the entity mappers."""

from datetime import datetime, timezone

import pytest

from mirror_gallery.parser import (
    parse_bool,
    parse_comment,
    parse_creator,
    parse_creators,
    parse_discord_channels,
    parse_downloaded_file,
    parse_epoch_seconds,
    parse_index_line,
    parse_index_record,
    parse_post,
    parse_posts,
    parse_timestamp,
)

FIXED_NOW = datetime(2025, 2, 10, 18, 30, 0, tzinfo=timezone.utc)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
JAN_5 = datetime(2024, 1, 5, tzinfo=timezone.utc)


class TestTimestamps:
    def test_iso_and_epoch_agree(self):
        iso = parse_timestamp("2024-01-05T00:00:00Z", FIXED_NOW)
        epoch = parse_timestamp(1704412800, FIXED_NOW)
        assert iso.value == epoch.value == JAN_5
        assert not iso.defaulted
        assert not epoch.defaulted

    def test_digit_string_is_epoch(self):
        assert parse_timestamp("1704412800", FIXED_NOW).value == JAN_5

    def test_naive_iso_read_as_utc(self):
        assert parse_timestamp("2024-01-05T00:00:00", FIXED_NOW).value == JAN_5

    @pytest.mark.parametrize("value", [None, "", "yesterday", [], {"t": 1}, True])
    def test_unparseable_uses_default(self, value):
        parsed = parse_timestamp(value, FIXED_NOW)
        assert parsed.value == FIXED_NOW
        assert parsed.defaulted

    def test_epoch_seconds(self):
        assert parse_epoch_seconds("2024-01-05T00:00:00Z").value == 1704412800
        assert parse_epoch_seconds(1704412800).value == 1704412800
        assert parse_epoch_seconds("garbage") == (0, True)


class TestParseBool:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (True, True),
            (False, False),
            (1, True),
            (0, False),
            (12, True),
            ("true", True),
            ("TRUE", True),
            ("1", True),
            ("0", False),
            ("yes", False),
            (None, False),
        ],
    )
    def test_values(self, value, expected):
        assert parse_bool(value) is expected


class TestParseCreator:
    def test_basic_fields(self):
        creator = parse_creator(
            {
                "id": " 111 ",
                "service": "patreon",
                "name": "Artist",
                "indexed": "2024-01-05T00:00:00Z",
                "updated": 1704499200,
                "favorited": 3,
            }
        )
        assert creator.id == "111"
        assert creator.indexed == 1704412800
        assert creator.updated == 1704499200
        assert creator.favorited is True

    def test_bad_timestamps_default_to_epoch_zero(self):
        creator = parse_creator({"id": "1", "indexed": "soon", "updated": None})
        assert creator.indexed == 0
        assert creator.updated == 0
        assert datetime.fromtimestamp(creator.indexed, tz=timezone.utc) == EPOCH

    def test_missing_fields_default_to_empty(self):
        creator = parse_creator({})
        assert creator.id == ""
        assert creator.name == ""
        assert creator.favorited is False


class TestParsePost:
    def test_fixture_posts(self, posts_response, fixed_clock):
        posts = parse_posts(posts_response["posts"], fixed_clock)
        first, second = posts

        assert first.title == "January update"
        assert first.published == JAN_5
        assert first.edited == FIXED_NOW  # null edited date
        assert first.embed_url is None
        assert first.shared_file == ""
        assert first.tags == ("art", "update")
        assert first.media_count == 3
        assert first.has_image
        assert first.has_video
        assert first.first_image.name == "cover.png"

        # Empty title falls back to the published day; content to substring
        assert second.title == "Post from 5"
        assert second.content == "Short preview"
        assert second.file == ()

    def test_bad_published_defaults_to_now(self, fixed_clock):
        post = parse_post({"id": "1", "published": "not a date"}, fixed_clock)
        assert post.published == FIXED_NOW
        assert post.added == FIXED_NOW
        assert post.title == "Post from"

    def test_wrapped_post(self, fixed_clock):
        post = parse_post({"post": {"id": "7", "title": "Wrapped"}}, fixed_clock)
        assert post.id == "7"
        assert post.title == "Wrapped"

    def test_file_list_and_embed(self, fixed_clock):
        post = parse_post(
            {
                "id": "8",
                "embed": {"url": "https://example.com/v"},
                "file": [{"name": "a.jpg", "path": "/a.jpg"}, "junk"],
                "tags": "not-a-list",
            },
            fixed_clock,
        )
        assert post.embed_url == "https://example.com/v"
        assert [f.name for f in post.file] == ["a.jpg"]
        assert post.tags == ()

    def test_malformed_rows_skipped(self, fixed_clock):
        posts = parse_posts([{"id": "1"}, "junk", None, {"id": "2"}], fixed_clock)
        assert [p.id for p in posts] == ["1", "2"]


class TestParseComment:
    def test_fields_and_missing_context(self, fixed_clock):
        comment = parse_comment(
            {"id": "c1", "commenter_name": "Ann", "content": "nice", "published": 1704412800},
            fixed_clock,
        )
        assert comment.username == "Ann"
        assert comment.timestamp == JAN_5
        assert comment.post_id == ""
        assert comment.service == ""

        attached = comment.with_context("1001", "patreon")
        assert attached.post_id == "1001"
        assert attached.service == "patreon"

    def test_anonymous_and_defaulted_time(self, fixed_clock):
        comment = parse_comment({"id": "c2"}, fixed_clock)
        assert comment.username == "Anonymous"
        assert comment.timestamp == FIXED_NOW


class TestDiscordChannels:
    def test_sorted_by_position(self):
        channels = parse_discord_channels(
            [
                {"id": "b", "name": "second", "position": 2, "type": 0},
                {"id": "a", "name": "first", "position": 1, "type": 4},
                {"id": "c", "name": "third", "position": 3},
            ],
            server_id="srv",
        )
        assert [c.id for c in channels] == ["a", "b", "c"]
        assert channels[0].is_category
        assert channels[1].is_post_channel
        assert channels[2].type == 11
        assert all(c.server_id == "srv" for c in channels)


class TestIndexLine:
    def test_name_may_contain_commas(self):
        item = parse_index_line("patreon,111,Smith, John")
        assert item.service == "patreon"
        assert item.user_id == "111"
        assert item.name == "Smith, John"

    def test_short_line_rejected(self):
        assert parse_index_line("patreon,111") is None


class TestIndexRecord:
    def test_fields(self):
        item = parse_index_record({"id": 111, "service": "patreon", "name": "Smith, John", "favorited": 3})
        assert (item.service, item.user_id, item.name) == ("patreon", "111", "Smith, John")

    def test_missing_service_or_id_rejected(self):
        assert parse_index_record({"id": "111", "name": "x"}) is None
        assert parse_index_record({"service": "patreon", "name": "x"}) is None


class TestDownloadedFile:
    def test_stored_keys(self):
        item = parse_downloaded_file(
            {
                "id": "f1",
                "name": "a.png",
                "postId": 1001,
                "service": "patreon",
                "filePath": "/tmp/a.png",
                "downloadDate": 1739212200000,
                "fileSize": 2048.0,
            }
        )
        assert item.post_id == "1001"
        assert item.file_size == 2048
        assert item.creator_name == ""

    def test_bad_size_is_zero(self):
        assert parse_downloaded_file({"id": "f1", "fileSize": "big"}).file_size == 0


def test_parse_creators_skips_non_dicts(creators_response):
    creators = parse_creators([*creators_response, "junk"])
    assert len(creators) == 5
