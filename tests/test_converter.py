"""Tests for the CSV converter."""

import csv
import io

from mirror_gallery.converter import (
    CREATOR_COLUMNS,
    POST_COLUMNS,
    creators_to_csv,
    saved_posts_to_csv,
)
from mirror_gallery.models import ApiSource


class TestSavedPostsToCsv:
    def test_header_row(self, sample_posts):
        result = saved_posts_to_csv(sample_posts)
        header = next(csv.reader(io.StringIO(result)))
        assert header == POST_COLUMNS

    def test_row_count(self, sample_posts):
        rows = list(csv.reader(io.StringIO(saved_posts_to_csv(sample_posts))))
        # Header + 2 data rows
        assert len(rows) == 3

    def test_multi_value_fields_pipe_joined(self, sample_posts):
        first = next(csv.DictReader(io.StringIO(saved_posts_to_csv(sample_posts))))
        assert first["tags"] == "art|update"
        assert first["file_count"] == "2"
        assert first["media_urls"] == (
            "https://n4.kemono.cr/data/cc/dd/clip.mp4|https://n4.kemono.cr/data/aa/bb/cover.png"
        )
        assert first["published"] == "2024-01-05T00:00:00+00:00"

    def test_source_selects_media_host(self, sample_posts):
        result = saved_posts_to_csv(sample_posts, source=ApiSource.COOMER)
        assert "https://n4.coomer.st/data/aa/bb/cover.png" in result

    def test_writes_to_output(self, sample_posts):
        buf = io.StringIO()
        result = saved_posts_to_csv(sample_posts, buf)
        assert buf.getvalue() == result

    def test_empty_list(self):
        rows = list(csv.reader(io.StringIO(saved_posts_to_csv([]))))
        assert rows == [POST_COLUMNS]


class TestCreatorsToCsv:
    def test_fields(self, sample_creators):
        rows = list(csv.DictReader(io.StringIO(creators_to_csv(sample_creators))))
        assert list(rows[0].keys()) == CREATOR_COLUMNS
        assert rows[0]["id"] == "111"
        assert rows[0]["favorited"] == "false"
        assert rows[0]["indexed"] == "1704412800"
