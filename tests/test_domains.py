"""Tests for domain rules, URL builders and headers."""

import pytest

from mirror_gallery.domains import (
    DEFAULT_REGISTRY,
    DomainRegistry,
    clean_domain,
    domain_suggestions,
    is_valid_domain,
    source_for_domain,
)
from mirror_gallery.headers import (
    api_headers,
    comment_header_variants,
    media_headers,
)
from mirror_gallery.models import ApiSource


class TestDomainValidation:
    @pytest.mark.parametrize("domain", ["kemono.cr", "coomer.st", "sub.kemono.party"])
    def test_valid(self, domain):
        assert is_valid_domain(domain)

    @pytest.mark.parametrize("domain", ["", "localhost", "kemono.c", "kemono.123", "https://kemono.cr"])
    def test_invalid(self, domain):
        assert not is_valid_domain(domain)

    def test_clean_domain(self):
        assert clean_domain("  https://kemono.cr/ ") == "kemono.cr"
        assert clean_domain("http://coomer.st") == "coomer.st"

    def test_suggestions_are_valid(self):
        assert all(is_valid_domain(d) for d in domain_suggestions())

    def test_source_for_domain(self):
        assert source_for_domain("coomer.su") == ApiSource.COOMER
        assert source_for_domain("kemono.su") == ApiSource.KEMONO


class TestDomainRegistry:
    def test_defaults(self):
        assert DEFAULT_REGISTRY.api_base(ApiSource.KEMONO) == "https://kemono.cr/api"
        assert DEFAULT_REGISTRY.api_base(ApiSource.COOMER) == "https://coomer.st/api"

    def test_candidates_in_order_without_duplicates(self):
        registry = DomainRegistry(
            kemono_domain="kemono.cr",
            kemono_fallbacks=("kemono.su", "https://kemono.cr/", "kemono.party"),
        )
        assert registry.candidate_domains(ApiSource.KEMONO) == [
            "https://kemono.cr/api",
            "https://kemono.su/api",
            "https://kemono.party/api",
        ]

    def test_media_url(self):
        assert (
            DEFAULT_REGISTRY.media_url("/data/aa/bb/x.png", ApiSource.KEMONO)
            == "https://n4.kemono.cr/data/aa/bb/x.png"
        )

    def test_thumbnail_strips_data_prefix(self):
        assert (
            DEFAULT_REGISTRY.thumbnail_url("/data/aa/bb/x.png", ApiSource.COOMER)
            == "https://img.coomer.st/thumbnail/data/aa/bb/x.png"
        )

    def test_absolute_urls_pass_through(self):
        assert DEFAULT_REGISTRY.media_url("https://cdn.test/x", ApiSource.KEMONO) == "https://cdn.test/x"
        assert DEFAULT_REGISTRY.thumbnail_url("//cdn.test/x", ApiSource.KEMONO) == "https://cdn.test/x"

    def test_post_urls(self, sample_posts):
        post = sample_posts[0]
        assert post.thumbnail_url(ApiSource.KEMONO) == "https://img.kemono.cr/thumbnail/data/aa/bb/cover.png"
        assert post.media_urls(ApiSource.KEMONO) == [
            "https://n4.kemono.cr/data/cc/dd/clip.mp4",
            "https://n4.kemono.cr/data/aa/bb/cover.png",
        ]
        assert sample_posts[1].thumbnail_url(ApiSource.KEMONO) is None


class TestHeaders:
    def test_api_headers_accept_text_css(self):
        assert api_headers()["Accept"] == "text/css"

    def test_returns_fresh_copies(self):
        headers = api_headers()
        headers["Accept"] = "changed"
        assert api_headers()["Accept"] == "text/css"

    def test_media_referer(self):
        assert media_headers()["Referer"] == "https://kemono.cr/"
        assert media_headers("https://coomer.st/")["Referer"] == "https://coomer.st/"

    def test_comment_variants_order(self):
        variants = comment_header_variants()
        assert len(variants) == 4
        assert [v["Accept"] for v in variants] == [
            "text/css",
            "text/css",
            "application/json",
            "text/css",
        ]
