"""Shared test fixtures."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from mirror_gallery.domains import DomainRegistry
from mirror_gallery.models import Creator, Post, PostFile
from mirror_gallery.state import JsonStore, LocalStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"

FIXED_NOW = datetime(2025, 2, 10, 18, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def creators_response() -> list[dict]:
    """Load the sample creators.txt listing."""
    with open(FIXTURES_DIR / "creators.json") as f:
        return json.load(f)


@pytest.fixture
def posts_response() -> dict:
    """Load the sample ``{"posts": [...]}`` listing."""
    with open(FIXTURES_DIR / "posts_response.json") as f:
        return json.load(f)


@pytest.fixture
def registry() -> DomainRegistry:
    """Kemono family with two fallbacks: a.test, b.test, c.test."""
    return DomainRegistry(
        kemono_domain="a.test",
        coomer_domain="coomer.test",
        kemono_fallbacks=("b.test", "c.test"),
    )


@pytest.fixture
def local_store(tmp_path, fixed_clock) -> LocalStore:
    return LocalStore(JsonStore(tmp_path / "state"), clock=fixed_clock)


@pytest.fixture
def sample_creators() -> list[Creator]:
    return [
        Creator(id="111", service="patreon", name="Test Artist", indexed=1704412800, updated=1704499200),
        Creator(id="111", service="fanbox", name="Test Artist JP", indexed=1704412800, updated=1704499200),
        Creator(id="222", service="fantia", name="Other Artist"),
    ]


@pytest.fixture
def sample_posts() -> list[Post]:
    """A list of sample Post objects for testing."""
    published = datetime(2024, 1, 5, 0, 0, 0, tzinfo=timezone.utc)
    return [
        Post(
            id="1001",
            user="111",
            service="patreon",
            title="January update",
            content="Hello",
            added=published,
            published=published,
            edited=published,
            file=(PostFile(id="", name="cover.png", path="/data/aa/bb/cover.png"),),
            attachments=(PostFile(id="", name="clip.mp4", path="/data/cc/dd/clip.mp4"),),
            tags=("art", "update"),
        ),
        Post(
            id="1002",
            user="111",
            service="patreon",
            title="Sketch dump",
            content="",
            added=published,
            published=datetime(2024, 1, 6, 0, 0, 0, tzinfo=timezone.utc),
            edited=published,
        ),
    ]
