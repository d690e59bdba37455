"""Export saved posts and favorite creators as CSV."""

import csv
import io
from typing import TextIO

from .models import ApiSource, Creator, Post

POST_COLUMNS = [
    "id",
    "service",
    "user",
    "title",
    "published",
    "tags",
    "file_count",
    "media_urls",
]

CREATOR_COLUMNS = [
    "id",
    "service",
    "name",
    "indexed",
    "updated",
    "favorited",
]


def _write(rows: list[dict], columns: list[str], output: TextIO | None) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns, quoting=csv.QUOTE_MINIMAL)
    writer.writeheader()
    writer.writerows(rows)

    result = buf.getvalue()
    if output is not None:
        output.write(result)
    return result


def saved_posts_to_csv(
    posts: list[Post],
    output: TextIO | None = None,
    source: ApiSource = ApiSource.KEMONO,
) -> str:
    """Convert posts to CSV; multi-value fields are ``|``-joined.

    Returns the CSV content (also written to ``output`` if provided).
    """
    rows = [
        {
            "id": p.id,
            "service": p.service,
            "user": p.user,
            "title": p.title,
            "published": p.published.isoformat(),
            "tags": "|".join(p.tags),
            "file_count": p.media_count,
            "media_urls": "|".join(p.media_urls(source)),
        }
        for p in posts
    ]
    return _write(rows, POST_COLUMNS, output)


def creators_to_csv(creators: list[Creator], output: TextIO | None = None) -> str:
    rows = [
        {
            "id": c.id,
            "service": c.service,
            "name": c.name,
            "indexed": c.indexed,
            "updated": c.updated,
            "favorited": "true" if c.favorited else "false",
        }
        for c in creators
    ]
    return _write(rows, CREATOR_COLUMNS, output)
