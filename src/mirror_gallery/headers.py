"""Fixed header sets for mirror requests.

The mirrors reject requests that look like bare API clients, so every set
imitates a desktop browser. ``Accept: text/css`` on API calls is a quirk
of the services: without it most endpoints answer 403.

The User-Agent can be overridden with ``MIRROR_GALLERY_USER_AGENT``.
"""

import os

USER_AGENT = os.environ.get(
    "MIRROR_GALLERY_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

DEFAULT_MEDIA_REFERER = "https://kemono.cr/"

_API_HEADERS = {
    "Accept": "text/css",
    "User-Agent": USER_AGENT,
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}

_MEDIA_HEADERS = {
    "Accept": "image/*, video/*, */*",
    "User-Agent": USER_AGENT,
    "Referer": DEFAULT_MEDIA_REFERER,
}


def api_headers() -> dict[str, str]:
    return dict(_API_HEADERS)


def media_headers(referer: str | None = None) -> dict[str, str]:
    headers = dict(_MEDIA_HEADERS)
    if referer is not None:
        headers["Referer"] = referer
    return headers


def comment_header_variants() -> list[dict[str, str]]:
    """Header sets tried in order against the comments endpoint."""
    return [
        {**api_headers(), "Accept": "text/css"},
        {
            "Accept": "text/css",
            "User-Agent": USER_AGENT,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Cache-Control": "max-age=0",
        },
        {**api_headers(), "Accept": "application/json"},
        api_headers(),
    ]


def search_headers() -> dict[str, str]:
    return {"User-Agent": "mirror-gallery/1.0", "Accept": "application/json"}
