"""HTTP client for the Kemono/Coomer mirror APIs with domain fallback.

Every logical request is tried against the candidate domains of its mirror
family, strictly in order, one at a time. A domain counts as failed when:
    - the request raises (timeout, connection error),
    - the status is outside [200, 400), or
    - the body is an HTML page (the mirrors serve HTML error/landing pages
      with a 200 status).
The first successful response wins and is returned together with the
domain that produced it. There is no retry beyond the domain list.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from .domains import DEFAULT_REGISTRY, DomainRegistry
from .headers import api_headers, comment_header_variants
from .models import ApiSource, Creator, Post
from .parser import parse_creator, parse_creators, parse_post, parse_posts
from .shapes import ShapeKind, decode_body, normalize_list, normalize_object, parse_shape

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
SNIPPET_LENGTH = 200

LIST_SHAPES = (ShapeKind.LIST, ShapeKind.ENVELOPE)


class MirrorError(RuntimeError):
    """Base class for errors surfaced by the mirror clients."""


class ShapeMismatchError(MirrorError):
    """A primary endpoint answered with a body of no known shape."""


@dataclass
class DomainFailure:
    domain: str
    status: int | None = None
    looks_like_html: bool = False
    snippet: str = ""
    error: str | None = None

    def describe(self) -> str:
        if self.error is not None:
            return f"Domain={self.domain} Exception={self.error}"
        return (
            f"Domain={self.domain} Status={self.status} "
            f"Html={self.looks_like_html} Snippet={self.snippet}"
        )


class AllDomainsFailedError(MirrorError):
    """Every candidate domain failed for one endpoint."""

    def __init__(self, endpoint: str, failures: list[DomainFailure]):
        self.endpoint = endpoint
        self.failures = failures
        last = failures[-1].describe() if failures else "no candidate domains"
        super().__init__(
            f"All domains failed for endpoint: {endpoint}. Last error: {last}"
        )

    @property
    def last_failure(self) -> DomainFailure | None:
        return self.failures[-1] if self.failures else None

    @property
    def last_status(self) -> int | None:
        failure = self.last_failure
        return failure.status if failure else None


@dataclass
class FetchResult:
    """A successful response and the API base it came from."""

    response: httpx.Response
    domain: str
    failures: list[DomainFailure] = field(default_factory=list)

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def text(self) -> str:
        return self.response.text

    def json(self) -> Any:
        return decode_body(self.response.text)


def looks_like_html(body: str) -> bool:
    trimmed = body.lstrip()
    return trimmed.startswith("<!") or trimmed.lower().startswith("<html")


def _wants_all(service: str | None) -> bool:
    return not service or service == "all"


class MirrorClient:
    """Client for the mirror REST API (``/api/v1/...``)."""

    def __init__(
        self,
        registry: DomainRegistry | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.registry = registry or DEFAULT_REGISTRY
        self._client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    # ── Transport ──────────────────────────────────────────────────────

    def fetch(
        self,
        endpoint: str,
        source: ApiSource = ApiSource.KEMONO,
        extra_headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> FetchResult:
        """GET ``endpoint`` against each candidate domain until one succeeds."""
        headers = {**api_headers(), **(extra_headers or {})}
        failures: list[DomainFailure] = []

        for base in self.registry.candidate_domains(source):
            url = f"{base}{endpoint}"
            try:
                response = self._client.get(url, headers=headers, params=params)
            except httpx.HTTPError as e:
                failure = DomainFailure(domain=base, error=str(e) or type(e).__name__)
                failures.append(failure)
                logger.warning("Request failed: %s", failure.describe())
                continue

            body = response.text
            html = looks_like_html(body)
            if 200 <= response.status_code < 400 and not html:
                logger.debug("GET %s -> %d", url, response.status_code)
                return FetchResult(response=response, domain=base, failures=failures)

            snippet = body.lstrip()[:SNIPPET_LENGTH].replace("\n", " ")
            failure = DomainFailure(
                domain=base,
                status=response.status_code,
                looks_like_html=html,
                snippet=snippet,
            )
            failures.append(failure)
            logger.warning("Request failed: %s", failure.describe())

        raise AllDomainsFailedError(endpoint, failures)

    def _fetch_list(
        self, endpoint: str, source: ApiSource, params: dict | None = None
    ) -> list[dict]:
        result = self.fetch(endpoint, source, params=params)
        shape = parse_shape(result.json())
        if shape.kind not in LIST_SHAPES:
            raise ShapeMismatchError(
                f"Unexpected response shape from {endpoint}: "
                f"expected a list or {{posts: [...]}}, got {shape.kind.value}"
            )
        return shape.records

    def _fetch_object(self, endpoint: str, source: ApiSource) -> dict:
        result = self.fetch(endpoint, source)
        record = normalize_object(result.json())
        if record is None:
            raise ShapeMismatchError(
                f"Unexpected response shape from {endpoint}: expected a JSON object"
            )
        return record

    # ── Creators ───────────────────────────────────────────────────────

    def get_creators(
        self, service: str | None = None, source: ApiSource = ApiSource.KEMONO
    ) -> list[Creator]:
        """List all creators, optionally restricted to one service.

        The listing is served as ``creators.txt`` but holds a JSON array.
        When it cannot be fetched at all, creators are derived from a blank
        post search instead.
        """
        try:
            records = self._fetch_list("/v1/creators.txt", source)
        except MirrorError as e:
            logger.warning("Creator listing failed, deriving from posts: %s", e)
            return self._creators_from_posts(service, source)

        creators = parse_creators(records)
        logger.info("Fetched %d creators from %s", len(creators), source.value)
        if _wants_all(service):
            return creators
        return [c for c in creators if c.service == service]

    def _creators_from_posts(
        self, service: str | None, source: ApiSource
    ) -> list[Creator]:
        try:
            posts = self.search_posts(" ", offset=0, source=source)
        except MirrorError as e:
            logger.warning("Deriving creators from posts failed: %s", e)
            return []

        now = int(time.time())
        seen: set[tuple[str, str]] = set()
        creators: list[Creator] = []
        for post in posts:
            if not _wants_all(service) and post.service != service:
                continue
            key = (post.service, post.user)
            if key in seen:
                continue
            seen.add(key)
            creators.append(
                Creator(
                    id=post.user,
                    service=post.service,
                    name=f"Creator {post.user}",
                    indexed=now,
                    updated=now,
                )
            )
        return creators

    def get_creator(
        self, service: str, creator_id: str, source: ApiSource = ApiSource.KEMONO
    ) -> Creator:
        endpoint = f"/v1/{service}/user/{creator_id.strip()}/profile"
        return parse_creator(self._fetch_object(endpoint, source))

    def get_creator_links(
        self, service: str, creator_id: str, source: ApiSource = ApiSource.KEMONO
    ) -> list[dict]:
        endpoint = f"/v1/{service}/user/{creator_id.strip()}/links"
        result = self.fetch(endpoint, source)
        decoded = result.json()
        if parse_shape(decoded).kind == ShapeKind.UNKNOWN:
            raise ShapeMismatchError(
                f"Unexpected response shape from {endpoint}: expected a list or object"
            )
        return normalize_list(decoded, allow_single=True)

    # ── Posts ──────────────────────────────────────────────────────────

    def get_creator_posts(
        self,
        service: str,
        creator_id: str,
        offset: int = 0,
        source: ApiSource = ApiSource.KEMONO,
    ) -> list[Post]:
        endpoint = f"/v1/{service}/user/{creator_id.strip()}/posts"
        return parse_posts(self._fetch_list(endpoint, source, params={"o": offset}))

    def get_post(
        self,
        service: str,
        creator_id: str,
        post_id: str,
        source: ApiSource = ApiSource.KEMONO,
    ) -> Post:
        endpoint = f"/v1/{service}/user/{creator_id.strip()}/post/{post_id.strip()}"
        return parse_post(self._fetch_object(endpoint, source))

    def search_posts(
        self,
        query: str,
        offset: int = 0,
        limit: int = 50,
        source: ApiSource = ApiSource.KEMONO,
    ) -> list[Post]:
        params: dict[str, Any] = {}
        if query.strip():
            params["q"] = query
        params["o"] = offset
        params["l"] = limit
        return parse_posts(self._fetch_list("/v1/posts", source, params=params))

    # ── Comments ───────────────────────────────────────────────────────

    def get_comments(
        self,
        post_id: str,
        service: str,
        creator_id: str,
        source: ApiSource = ApiSource.KEMONO,
    ) -> list[dict]:
        """Raw comment records, or ``[]`` when every header variant fails.

        The comments endpoint only answers reliably with ``Accept: text/css``
        and sometimes wraps its JSON in non-JSON text, so several header
        sets are tried and the body is scanned for embedded JSON.
        """
        endpoint = f"/v1/{service}/user/{creator_id}/post/{post_id}/comments"
        variants = comment_header_variants()
        for i, headers in enumerate(variants, start=1):
            try:
                result = self.fetch(endpoint, source, extra_headers=headers)
            except MirrorError as e:
                logger.debug("Comment header variant %d/%d failed: %s", i, len(variants), e)
                continue

            if result.status_code != 200:
                logger.debug(
                    "Comment header variant %d/%d returned %d",
                    i, len(variants), result.status_code,
                )
                continue

            records = normalize_list(result.json(), allow_single=True)
            if records:
                logger.debug("Comment header variant %d worked", i)
                return records

        logger.debug("All comment header variants failed for %s", endpoint)
        return []

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
