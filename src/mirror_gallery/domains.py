"""Known mirror domains and the URL rules for API, media and thumbnails.

Both mirror families expose the same API under ``https://<domain>/api``.
Media lives on the ``n4.`` subdomain and thumbnails under
``img.<domain>/thumbnail/data``.
"""

import re
from dataclasses import dataclass

from .models import ApiSource

DEFAULT_KEMONO_DOMAIN = "kemono.cr"
DEFAULT_COOMER_DOMAIN = "coomer.st"

MEDIA_SUBDOMAIN = "n4"
THUMBNAIL_SUBDOMAIN = "img"

_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def is_valid_domain(domain: str) -> bool:
    if not domain:
        return False
    return bool(_DOMAIN_RE.match(domain))


def clean_domain(domain: str) -> str:
    """Strip scheme and trailing slash: ``https://kemono.cr/`` -> ``kemono.cr``."""
    cleaned = domain.strip()
    for scheme in ("http://", "https://"):
        if cleaned.startswith(scheme):
            cleaned = cleaned[len(scheme):]
            break
    return cleaned.rstrip("/")


def domain_suggestions() -> list[str]:
    return [
        "kemono.cr",
        "coomer.st",
        "kemono.su",
        "coomer.su",
        "kemono.party",
        "coomer.party",
    ]


def source_for_domain(domain: str) -> ApiSource:
    return ApiSource.COOMER if "coomer" in domain else ApiSource.KEMONO


@dataclass(frozen=True)
class DomainRegistry:
    """Per-family domain table.

    ``kemono_fallbacks``/``coomer_fallbacks`` are extra domains tried after
    the primary one, in order.
    """

    kemono_domain: str = DEFAULT_KEMONO_DOMAIN
    coomer_domain: str = DEFAULT_COOMER_DOMAIN
    kemono_fallbacks: tuple[str, ...] = ()
    coomer_fallbacks: tuple[str, ...] = ()

    def domain(self, source: ApiSource) -> str:
        if source == ApiSource.COOMER:
            return self.coomer_domain
        return self.kemono_domain

    def site_base(self, source: ApiSource) -> str:
        return f"https://{self.domain(source)}"

    def api_base(self, source: ApiSource) -> str:
        return f"https://{self.domain(source)}/api"

    def media_base(self, source: ApiSource) -> str:
        return f"https://{MEDIA_SUBDOMAIN}.{self.domain(source)}"

    def thumbnail_base(self, source: ApiSource) -> str:
        return f"https://{THUMBNAIL_SUBDOMAIN}.{self.domain(source)}/thumbnail/data"

    def candidate_domains(self, source: ApiSource) -> list[str]:
        """Ordered API base URLs to try for one logical request."""
        if source == ApiSource.COOMER:
            domains = [self.coomer_domain, *self.coomer_fallbacks]
        else:
            domains = [self.kemono_domain, *self.kemono_fallbacks]

        bases: list[str] = []
        for domain in domains:
            base = f"https://{clean_domain(domain)}/api"
            if base not in bases:
                bases.append(base)
        return bases

    def media_url(self, path: str, source: ApiSource) -> str:
        absolute = _absolute_url(path)
        if absolute:
            return absolute
        return f"{self.media_base(source)}/{path.lstrip('/')}"

    def thumbnail_url(self, path: str, source: ApiSource) -> str:
        absolute = _absolute_url(path)
        if absolute:
            return absolute
        # API paths look like "/data/ab/cd/..." but thumbnails drop "data/"
        clean = path.lstrip("/")
        if clean.startswith("data/"):
            clean = clean[len("data/"):]
        return f"{self.thumbnail_base(source)}/{clean}"


def _absolute_url(path: str) -> str | None:
    if path.startswith("http"):
        return path
    if path.startswith("//"):
        return f"https:{path}"
    return None


DEFAULT_REGISTRY = DomainRegistry()
