"""Configuration loading and saving.

Config file location: ~/.config/mirror-gallery/config.toml

Schema:
    [domains]
    kemono = "kemono.cr"
    coomer = "coomer.st"
    kemono_fallbacks = ["kemono.su"]
    coomer_fallbacks = []

    [fetch]
    timeout = 15.0

    [storage]
    state_dir = "~/.local/share/mirror-gallery"

    [search]
    base_url = "https://kemono-api.mbaharip.com"

    [app]
    default_source = "kemono"

Every key is optional; a missing file means all defaults.
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

from .client import DEFAULT_TIMEOUT
from .domains import (
    DEFAULT_COOMER_DOMAIN,
    DEFAULT_KEMONO_DOMAIN,
    DomainRegistry,
    clean_domain,
    is_valid_domain,
)
from .models import ApiSource
from .search import SEARCH_BASE_URL

CONFIG_DIR = Path.home() / ".config" / "mirror-gallery"
CONFIG_FILE = CONFIG_DIR / "config.toml"
DEFAULT_STATE_DIR = Path.home() / ".local" / "share" / "mirror-gallery"


@dataclass
class DomainConfig:
    kemono: str = DEFAULT_KEMONO_DOMAIN
    coomer: str = DEFAULT_COOMER_DOMAIN
    kemono_fallbacks: list[str] = field(default_factory=list)
    coomer_fallbacks: list[str] = field(default_factory=list)

    def registry(self) -> DomainRegistry:
        return DomainRegistry(
            kemono_domain=self.kemono,
            coomer_domain=self.coomer,
            kemono_fallbacks=tuple(self.kemono_fallbacks),
            coomer_fallbacks=tuple(self.coomer_fallbacks),
        )


@dataclass
class AppConfig:
    domains: DomainConfig = field(default_factory=DomainConfig)
    timeout: float = DEFAULT_TIMEOUT
    state_dir: Path = DEFAULT_STATE_DIR
    search_base_url: str = SEARCH_BASE_URL
    default_source: ApiSource = ApiSource.KEMONO


def _domain(value: str, key: str) -> str:
    cleaned = clean_domain(str(value))
    if not is_valid_domain(cleaned):
        raise ValueError(f"Invalid domain for {key}: {value!r}")
    return cleaned


def _domain_list(values, key: str) -> list[str]:
    if not isinstance(values, list):
        raise ValueError(f"{key} must be a list of domains")
    return [_domain(v, key) for v in values]


def load_config(config_path: Path = CONFIG_FILE) -> AppConfig:
    """Load and validate config from TOML file."""
    if not config_path.exists():
        return AppConfig()

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    domain_data = data.get("domains", {})
    fetch_data = data.get("fetch", {})
    storage_data = data.get("storage", {})
    search_data = data.get("search", {})
    app_data = data.get("app", {})

    domains = DomainConfig(
        kemono=_domain(domain_data.get("kemono", DEFAULT_KEMONO_DOMAIN), "domains.kemono"),
        coomer=_domain(domain_data.get("coomer", DEFAULT_COOMER_DOMAIN), "domains.coomer"),
        kemono_fallbacks=_domain_list(
            domain_data.get("kemono_fallbacks", []), "domains.kemono_fallbacks"
        ),
        coomer_fallbacks=_domain_list(
            domain_data.get("coomer_fallbacks", []), "domains.coomer_fallbacks"
        ),
    )

    timeout = float(fetch_data.get("timeout", DEFAULT_TIMEOUT))
    if timeout <= 0:
        raise ValueError("fetch.timeout must be positive")

    return AppConfig(
        domains=domains,
        timeout=timeout,
        state_dir=Path(storage_data.get("state_dir", DEFAULT_STATE_DIR)).expanduser(),
        search_base_url=search_data.get("base_url", SEARCH_BASE_URL),
        default_source=ApiSource.parse(app_data.get("default_source")),
    )


def save_config(config: AppConfig, config_path: Path = CONFIG_FILE) -> None:
    """Write config to TOML file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "domains": {
            "kemono": config.domains.kemono,
            "coomer": config.domains.coomer,
            "kemono_fallbacks": list(config.domains.kemono_fallbacks),
            "coomer_fallbacks": list(config.domains.coomer_fallbacks),
        },
        "fetch": {
            "timeout": config.timeout,
        },
        "storage": {
            "state_dir": str(config.state_dir),
        },
        "search": {
            "base_url": config.search_base_url,
        },
        "app": {
            "default_source": config.default_source.value,
        },
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)


def config_exists(config_path: Path = CONFIG_FILE) -> bool:
    """Check if config file exists."""
    return config_path.exists()
