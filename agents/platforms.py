# agents/platforms.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Pattern, Tuple
from urllib.parse import urlparse

Platform = Literal["amazon", "ebay", "walmart", "bestbuy", "target", "mercadolibre", "unknown"]

SUPPORTED_PLATFORMS: Tuple[str, ...] = ("amazon", "ebay", "walmart", "bestbuy", "target", "mercadolibre")

# Platforms we search for alternatives on, in the order results are merged.
SEARCH_PLATFORMS: Tuple[str, ...] = ("amazon", "ebay", "walmart", "bestbuy", "target")

MAX_PRODUCTS_PER_PLATFORM = 2

# Category / listing pages that never describe a single product.
NON_PRODUCT_PATH_MARKERS: Tuple[str, ...] = (
    "/search",
    "/category",
    "/departments",
    "/collections",
    "/b/",        # amazon browse nodes
    "/stores/",
)


@dataclass(frozen=True)
class PlatformConfig:
    name: str
    host_markers: Tuple[str, ...]
    search_domain: Optional[str] = None
    product_patterns: Tuple[Pattern[str], ...] = field(default_factory=tuple)
    result_cap: int = MAX_PRODUCTS_PER_PLATFORM


# Order matters: detection walks this table top to bottom and the first match wins.
PLATFORMS: Dict[str, PlatformConfig] = {
    "amazon": PlatformConfig(
        name="amazon",
        host_markers=("amazon.",),
        search_domain="amazon.com",
        product_patterns=(
            re.compile(r"/dp/[A-Z0-9]+", re.IGNORECASE),
            re.compile(r"/gp/product/[A-Z0-9]+", re.IGNORECASE),
        ),
    ),
    "ebay": PlatformConfig(
        name="ebay",
        host_markers=("ebay.",),
        search_domain="ebay.com",
        product_patterns=(re.compile(r"/itm/"), re.compile(r"/p/")),
    ),
    "walmart": PlatformConfig(
        name="walmart",
        host_markers=("walmart.",),
        search_domain="walmart.com",
        product_patterns=(re.compile(r"/ip/"),),
    ),
    "bestbuy": PlatformConfig(
        name="bestbuy",
        host_markers=("bestbuy.",),
        search_domain="bestbuy.com",
        product_patterns=(re.compile(r"/site/"),),
    ),
    "target": PlatformConfig(
        name="target",
        host_markers=("target.",),
        search_domain="target.com",
        product_patterns=(re.compile(r"/p/"),),
    ),
    "mercadolibre": PlatformConfig(
        name="mercadolibre",
        host_markers=("mercadolibre.", "mercadolivre."),
    ),
}


def detect_platform(url: str) -> str:
    """
    Map a URL's host to a known platform id. Never raises: anything that
    does not parse to a hostname is 'unknown'.
    """
    try:
        hostname = (urlparse(url).hostname or "").lower()
    except (TypeError, ValueError, AttributeError):
        return "unknown"
    if not hostname:
        return "unknown"

    for cfg in PLATFORMS.values():
        if any(marker in hostname for marker in cfg.host_markers):
            return cfg.name
    return "unknown"


def normalize_platform(value, url: str) -> str:
    """Keep a recognised platform value, otherwise fall back to host detection."""
    if isinstance(value, str) and value.strip().lower() in SUPPORTED_PLATFORMS:
        return value.strip().lower()
    return detect_platform(url)


def build_platform_query(base_query: str, platform: str) -> str:
    cfg = PLATFORMS.get(platform)
    site_filter = f"site:{cfg.search_domain}" if cfg and cfg.search_domain else ""
    return f"{base_query} {site_filter}".strip()


def is_product_url(url: str, platform: str) -> bool:
    """
    Heuristic check that a search hit points at a product detail page on
    `platform`. Platforms without patterns never match.
    """
    url_lower = (url or "").lower()
    if any(marker in url_lower for marker in NON_PRODUCT_PATH_MARKERS):
        return False

    cfg = PLATFORMS.get(platform)
    if cfg is None:
        return False
    return any(p.search(url_lower) for p in cfg.product_patterns)


def target_platforms(origin_platform: str) -> List[str]:
    return [p for p in SEARCH_PLATFORMS if p != origin_platform]


def result_cap(platform: str) -> int:
    cfg = PLATFORMS.get(platform)
    return cfg.result_cap if cfg else MAX_PRODUCTS_PER_PLATFORM
