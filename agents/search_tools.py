# agents/search_tools.py
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from agents.errors import ConfigurationError, ValidationError, describe
from agents.platforms import (
    build_platform_query,
    is_product_url,
    result_cap,
    target_platforms,
)
from comparison.models import AlternativesResult, ProductFields

logger = logging.getLogger("dealfinder.search")

# $99.99, $1,299.99, $15
PRICE_RE = re.compile(r"\$([0-9,]+(?:\.[0-9]{2})?)")

DEFAULT_CURRENCY = "USD"
DEFAULT_SEARCH_TIMEOUT_MS = 20000
# Extra hits requested per platform so filtering still leaves enough candidates.
OVERFETCH = 2


def extract_price(text: Optional[str]) -> float:
    """First dollar amount in `text`, commas stripped; 0.0 when there is none."""
    if not text:
        return 0.0
    m = PRICE_RE.search(text)
    if not m:
        return 0.0
    try:
        return float(m.group(1).replace(",", ""))
    except ValueError:
        return 0.0


# ------------------------------ Result location ----------------------------- #
def _from_data_web(body: Dict[str, Any]):
    data = body.get("data")
    return data.get("web") if isinstance(data, dict) else None


def _from_web(body: Dict[str, Any]):
    return body.get("web")


def _from_results(body: Dict[str, Any]):
    return body.get("results")


def _from_data_list(body: Dict[str, Any]):
    data = body.get("data")
    return data if isinstance(data, list) else None


RESULT_STRATEGIES: Tuple[Tuple[str, Callable[[Dict[str, Any]], Any]], ...] = (
    ("data.web", _from_data_web),
    ("web", _from_web),
    ("results", _from_results),
    ("data", _from_data_list),
)


def locate_results(body: Any) -> List[Any]:
    if not isinstance(body, dict):
        return []
    for _name, strategy in RESULT_STRATEGIES:
        results = strategy(body)
        if isinstance(results, list):
            return results
    return []


# ------------------------------ Candidate build ----------------------------- #
def build_candidate(item: Dict[str, Any], platform: str, search_query: str) -> Optional[ProductFields]:
    """A minimal product from one search hit, or None when the hit is not usable."""
    url = item.get("url")
    if not url or not is_product_url(url, platform):
        return None

    description = item.get("description") or item.get("snippet") or ""
    price = extract_price(description)
    # No price signal, nothing to compare.
    if price <= 0:
        return None

    fields: Dict[str, Any] = {
        "name": (item.get("title") or "").strip() or "Unknown Product",
        "price": price,
        "currency": DEFAULT_CURRENCY,
        "platform": platform,
        "url": url,
        "search_query": search_query,
        "availability": True,
    }
    if isinstance(description, str) and description.strip():
        fields["description"] = description
    return ProductFields(**fields)


def process_search_results(body: Any, platform: str, search_query: str) -> List[ProductFields]:
    products: List[ProductFields] = []
    for item in locate_results(body):
        if not isinstance(item, dict):
            continue
        try:
            candidate = build_candidate(item, platform, search_query)
        except (PydanticValidationError, TypeError, AttributeError) as exc:
            logger.warning("Failed to process %s search result: %s", platform, describe(exc))
            continue
        if candidate is not None:
            products.append(candidate)
    return products


# -------------------------------- Aggregator -------------------------------- #
class SearchAggregator:
    """
    Fan a query out to every platform except the origin, keep the first few
    priced product hits per platform, and store them as products.
    """

    def __init__(self, client, store, timeout_ms: int = DEFAULT_SEARCH_TIMEOUT_MS):
        self.client = client
        self.store = store
        self.timeout_ms = timeout_ms

    async def search_platform(self, search_query: str, platform: str) -> List[ProductFields]:
        platform_query = build_platform_query(search_query, platform)
        cap = result_cap(platform)
        logger.info("Searching %s for: %s", platform, platform_query)

        body = await asyncio.to_thread(self.client.search, platform_query, cap + OVERFETCH, self.timeout_ms)
        return process_search_results(body, platform, search_query)[:cap]

    async def _search_platform_safely(self, search_query: str, platform: str) -> List[ProductFields]:
        try:
            return await self.search_platform(search_query, platform)
        except Exception as exc:
            logger.warning("Failed to search %s: %s", platform, describe(exc))
            return []

    async def collect_candidates(self, search_query: str, origin_platform: str) -> List[ProductFields]:
        platforms = target_platforms(origin_platform)
        batches = await asyncio.gather(
            *(self._search_platform_safely(search_query, p) for p in platforms)
        )
        return [candidate for batch in batches for candidate in batch]

    async def search_alternatives(
        self,
        search_query: str,
        origin_platform: str,
        comparison_id: Optional[str] = None,
    ) -> AlternativesResult:
        if not isinstance(search_query, str) or not search_query.strip():
            raise ValidationError("Invalid search query provided")
        if not isinstance(origin_platform, str) or not origin_platform.strip():
            raise ValidationError("Invalid original platform provided")
        if not self.client.is_configured:
            raise ConfigurationError("Search service API key not configured")

        search_query = search_query.strip()
        logger.info("Searching for similar products (comparison=%s): %s", comparison_id, search_query)

        candidates = await self.collect_candidates(search_query, origin_platform.strip().lower())
        if not candidates:
            logger.info("No similar products found on other platforms for %r", search_query)
            return AlternativesResult()

        product_ids: List[str] = []
        for candidate in candidates:
            product_ids.append(await asyncio.to_thread(self.store.insert_product, candidate))
        return AlternativesResult(product_ids=product_ids, products=candidates)
