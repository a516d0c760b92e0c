# agents/extraction.py
from __future__ import annotations

import asyncio
import logging
import math
from functools import partial
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

from agents.errors import (
    ConfigurationError,
    NoDataError,
    ValidationError,
    describe,
    to_classified,
)
from agents.firecrawl_client import MISSING_KEY_MESSAGE
from agents.platforms import SUPPORTED_PLATFORMS, normalize_platform
from agents.retry import RetryConfig, retry_with_backoff
from comparison.models import ExtractedProduct, ProductFields

logger = logging.getLogger("dealfinder.extraction")

SUPPORTED_CURRENCIES = ("USD", "EUR", "GBP", "CAD", "MXN")
DEFAULT_EXTRACTION_TIMEOUT_MS = 30000

PRODUCT_EXTRACTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "The product title or name"},
        "price": {"type": "number", "description": "Current selling price as a number"},
        "currency": {
            "type": "string",
            "description": "Currency code (USD, EUR, etc.)",
            "enum": list(SUPPORTED_CURRENCIES),
        },
        "originalPrice": {
            "type": "number",
            "description": "Original price before discount (if different from current price)",
        },
        "brand": {"type": "string", "description": "Product brand or manufacturer"},
        "description": {"type": "string", "description": "Product description or details"},
        "category": {"type": "string", "description": "Product category or department"},
        "images": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Array of image URLs for the product",
        },
        "availability": {
            "type": "boolean",
            "description": "Whether the product is in stock and available for purchase",
        },
        "platform": {
            "type": "string",
            "description": "E-commerce platform (amazon, ebay, walmart, bestbuy, target, mercadolibre)",
            "enum": list(SUPPORTED_PLATFORMS),
        },
    },
    "required": ["name", "price", "currency", "platform", "availability"],
}

EXTRACTION_PROMPT = (
    "Extract detailed product information from this e-commerce page. Focus on the main product "
    "being sold, including current price, brand, description, and availability status. If the "
    "product is on sale, include both current and original prices."
)

NO_DATA_MESSAGE = "Failed to extract product data from URL - no data returned from extraction service"
MISSING_FIELDS_MESSAGE = "Missing required product information from extraction"


# ----------------------------- Payload location ----------------------------- #
# The service has nested the structured payload differently across API
# versions. Each strategy returns the payload or None; the first hit wins.

def _from_root_json(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    value = body.get("json")
    return value if isinstance(value, dict) and value else None


def _from_data_json(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    data = body.get("data")
    if not isinstance(data, dict):
        return None
    value = data.get("json")
    return value if isinstance(value, dict) and value else None


def _from_flat_data(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    data = body.get("data")
    # A `data` block that has a `json` slot is a document wrapper, not the payload.
    if not isinstance(data, dict) or not data or "json" in data:
        return None
    return data


PAYLOAD_STRATEGIES: Tuple[Tuple[str, Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]], ...] = (
    ("json", _from_root_json),
    ("data.json", _from_data_json),
    ("data", _from_flat_data),
)


def locate_payload(body: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(body, dict):
        return None
    for name, strategy in PAYLOAD_STRATEGIES:
        payload = strategy(body)
        if payload is not None:
            logger.debug("Structured payload found under %r", name)
            return payload
    return None


# ------------------------------ Normalization ------------------------------- #
def safe_optional_string(value: Any) -> Optional[str]:
    """None/empty -> absent; numbers and booleans are stringified."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value if value.strip() else None
    return None


def safe_optional_number(value: Any) -> Optional[float]:
    """None/empty/NaN/booleans/non-numeric -> absent; numeric strings are converted."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def validate_url(url: Any) -> str:
    if not url or not isinstance(url, str):
        raise ValidationError("Invalid URL provided")
    try:
        parsed = urlparse(url.strip())
    except ValueError as exc:
        raise ValidationError("Invalid URL format") from exc
    if not parsed.scheme or not parsed.netloc:
        raise ValidationError("Invalid URL format")
    return url.strip()


def validate_payload(payload: Dict[str, Any]) -> None:
    name = payload.get("name")
    price = payload.get("price")
    currency = payload.get("currency")

    if not isinstance(name, str) or not name.strip():
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price):
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    if not isinstance(currency, str) or not currency.strip():
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    if price < 0:
        raise ValidationError(f"{MISSING_FIELDS_MESSAGE}: price must not be negative")


def normalize_extracted(payload: Dict[str, Any], url: str) -> ProductFields:
    """Map a validated payload to product fields, dropping absent optionals."""
    name = payload["name"].strip()
    price = float(payload["price"])

    fields: Dict[str, Any] = {
        "name": name,
        "price": price,
        "currency": payload["currency"].strip().upper(),
        "platform": normalize_platform(payload.get("platform"), url),
        "url": url,
        "search_query": name,
        "availability": payload["availability"] if isinstance(payload.get("availability"), bool) else True,
    }

    original_price = safe_optional_number(payload.get("originalPrice"))
    if original_price and original_price > 0 and original_price != price:
        fields["original_price"] = original_price

    images = payload.get("images")
    if isinstance(images, list) and images:
        image_url = safe_optional_string(images[0])
        if image_url:
            fields["image_url"] = image_url

    for key in ("brand", "category", "description"):
        value = safe_optional_string(payload.get(key))
        if value is not None:
            fields[key] = value

    return ProductFields(**fields)


# -------------------------------- Extractor --------------------------------- #
class ProductExtractor:
    """
    Extract one product page into a stored Product.

    The external call, payload lookup and validation run under the backoff
    retrier; whatever finally fails is recorded on the Search row (if any)
    and re-raised as a ClassifiedError.
    """

    def __init__(
        self,
        client,
        store,
        retry_config: Optional[RetryConfig] = None,
        timeout_ms: int = DEFAULT_EXTRACTION_TIMEOUT_MS,
        sleep: Callable = asyncio.sleep,
    ):
        self.client = client
        self.store = store
        self.retry_config = retry_config
        self.timeout_ms = timeout_ms
        self.sleep = sleep

    async def extract(self, url: str, search_id: Optional[str] = None) -> ExtractedProduct:
        logger.info("Extracting product from URL: %s", url)
        try:
            fields = await self._extract_fields(url)
            product_id = await asyncio.to_thread(self.store.insert_product, fields)
        except Exception as exc:
            logger.error("Failed to extract product from %s: %s", url, describe(exc))
            classified = to_classified(exc, "extraction")
            if search_id:
                await self._record_failure(search_id, classified.message)
            raise classified from exc

        if search_id:
            await self._record_success(search_id)
        return ExtractedProduct(product_id=product_id, **fields.to_record())

    async def _extract_fields(self, url: str) -> ProductFields:
        url = validate_url(url)
        if not self.client.is_configured:
            raise ConfigurationError(MISSING_KEY_MESSAGE)

        payload = await retry_with_backoff(
            partial(self._scrape_once, url),
            self.retry_config,
            context=f"extraction of {url}",
            sleep=self.sleep,
        )
        return normalize_extracted(payload, url)

    async def _scrape_once(self, url: str) -> Dict[str, Any]:
        body = await asyncio.to_thread(
            self.client.scrape_json, url, PRODUCT_EXTRACTION_SCHEMA, EXTRACTION_PROMPT, self.timeout_ms,
        )
        payload = locate_payload(body)
        if payload is None:
            logger.warning("No structured data in extraction response for %s: %.300s", url, body)
            raise NoDataError(NO_DATA_MESSAGE)
        validate_payload(payload)
        return payload

    async def _record_failure(self, search_id: str, message: str) -> None:
        try:
            await asyncio.to_thread(self.store.update_search_status, search_id, False, None, message)
        except Exception:
            # The caller still gets the extraction error; a lost analytics row is only logged.
            logger.exception("Could not record extraction failure on search %s", search_id)

    async def _record_success(self, search_id: str) -> None:
        try:
            await asyncio.to_thread(self.store.update_search_status, search_id, True)
        except Exception:
            # The product is already stored; the extraction still counts as done.
            logger.exception("Could not record extraction success on search %s", search_id)
