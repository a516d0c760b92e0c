# comparison/orchestrator.py
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from agents.errors import ClassifiedError, describe, to_classified
from agents.extraction import ProductExtractor
from agents.firecrawl_client import FirecrawlClient
from agents.retry import RetryConfig
from agents.search_tools import SearchAggregator
from agents.serp_search import SerpApiSearchClient
from backend.config import Settings, get_settings
from backend.local_db.db import DealStore
from backend.telemetry import log_pipeline_event
from comparison.models import AlternativesResult, ComparisonView, ExtractedProduct

logger = logging.getLogger("dealfinder.orchestrator")


class ComparisonOrchestrator:
    """
    Drives a comparison through searching -> completed | failed.

    `start` is the whole submission flow for a pasted URL; `find_alternatives`
    is the search half on its own, for a comparison that already exists.
    """

    def __init__(
        self,
        store: DealStore,
        extractor: ProductExtractor,
        aggregator: SearchAggregator,
        slow_after_s: float = 30.0,
    ):
        self.store = store
        self.extractor = extractor
        self.aggregator = aggregator
        self.slow_after_s = slow_after_s

    async def find_alternatives(
        self,
        comparison_id: str,
        search_query: str,
        origin_platform: str,
    ) -> AlternativesResult:
        try:
            result = await self.aggregator.search_alternatives(search_query, origin_platform, comparison_id)
            await asyncio.to_thread(
                self.store.update_comparison, comparison_id, "completed", result.product_ids, None,
            )
        except Exception as exc:
            logger.error("Failed to search similar products for %s: %s", comparison_id, describe(exc))
            classified = to_classified(exc, "search")
            await self._mark_failed(comparison_id, classified.message)
            log_pipeline_event("comparison_failed", comparison_id=comparison_id, category=classified.category.value)
            raise classified from exc

        log_pipeline_event(
            "comparison_completed", comparison_id=comparison_id, alternatives=len(result.product_ids),
        )
        return result

    async def _mark_failed(self, comparison_id: str, message: str) -> None:
        try:
            await asyncio.to_thread(self.store.update_comparison, comparison_id, "failed", [], message)
        except Exception:
            logger.exception("Could not mark comparison %s as failed", comparison_id)

    async def start(
        self,
        url: str,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
        on_slow: Optional[Callable[[], None]] = None,
    ) -> ComparisonView:
        """
        Extract `url`, open a comparison for it and look for alternatives.

        `on_slow` is called once if extraction is still running after
        `slow_after_s`; the extraction itself keeps going.
        """
        search_id = await asyncio.to_thread(self.store.insert_search, url, False, user_agent, ip)
        log_pipeline_event("search_created", search_id=search_id, url=url)

        try:
            origin = await self._extract_with_slow_notice(url, search_id, on_slow)
        except ClassifiedError as exc:
            log_pipeline_event(
                "extraction_failed", search_id=search_id, category=exc.category.value, retryable=exc.retryable,
            )
            raise
        log_pipeline_event(
            "extraction_succeeded", search_id=search_id, product_id=origin.product_id, platform=origin.platform,
        )

        comparison_id = await asyncio.to_thread(
            self.store.insert_comparison, origin.product_id, origin.search_query,
        )
        await asyncio.to_thread(self.store.update_search_status, search_id, True, comparison_id)

        await self.find_alternatives(comparison_id, origin.search_query, origin.platform)
        return await asyncio.to_thread(self.store.get_comparison, comparison_id)

    async def _extract_with_slow_notice(
        self,
        url: str,
        search_id: str,
        on_slow: Optional[Callable[[], None]],
    ) -> ExtractedProduct:
        handle = None
        if on_slow is not None:
            loop = asyncio.get_running_loop()
            handle = loop.call_later(self.slow_after_s, self._notify_slow, on_slow, url)
        try:
            return await self.extractor.extract(url, search_id)
        finally:
            if handle is not None:
                handle.cancel()

    def _notify_slow(self, on_slow: Callable[[], None], url: str) -> None:
        log_pipeline_event("extraction_slow", url=url, after_s=self.slow_after_s)
        try:
            on_slow()
        except Exception:
            logger.exception("Slow-extraction callback failed")


def build_search_client(settings: Settings, firecrawl: Optional[FirecrawlClient] = None):
    if settings.search_provider == "serpapi":
        return SerpApiSearchClient(settings.serpapi_api_key)
    return firecrawl or FirecrawlClient.from_settings(settings)


def build_orchestrator(settings: Optional[Settings] = None, store: Optional[DealStore] = None) -> ComparisonOrchestrator:
    """Wire clients and store once at process start."""
    settings = settings or get_settings()
    store = store or DealStore.from_url(settings.database_url)

    firecrawl = FirecrawlClient.from_settings(settings)
    extractor = ProductExtractor(
        firecrawl,
        store,
        retry_config=RetryConfig.from_settings(settings),
        timeout_ms=settings.extraction_timeout_ms,
    )
    aggregator = SearchAggregator(
        build_search_client(settings, firecrawl),
        store,
        timeout_ms=settings.search_timeout_ms,
    )
    return ComparisonOrchestrator(store, extractor, aggregator, slow_after_s=settings.slow_extraction_warning_s)
