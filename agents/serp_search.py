# agents/serp_search.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from serpapi import GoogleSearch

from agents.errors import ConfigurationError, TransientServiceError

# SerpApi reports an empty result page through its `error` field.
_EMPTY_RESULTS_MARKER = "hasn't returned any results"


def _map_organic_result(r: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "url": r.get("link"),
        "title": r.get("title"),
        "description": r.get("snippet"),
    }


class SerpApiSearchClient:
    """
    Web search through SerpApi's Google engine, returning the same
    `{"results": [{url, title, description}]}` shape the aggregator reads.
    """

    def __init__(self, api_key: Optional[str], hl: str = "en", gl: str = "us"):
        self.api_key = api_key
        self.hl = hl
        self.gl = gl

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def search_raw(self, q: str, num: int) -> Dict[str, Any]:
        """
        Low-level call to SerpApi's Google engine. Returns raw SerpApi response dict.
        """
        if not self.is_configured:
            raise ConfigurationError("SerpApi API key not configured. Please set SERPAPI_API_KEY.")

        params = {
            "engine": "google",
            "q": q,
            "hl": self.hl,
            "gl": self.gl,
            "num": str(num),
            "api_key": self.api_key,
        }
        search = GoogleSearch(params)
        return search.get_dict()

    def search(self, query: str, limit: int, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        raw = self.search_raw(q=query, num=limit)

        if "error" in raw:
            if _EMPTY_RESULTS_MARKER in str(raw["error"]):
                return {"results": []}
            raise TransientServiceError(f"SerpApi error: {raw['error']}")

        results: List[Dict[str, Any]] = [
            _map_organic_result(r) for r in raw.get("organic_results", []) or []
        ]
        return {"results": results[:limit]}
