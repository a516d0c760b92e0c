# agents/agent_dealfinder.py
import logging
from typing import Optional

from langchain_core.tools import tool

from agents.errors import ClassifiedError, describe, to_classified
from backend.config import get_settings
from backend.telemetry import configure_logging
from comparison.orchestrator import ComparisonOrchestrator, build_orchestrator
from comparison.ranking import best_deal, comparison_rows

logger = logging.getLogger("dealfinder.agent")

_orchestrator: Optional[ComparisonOrchestrator] = None


def get_orchestrator() -> ComparisonOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        configure_logging(settings.log_level)
        _orchestrator = build_orchestrator(settings)
    return _orchestrator


@tool
async def find_deals(url: str) -> dict:
    """Find cheaper alternatives for a product page on other stores.
    Args:
        url: product page URL, e.g. "https://www.amazon.com/dp/B0CHX1W1XY"
    Returns the comparison (origin product, alternatives, status) as a dict
    with the cheapest-first `table` and the `best_deal` alternative,
    or {"_error": message} when the product could not be compared.
    """
    try:
        view = await get_orchestrator().start(url)
    except ClassifiedError as e:
        return {"_error": e.message}
    except Exception as e:
        logger.exception("find_deals failed for %s: %s", url, describe(e))
        return {"_error": to_classified(e, "extraction").message}
    result = view.model_dump(mode="json")
    deal = best_deal(view)
    result["best_deal"] = deal.model_dump(mode="json") if deal is not None else None
    result["table"] = comparison_rows(view)
    return result
