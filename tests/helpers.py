# tests/helpers.py
from agents.errors import TransientServiceError


def product_payload(**over):
    base = {
        "name": "Sony WH-1000XM5 Wireless Headphones",
        "price": 348.0,
        "currency": "USD",
        "platform": "amazon",
        "availability": True,
        "brand": "Sony",
        "images": ["https://m.media-amazon.com/images/I/xm5.jpg"],
    }
    base.update(over)
    return base


def scrape_body(payload):
    """Current response shape: the payload sits under data.json."""
    return {"success": True, "data": {"json": payload, "metadata": {"statusCode": 200}}}


def web_hit(url, title="Sony WH-1000XM5", description="Great headphones for $299.99"):
    return {"url": url, "title": title, "description": description}


def search_body(*hits):
    return {"success": True, "data": {"web": list(hits)}}


class FakeFirecrawl:
    """
    Scripted stand-in for FirecrawlClient.

    `scrape` is a list of bodies/exceptions consumed one per call; the last
    entry repeats. `search` maps a site domain ("ebay.com") to a body or an
    exception; unmapped domains return no hits.
    """

    def __init__(self, scrape=None, search=None, api_key="fc-test"):
        self.api_key = api_key
        self.scrape_script = list(scrape or [])
        self.search_responses = dict(search or {})
        self.scrape_calls = []
        self.search_calls = []

    @property
    def is_configured(self):
        return bool(self.api_key)

    def scrape_json(self, url, schema, prompt, timeout_ms):
        self.scrape_calls.append(url)
        if not self.scrape_script:
            raise TransientServiceError("Firecrawl service error (HTTP 500)")
        step = self.scrape_script.pop(0) if len(self.scrape_script) > 1 else self.scrape_script[0]
        if isinstance(step, Exception):
            raise step
        return step

    def search(self, query, limit, timeout_ms=20000):
        self.search_calls.append((query, limit))
        domain = query.rsplit("site:", 1)[-1]
        resp = self.search_responses.get(domain, search_body())
        if isinstance(resp, Exception):
            raise resp
        return resp

    @property
    def searched_domains(self):
        return [q.rsplit("site:", 1)[-1] for q, _ in self.search_calls]


class SleepRecorder:
    """Async sleep replacement that records requested delays (seconds)."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


async def no_sleep(_seconds):
    return None
