"""
Product search service: powered by Gemini with Google Search grounding.

Async wrapper around the sync google-genai SDK (same pattern as tryon.py).
Returns raw product dicts exactly as the model produced them; filling in
missing fields is the search tool's job, not this module's.
"""

import asyncio
import json
import logging
import re
import time

from ..core.config import get_settings

logger = logging.getLogger(__name__)

_gemini_client = None

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _get_gemini_client():
    """Lazy-load and cache the google-genai client as a singleton."""
    global _gemini_client
    if _gemini_client is not None:
        return _gemini_client
    try:
        from google import genai
        settings = get_settings()
        api_key = settings.gemini_api_key
        if not api_key:
            raise ValueError("GEMINI_API_KEY is required for product search")
        _gemini_client = genai.Client(api_key=api_key)
        return _gemini_client
    except ImportError:
        raise ImportError(
            "google-genai package is required for product search. "
            "Install it with: pip install google-genai"
        )


def _build_search_prompt(query: str, count: int) -> str:
    return f"""Find {count} real fashion/furniture products for: "{query}".
Return ONLY a JSON array, no prose.
IMPORTANT: Try to include the real 'link' and 'source' (e.g. Amazon, Rakuten, Uniqlo) if found via grounding.
Each object must have: id, name, price, imageUrl, description, link, source."""


def parse_products(text: str) -> list[dict]:
    """
    Decode the model's answer into a list of product dicts.

    Grounded answers can't use a response schema, so the model sometimes
    wraps the array in a markdown fence or under a "products" key.
    """
    cleaned = _CODE_FENCE.sub("", text.strip())
    data = json.loads(cleaned)
    if isinstance(data, dict):
        data = data.get("products", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of products, got {type(data).__name__}")
    return [item for item in data if isinstance(item, dict)]


# ── Sync function (run in executor for async compatibility) ──────────


def _sync_search(query: str, count: int) -> list[dict]:
    from google.genai import types

    settings = get_settings()
    client = _get_gemini_client()

    response = client.models.generate_content(
        model=settings.search_model,
        contents=_build_search_prompt(query, count),
        config=types.GenerateContentConfig(
            tools=[types.Tool(google_search=types.GoogleSearch())],
        ),
    )
    if not response.text:
        return []
    return parse_products(response.text)


# ── Async public API ─────────────────────────────────────────────────


async def search_products(query: str, count: int = 0) -> list[dict]:
    """
    Search for products matching a free-text query. Runs the SDK in a thread.

    Raises on provider or decoding errors. An empty list means "no products".
    """
    count = count or get_settings().search_result_count
    start = time.monotonic()
    products = await asyncio.to_thread(_sync_search, query, count)
    logger.info(
        "Product search: %dms | query=%s | %d results",
        int((time.monotonic() - start) * 1000), query[:80], len(products),
    )
    return products
