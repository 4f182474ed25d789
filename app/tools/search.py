"""
Product search tool: free-text query in, fully populated Products out.

Providers are sloppy about optional fields, so every result is backfilled:
sequential id, a placeholder image keyed by position, a search-engine link
and a generic source label. Products that already carry everything pass
through untouched.
"""

import logging
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

from pydantic import ValidationError

from ..core.flags import get_flags
from ..models import Product
from ..services import product_search
from .base import BaseTool

logger = logging.getLogger(__name__)

SearchProvider = Callable[[str], Awaitable[list[dict]]]

DEFAULT_SOURCE = "Online Store"

# Shown when the search provider is down, so the chat always has cards.
PLACEHOLDER_PRODUCTS: tuple[dict, ...] = (
    {
        "id": "1", "name": "Summer Floral Dress", "price": "¥5,000",
        "description": "Lightweight and airy.",
        "imageUrl": "https://picsum.photos/300/400?random=1", "link": "#", "source": "Sample Store",
    },
    {
        "id": "2", "name": "Denim Jacket", "price": "¥12,000",
        "description": "Classic fit.",
        "imageUrl": "https://picsum.photos/300/400?random=2", "link": "#", "source": "Sample Store",
    },
    {
        "id": "3", "name": "Casual T-Shirt", "price": "¥2,500",
        "description": "Cotton blend.",
        "imageUrl": "https://picsum.photos/300/400?random=3", "link": "#", "source": "Sample Store",
    },
)


def placeholder_image_url(index: int) -> str:
    return f"https://picsum.photos/300/400?random={index}"


def search_link(name: str) -> str:
    return f"https://www.google.com/search?q={quote(name, safe='')}"


def normalize_product(raw: dict, index: int) -> Product:
    """Validate one provider record and fill in whatever it left out."""
    product = Product.model_validate(raw)
    updates = {}
    if not product.id:
        updates["id"] = f"prod-{index}"
    if not product.image_url.startswith("http"):
        updates["image_url"] = placeholder_image_url(index)
    if not product.link:
        updates["link"] = search_link(product.name)
    if not product.source:
        updates["source"] = DEFAULT_SOURCE
    return product.model_copy(update=updates) if updates else product


def normalize_products(raw_products: list[dict]) -> list[Product]:
    """Normalize every record; a record that cannot be read at all is skipped."""
    products = []
    for index, raw in enumerate(raw_products):
        try:
            products.append(normalize_product(raw, index))
        except ValidationError as e:
            logger.warning("Skipping unreadable product #%d: %d error(s)", index, e.error_count())
    return products


def placeholder_products() -> list[Product]:
    return [Product.model_validate(p) for p in PLACEHOLDER_PRODUCTS]


class SearchTool(BaseTool):
    name = "product_search"
    description = "Find real products for a free-text query (Gemini + Google Search grounding)."

    def __init__(self, provider: Optional[SearchProvider] = None):
        self._provider = provider or product_search.search_products

    async def _execute(self, query: str) -> list[Product]:
        if not get_flags().use_search_grounding:
            raise RuntimeError("Product search is disabled (FF_USE_SEARCH_GROUNDING=false)")
        raw_products = await self._provider(query)
        products = normalize_products(raw_products or [])
        logger.info("Search '%s' → %d products", query[:80], len(products))
        return products
