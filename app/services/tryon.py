"""
Virtual try-on service: powered by Google Gemini native image generation.

Async wrapper around the sync google-genai SDK.

Takes the user's reference photo plus a product description and asks the
image model to put the product on the subject (or into the room) while
keeping the person, pose, lighting and background untouched. The point is
an honest fit check, not a beautified render.
"""

import asyncio
import logging
import time
from typing import Optional

from ..core.config import get_settings

logger = logging.getLogger(__name__)

_gemini_client = None


def _get_gemini_client():
    """Lazy-load and cache the google-genai client as a singleton.

    The client MUST be cached. If it gets garbage-collected, its internal
    httpx connection closes mid-request.
    """
    global _gemini_client
    if _gemini_client is not None:
        return _gemini_client
    try:
        from google import genai
        settings = get_settings()
        api_key = settings.gemini_api_key
        if not api_key:
            raise ValueError("GEMINI_API_KEY is required for virtual try-on")
        _gemini_client = genai.Client(api_key=api_key)
        return _gemini_client
    except ImportError:
        raise ImportError(
            "google-genai package is required for virtual try-on. "
            "Install it with: pip install google-genai"
        )


def build_tryon_prompt(product_description: str) -> str:
    """Build the image-editing instruction sent alongside the reference photo."""
    return f"""Image Editing Task: Overlay or Replace clothing.
Target Product: {product_description}.

CRITICAL INSTRUCTIONS:
1. PRESERVE THE USER'S EXACT BODY SHAPE AND PROPORTIONS. Do not slim, do not elongate legs, do not beautify. The goal is a realistic fit check.
2. Maintain the original pose, lighting, and background exactly.
3. The product should look photorealistic on the subject.
4. If the product is a piece of furniture, place it realistically in the room scene, maintaining perspective."""


# ── Sync function (run in executor for async compatibility) ──────────


def _sync_generate_tryon(
    image_bytes: bytes,
    mime_type: str,
    product_description: str,
) -> Optional[tuple[bytes, str]]:
    """
    Render the product onto the reference image.

    Returns: (image_bytes, mime_type) of the first image part, or None.
    """
    from google.genai import types

    settings = get_settings()
    client = _get_gemini_client()

    response = client.models.generate_content(
        model=settings.tryon_model,
        contents=[
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            build_tryon_prompt(product_description),
        ],
        config=types.GenerateContentConfig(
            response_modalities=["TEXT", "IMAGE"],
        ),
    )

    for candidate in response.candidates or []:
        if candidate.content is None:
            continue
        for part in candidate.content.parts or []:
            if part.inline_data is not None and part.inline_data.data:
                return part.inline_data.data, part.inline_data.mime_type or "image/png"
    return None


# ── Async public API ─────────────────────────────────────────────────


async def generate_tryon(
    image_bytes: bytes,
    mime_type: str,
    product_description: str,
) -> tuple[bytes, str]:
    """
    Generate a try-on image. Runs Gemini SDK in a thread.

    Returns: (image_bytes, mime_type). Raises RuntimeError if the model
    answered without an image.
    """
    start = time.monotonic()
    result = await asyncio.to_thread(
        _sync_generate_tryon, image_bytes, mime_type, product_description,
    )
    if result is None:
        raise RuntimeError("No image generated")
    logger.info(
        "Try-on generated: %dms | %d KB",
        int((time.monotonic() - start) * 1000), len(result[0]) // 1024,
    )
    return result
