"""
Try-on synthesis tool: (reference image, product description) → new image.
"""

import logging
from typing import Awaitable, Callable, Optional

from ..core.flags import get_flags
from ..models import ImageBlob
from ..services import tryon
from .base import BaseTool

logger = logging.getLogger(__name__)

SynthesisProvider = Callable[[bytes, str, str], Awaitable[tuple[bytes, str]]]


def is_decodable(image: Optional[ImageBlob]) -> bool:
    return image is not None and bool(image.data) and image.mime_type.startswith("image/")


class SynthesisTool(BaseTool):
    name = "virtual_tryon"
    description = "Render a product onto the user's reference photo without altering the subject."

    def __init__(self, provider: Optional[SynthesisProvider] = None):
        self._provider = provider or tryon.generate_tryon

    async def _execute(self, image: ImageBlob, description: str) -> ImageBlob:
        if not is_decodable(image):
            raise ValueError("Reference image cannot be decoded")
        if not get_flags().enable_tryon:
            raise RuntimeError("Virtual try-on is disabled (FF_ENABLE_TRYON=false)")

        data, mime_type = await self._provider(image.data, image.mime_type, description)
        if not data:
            raise RuntimeError("No image generated")
        return ImageBlob(data=data, mime_type=mime_type or "image/png")
