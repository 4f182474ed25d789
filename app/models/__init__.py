"""
All domain models. Imported here so callers can use ``from app.models import ...``.
"""

from .shopping import (
    Decision,
    Evaluation,
    ImageBlob,
    Message,
    Phase,
    Product,
    ProductOffer,
    RequiredAction,
    SessionState,
    ToolParameters,
    TryOnResult,
)

__all__ = [
    "Phase", "RequiredAction",
    "Decision", "ToolParameters",
    "ImageBlob",
    "Product", "ProductOffer", "Evaluation", "TryOnResult",
    "Message", "SessionState",
]
