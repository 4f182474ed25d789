"""
Fit evaluation attached to every try-on result.

StaticEvaluator is a placeholder judgment, not an analysis of the image.
Swap in a real Evaluator through the orchestrator constructor.
"""

from typing import Protocol

from ..models import Evaluation, ImageBlob, Product
from ..orchestrator import messages

STATIC_SCORE = 8.8


class Evaluator(Protocol):
    async def evaluate(self, product: Product, image: ImageBlob) -> Evaluation:
        ...


class StaticEvaluator:
    def __init__(self, score: float = STATIC_SCORE, reason: str = "", locale: str = ""):
        self.score = score
        self.reason = reason
        self.locale = locale

    async def evaluate(self, product: Product, image: ImageBlob) -> Evaluation:
        return Evaluation(score=self.score, reason=self.reason or messages.text("evaluation_reason", self.locale))
