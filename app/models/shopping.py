"""
Visual shopping domain models.

Everything the conversation core reads or writes:
  - Phase / RequiredAction: the closed control vocabularies of the oracle
  - Decision: one structured oracle answer (immutable)
  - ImageBlob: self-describing image bytes with a reversible data-URI form
  - Product / Evaluation / TryOnResult: tool payloads attached to messages
  - Message / SessionState: the append-only log and its owning aggregate

Wire names follow the oracle's JSON schema (thought, current_phase, ...)
and the frontend's camelCase (imageUrl); Python code uses snake_case.
"""

import base64
import binascii
import re
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer


class Phase(str, Enum):
    """Stage of the shopping journey."""
    IDENTIFY_SUBJECT = "IDENTIFY_SUBJECT"
    GET_USER_IMAGE = "GET_USER_IMAGE"
    PREFERENCE_SEARCH = "PREFERENCE_SEARCH"
    SELECT_PRODUCT = "SELECT_PRODUCT"
    VIRTUAL_TRYON = "VIRTUAL_TRYON"
    EVALUATION = "EVALUATION"


class RequiredAction(str, Enum):
    """Side effect the orchestrator owes after applying a decision."""
    NONE = "NONE"
    ASK_IMAGE = "ASK_IMAGE"
    CALL_SEARCH_TOOL = "CALL_SEARCH_TOOL"
    CALL_VTON_TOOL = "CALL_VTON_TOOL"
    CALL_EVAL_TOOL = "CALL_EVAL_TOOL"


# ── Images ───────────────────────────────────────────────────────────

_DATA_URI = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)


class ImageBlob(BaseModel):
    """Raw image bytes plus their declared mime type."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/png"

    @classmethod
    def from_data_uri(cls, uri: str) -> "ImageBlob":
        """Parse ``data:<mime>;base64,<payload>``. Raises ValueError if malformed."""
        match = _DATA_URI.match(uri.strip())
        if not match:
            raise ValueError("Image must be a base64 data URI (data:<mime>;base64,...)")
        try:
            data = base64.b64decode(match.group(2), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Image payload is not valid base64: {e}") from e
        return cls(data=data, mime_type=match.group(1))

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @model_serializer(mode="plain", when_used="json")
    def _serialize_json(self) -> str:
        # JSON consumers get the data URI, which round-trips byte for byte
        return self.to_data_uri()


# ── Oracle decision ──────────────────────────────────────────────────

class ToolParameters(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    search_query: Optional[str] = None
    vton_prompt: Optional[str] = None


class Decision(BaseModel):
    """One structured answer from the decision oracle. Never mutated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    rationale: str = Field(alias="thought")
    user_message: str
    phase: Phase = Field(alias="current_phase")
    action: RequiredAction = Field(alias="required_action")
    tool_parameters: Optional[ToolParameters] = None


# ── Tool payloads ────────────────────────────────────────────────────

class Product(BaseModel):
    """A search hit. Opaque to the core apart from default-filling."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    name: str = ""
    price: str = ""
    image_url: str = Field(default="", alias="imageUrl")
    description: str = ""
    link: Optional[str] = None
    source: Optional[str] = None

    @field_validator("id", "name", "price", "image_url", "description", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        # Providers send numeric ids/prices now and then
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value


class ProductOffer(BaseModel):
    products: list[Product] = Field(default_factory=list)


class Evaluation(BaseModel):
    score: float
    reason: str


class TryOnResult(BaseModel):
    image: ImageBlob
    evaluation: Evaluation
    product_id: str = ""
    synthesized: bool = True   # False when the reference image is echoed back


# ── Conversation ─────────────────────────────────────────────────────

class Message(BaseModel):
    id: str
    role: Literal["user", "assistant"]
    text: str = ""
    attached_image: Optional[ImageBlob] = None
    product_offer: Optional[ProductOffer] = None
    try_on_result: Optional[TryOnResult] = None
    decision: Optional[Decision] = None


class SessionState(BaseModel):
    """The single mutable aggregate of one shopping conversation."""

    session_id: str
    messages: list[Message] = Field(default_factory=list)
    phase: Phase = Phase.IDENTIFY_SUBJECT
    reference_image: Optional[ImageBlob] = None
    busy: bool = False
    upload_requested: bool = False

    def next_message_id(self) -> str:
        return f"msg-{len(self.messages) + 1}"

    def last_user_text(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user":
                return message.text
        return ""
