# ollachat/infra/llm/base.py
from __future__ import annotations
import base64, binascii
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class RawImage:
    data: bytes

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class ImageReference:
    ref_id: str  # resolved to bytes by the client's image_resolver


ImageRef = Union[RawImage, ImageReference]


def normalize_image(value: Any) -> ImageRef:
    """
    Collapse the image shapes callers hand us into one tagged variant.

    Accepts raw bytes, a base64 string (optionally a data: URL), or a dict
    carrying "base64"/"data_base64". Already-normalized values pass through.
    """
    if isinstance(value, (RawImage, ImageReference)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return RawImage(bytes(value))
    if isinstance(value, dict):
        b64 = value.get("base64") or value.get("data_base64")
        if isinstance(b64, str) and b64.strip():
            return RawImage(_decode_b64(b64))
        raise ValueError("image dict carries no base64 payload")
    if isinstance(value, str) and value.strip():
        return RawImage(_decode_b64(value))
    raise ValueError(f"unsupported image payload: {type(value).__name__}")


def _decode_b64(text: str) -> bytes:
    text = text.strip()
    if text.startswith("data:"):
        # data:image/jpeg;base64,<payload>
        _, _, text = text.partition(",")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid base64 image payload: {exc}") from exc


@dataclass(frozen=True)
class Message:
    role: Role
    content: str = ""
    images: Tuple[ImageRef, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "content", self.content or "")
        object.__setattr__(self, "images", tuple(normalize_image(i) for i in (self.images or ())))


@dataclass
class StreamEvent:
    type: str               # "delta" | "end" | "error"
    text: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[Dict] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class StreamOptions:
    model_id: str
    temperature: Optional[float] = None
    context_size: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        opts: Dict[str, Any] = {}
        if self.temperature is not None:
            opts["temperature"] = float(self.temperature)
        if self.context_size:
            opts["num_ctx"] = int(self.context_size)
        return opts


class ChunkStream:
    """An open response body: iterate for raw byte chunks, close to release it."""
    def __iter__(self) -> Iterator[bytes]:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class ModelClient:
    """Abstract client."""
    def prepare_images(self, images: Sequence[ImageRef]) -> Tuple[ImageRef, ...]:
        """Turn attachments into what this client can put on the wire; ValueError if one cannot be sent."""
        return tuple(images)

    def open_stream(self, messages: List[Message], options: StreamOptions) -> ChunkStream:
        raise NotImplementedError

    def chat(self, messages: List[Message], options: StreamOptions) -> str:
        raise NotImplementedError

    def list_models(self) -> List[str]:
        raise NotImplementedError
