# ollachat/infra/llm/ollama_client.py
from __future__ import annotations
import logging
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple
import requests

from ollachat.constants import DEFAULT_OLLAMA, DEFAULT_TIMEOUT
from .base import ChunkStream, ImageRef, ImageReference, Message, ModelClient, RawImage, StreamOptions
from .errors import TransportError

log = logging.getLogger("models")

ImageResolver = Callable[[str], bytes]


class _ResponseStream(ChunkStream):
    def __init__(self, response: requests.Response, chunk_size: Optional[int]):
        self._response = response
        self._chunk_size = chunk_size

    def __iter__(self) -> Iterator[bytes]:
        # chunk_size=None hands over data as it arrives on the socket
        for chunk in self._response.iter_content(chunk_size=self._chunk_size):
            if chunk:
                yield chunk

    def close(self) -> None:
        self._response.close()


class OllamaClient(ModelClient):
    def __init__(self, base_url: str = DEFAULT_OLLAMA, timeout: int = DEFAULT_TIMEOUT, *,
                 session: Optional[requests.Session] = None,
                 chunk_size: Optional[int] = None,
                 image_resolver: Optional[ImageResolver] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.image_resolver = image_resolver
        self._http = session or requests.Session()

    # -------- wire format --------
    def prepare_images(self, images: Sequence[ImageRef]) -> Tuple[RawImage, ...]:
        """Resolve every ImageReference to bytes up front so a turn is only recorded if it can be sent."""
        return tuple(self._resolve(img) for img in images)

    def _resolve(self, image: ImageRef) -> RawImage:
        if isinstance(image, RawImage):
            return image
        if not isinstance(image, ImageReference):
            raise ValueError(f"unsupported image payload: {type(image).__name__}")
        if self.image_resolver is None:
            raise ValueError(f"no resolver for image reference {image.ref_id!r}")
        try:
            data = self.image_resolver(image.ref_id)
        except (OSError, LookupError) as e:
            raise ValueError(f"cannot resolve image reference {image.ref_id!r}: {e}") from e
        return RawImage(bytes(data))

    def _wire_image(self, image: ImageRef) -> str:
        return self._resolve(image).to_base64()

    def build_request_body(self, messages: List[Message], options: StreamOptions, *, stream: bool) -> Dict:
        wire = []
        for m in messages:
            md = {"role": m.role.value, "content": m.content}
            if m.images:
                md["images"] = [self._wire_image(img) for img in m.images]
            wire.append(md)
        return {
            "model": options.model_id,
            "messages": wire,
            "stream": stream,
            "options": options.to_wire(),
        }

    # -------- endpoints --------
    def open_stream(self, messages: List[Message], options: StreamOptions) -> ChunkStream:
        payload = self.build_request_body(messages, options, stream=True)
        url = f"{self.base_url}/api/chat"
        try:
            r = self._http.post(url, json=payload, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Network error: {e}") from e
        if not r.ok:
            status = r.status_code
            r.close()
            raise TransportError(f"Network error: {status}", status_code=status)
        if r.raw is None:
            r.close()
            raise TransportError("Streaming not supported: response has no body", status_code=r.status_code)
        log.debug("Opened chat stream for %s (%d messages)", options.model_id, len(messages))
        return _ResponseStream(r, self.chunk_size)

    def chat(self, messages: List[Message], options: StreamOptions) -> str:
        payload = self.build_request_body(messages, options, stream=False)
        url = f"{self.base_url}/api/chat"
        try:
            r = self._http.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Network error: {e}") from e
        if not r.ok:
            raise TransportError(f"Network error: {r.status_code}", status_code=r.status_code)
        try:
            data = r.json()
        except ValueError as e:
            raise TransportError(f"Invalid response body: {e}", status_code=r.status_code) from e
        msg = (data.get("message") or {}) if isinstance(data, dict) else {}
        return msg.get("content") or ""

    def list_models(self) -> List[str]:
        try:
            r = self._http.get(f"{self.base_url}/api/tags", timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Error loading models: {e}") from e
        if not r.ok:
            raise TransportError(f"Error loading models: {r.status_code}", status_code=r.status_code)
        try:
            data = r.json()
        except ValueError as e:
            raise TransportError(f"Error loading models: {e}", status_code=r.status_code) from e
        models = data.get("models") if isinstance(data, dict) else None
        names = [m.get("name") for m in (models or []) if isinstance(m, dict)]
        return sorted({n for n in names if n})
