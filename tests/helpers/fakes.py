"""Hand-rolled stand-ins for the backend used across the unit tests."""

import json
from typing import Callable, List, Optional, Sequence, Union

from ollachat.infra.llm.base import ChunkStream, ImageReference, ModelClient
from ollachat.infra.llm.errors import TransportError

Chunk = Union[bytes, str, Exception, Callable[[], bytes]]


def frame(content: str, **extra) -> str:
    """One NDJSON line as the chat endpoint sends it."""
    obj = {"message": {"role": "assistant", "content": content}, "done": False}
    obj.update(extra)
    return json.dumps(obj) + "\n"


def done_frame(reason: str = "stop") -> str:
    return json.dumps({"message": {"role": "assistant", "content": ""}, "done": True,
                       "done_reason": reason, "eval_count": 3}) + "\n"


class FakeStream(ChunkStream):
    """
    Yields the given chunks in order. An Exception in the list is raised at
    that point; a callable is invoked and its return value yielded.
    """

    def __init__(self, chunks: Sequence[Chunk]):
        self.chunks = list(chunks)
        self.closed = False
        self.reads = 0

    def __iter__(self):
        for chunk in self.chunks:
            self.reads += 1
            if isinstance(chunk, Exception):
                raise chunk
            if callable(chunk):
                chunk = chunk()
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk

    def close(self):
        self.closed = True


class FakeClient(ModelClient):
    def __init__(self, chunks: Sequence[Chunk] = (), *, reply: str = "", models: Optional[List[str]] = None,
                 fail: Optional[Exception] = None, known_images: Sequence[str] = ()):
        self.stream = FakeStream(chunks)
        self.reply = reply
        self.models = models
        self.fail = fail
        self.known_images = set(known_images)
        self.requests = []

    def prepare_images(self, images):
        for img in images:
            if isinstance(img, ImageReference) and img.ref_id not in self.known_images:
                raise ValueError(f"no resolver for image reference {img.ref_id!r}")
        return tuple(images)

    def open_stream(self, messages, options):
        self.requests.append((list(messages), options))
        if self.fail is not None:
            raise self.fail
        return self.stream

    def chat(self, messages, options):
        self.requests.append((list(messages), options))
        if self.fail is not None:
            raise self.fail
        return self.reply

    def list_models(self):
        if self.models is None:
            raise TransportError("Error loading models: connection refused")
        return list(self.models)
