# ollachat/infra/llm/errors.py
from __future__ import annotations
from typing import Optional


class StreamError(Exception):
    """Base class for failures raised by the streaming pipeline."""


class TransportError(StreamError):
    """The request could not be issued or the backend refused it."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StreamInterrupted(StreamError):
    """Reading the body failed after at least one chunk arrived."""
    def __init__(self, message: str, partial_text: str = ""):
        super().__init__(message)
        self.partial_text = partial_text


class ProtocolFrameError(StreamError):
    """A single frame could not be interpreted; the stream carries on."""
    def __init__(self, message: str, frame: str = ""):
        super().__init__(message)
        self.frame = frame


class CancelledByUser(StreamError):
    """Cooperative cancellation was observed at a checkpoint."""


class InvariantViolation(RuntimeError):
    """Programmer error: the pipeline was driven in a way it must never be."""
