# ollachat/infra/llm/stream_session.py
from __future__ import annotations
import logging, threading
from enum import Enum
from typing import Callable, Dict, List, Optional

from .base import Message, ModelClient, StreamOptions
from .errors import CancelledByUser, InvariantViolation, StreamInterrupted, TransportError
from .event_parser import EventParser
from .frame_decoder import FrameDecoder

log = logging.getLogger("stream")

DeltaCallback = Callable[[str], None]


class SessionState(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CancellationToken:
    """Thread-safe, one-way cancellation flag shared between a caller and a session."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledByUser("stream cancelled by user")


class StreamSession:
    """
    One request/response exchange with the chat endpoint.

    The session is created when a send is initiated and is never reused.
    start() drives the response body through a FrameDecoder and an
    EventParser, calling on_delta for every content delta in backend order.
    Cancellation is cooperative: the token is checked before every read and
    before every delta, so no delta is delivered once it has been observed.
    """

    def __init__(self, client: ModelClient, token: Optional[CancellationToken] = None):
        self._client = client
        self._token = token or CancellationToken()
        self._lock = threading.Lock()
        self._text: List[str] = []
        self._state = SessionState.ACTIVE
        self._started = False
        self.finish_reason: Optional[str] = None
        self.usage: Optional[Dict] = None
        self.backend_error: Optional[str] = None

    # -------- public API --------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def text(self) -> str:
        with self._lock:
            return "".join(self._text)

    @property
    def token(self) -> CancellationToken:
        return self._token

    def cancel(self) -> None:
        if self._state is SessionState.ACTIVE:
            self._token.cancel()

    def start(self, messages: List[Message], options: StreamOptions, on_delta: DeltaCallback) -> str:
        with self._lock:
            if self._started:
                raise InvariantViolation("a StreamSession cannot be started twice")
            self._started = True

        if self._token.cancelled:
            self._state = SessionState.CANCELLED
            log.info("Stream cancelled before the request was sent")
            return ""

        try:
            stream = self._client.open_stream(messages, options)
        except TransportError as exc:
            self._state = SessionState.FAILED
            log.warning("Stream handshake failed: %s", exc)
            raise
        except Exception:
            self._state = SessionState.FAILED
            log.exception("Could not open the stream")
            raise

        try:
            return self._pump(stream, on_delta)
        finally:
            try:
                stream.close()
            except Exception:
                log.debug("Error while releasing the response", exc_info=True)
            if self._state is SessionState.ACTIVE:
                # on_delta raised
                self._state = SessionState.FAILED

    # -------- internals --------
    def _pump(self, stream, on_delta: DeltaCallback) -> str:
        decoder = FrameDecoder()
        parser = EventParser()
        chunks = iter(stream)
        received = False
        try:
            while True:
                self._token.raise_if_cancelled()
                try:
                    chunk = next(chunks)
                except StopIteration:
                    break
                except Exception as exc:
                    self._state = SessionState.FAILED
                    if not received:
                        log.warning("Stream failed before any data: %s", exc)
                        raise TransportError(f"Stream failed: {exc}") from exc
                    log.warning("Stream interrupted after %d chars: %s", len(self.text), exc)
                    raise StreamInterrupted(f"Stream interrupted: {exc}", partial_text=self.text) from exc
                received = True
                for frame in decoder.push(chunk):
                    self._handle(frame, parser, on_delta)

            tail = decoder.flush()
            if tail is not None:
                self._handle(tail, parser, on_delta)
        except CancelledByUser:
            self._state = SessionState.CANCELLED
            log.info("Stream cancelled by user (%d chars kept)", len(self.text))
            return self.text

        self._state = SessionState.COMPLETED
        log.info("Stream completed (%d chars, finish_reason=%s, skipped=%d)",
                 len(self.text), self.finish_reason, parser.skipped)
        return self.text

    def _handle(self, frame: str, parser: EventParser, on_delta: DeltaCallback) -> None:
        for event in parser.decode(frame):
            if event.type == "error":
                self.backend_error = event.error
                log.warning("Backend reported an error in stream: %s", event.error)
            elif event.type == "end":
                self.finish_reason, self.usage = event.finish_reason, event.usage
            else:
                self._token.raise_if_cancelled()
                with self._lock:
                    self._text.append(event.text)
                on_delta(event.text)
