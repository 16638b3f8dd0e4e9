# ollachat/core/conversation.py
from __future__ import annotations
import logging, threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ollachat.core.session import SessionManager
from ollachat.core.transcript import Transcript
from ollachat.infra.llm.base import Message, ModelClient, Role, normalize_image
from ollachat.infra.llm.errors import InvariantViolation, StreamInterrupted, TransportError
from ollachat.infra.llm.stream_session import CancellationToken, SessionState, StreamSession

log = logging.getLogger("chat")

STOPPED_NOTICE = "Streaming stopped by user."
EMPTY_NOTICE = "Model returned empty response."
IMAGE_HINT = "This model may not support images. Please try without images or use a multimodal model."


@dataclass
class TurnResult:
    status: SessionState
    text: str
    notice: Optional[str] = None     # user-visible system line, if any


def failure_notice(exc: Exception) -> str:
    msg = str(exc)
    if "images" in msg or "multimodal" in msg:
        return IMAGE_HINT
    return f"Error occurred: {msg}"


class Conversation:
    """
    Explicit per-chat state: the transcript, the preferences it is sent with,
    and the one stream that may be running against it.

    Responsibilities:
    - Record user turns and pre-append the in-flight assistant turn.
    - Run a StreamSession and mirror every delta into the transcript.
    - Commit completed, cancelled or interrupted output; keep transport
      failures out of the history.
    """

    def __init__(self, client: ModelClient, session: SessionManager, transcript: Optional[Transcript] = None):
        self.client = client
        self.session = session
        self.transcript = transcript if transcript is not None else Transcript()
        self._lock = threading.Lock()
        self._token: Optional[CancellationToken] = None
        self._busy = False

    @property
    def is_streaming(self) -> bool:
        return self._busy

    def cancel(self) -> None:
        token = self._token
        if token is not None:
            token.cancel()

    def reset(self) -> None:
        """Start a brand-new chat."""
        with self._lock:
            if self._busy:
                raise InvariantViolation("cannot reset while a turn is running")
            self.transcript.clear()

    def send(self, text: str, images: Sequence = (), *,
             on_delta: Optional[Callable[[str], None]] = None,
             cancel_token: Optional[CancellationToken] = None) -> TurnResult:
        text = (text or "").strip()
        if not text and not images:
            raise ValueError("nothing to send")
        with self._lock:
            if self._busy:
                raise InvariantViolation("a turn is already running for this conversation")
            self._busy = True
            self._token = cancel_token or CancellationToken()
        try:
            options = self.session.stream_options()
            try:
                # nothing goes into the transcript that the client could not send
                attachments = self.client.prepare_images([normalize_image(i) for i in images])
            except ValueError as exc:
                log.warning("Turn refused: %s", exc)
                return TurnResult(SessionState.FAILED, "", failure_notice(exc))
            self.transcript.append(Message(Role.USER, text, attachments))
            history = self.transcript.snapshot_for_request(self.session.prefs.system_prompt)
            if self.session.prefs.streaming:
                return self._stream(history, options, on_delta, self._token)
            return self._blocking(history, options)
        finally:
            with self._lock:
                self._busy = False
                self._token = None

    # ---------- internals ----------
    def _stream(self, history, options, on_delta, token) -> TurnResult:
        stream = StreamSession(self.client, token)
        self.transcript.begin_turn()

        def _delta(delta: str) -> None:
            self.transcript.extend(delta)
            if on_delta is not None:
                on_delta(delta)

        try:
            text = stream.start(history, options, _delta)
            self.transcript.amend(text)
        except StreamInterrupted as exc:
            log.warning("Turn interrupted; keeping %d chars", len(exc.partial_text))
            self.transcript.amend(exc.partial_text)
            return TurnResult(SessionState.FAILED, exc.partial_text, failure_notice(exc))
        except TransportError as exc:
            log.warning("Turn failed: %s", exc)
            # placeholder stays empty and is left out of later requests
            return TurnResult(SessionState.FAILED, "", failure_notice(exc))
        finally:
            self.transcript.finish_turn()

        return self._commit(stream, text)

    def _commit(self, stream: StreamSession, text: str) -> TurnResult:
        if stream.state is SessionState.CANCELLED:
            return TurnResult(stream.state, text, STOPPED_NOTICE)
        if not text and stream.backend_error:
            return TurnResult(SessionState.FAILED, "", failure_notice(Exception(stream.backend_error)))
        return TurnResult(stream.state, text)

    def _blocking(self, history, options) -> TurnResult:
        try:
            reply = self.client.chat(history, options)
        except TransportError as exc:
            return TurnResult(SessionState.FAILED, "", failure_notice(exc))
        if not reply:
            return TurnResult(SessionState.COMPLETED, "", EMPTY_NOTICE)
        self.transcript.append(Message(Role.ASSISTANT, reply))
        return TurnResult(SessionState.COMPLETED, reply)
