# ollachat/core/transcript.py
from __future__ import annotations
import dataclasses, threading
from typing import Iterator, List, Optional, Tuple

from ollachat.infra.llm.base import Message, Role
from ollachat.infra.llm.errors import InvariantViolation


class Transcript:
    """
    Ordered conversation history shared by the request builder and the renderer.

    Append-only, except that the in-flight assistant turn (always the last
    message) may have its content replaced while a stream is running.
    """

    def __init__(self, messages: Optional[List[Message]] = None):
        self._lock = threading.RLock()
        self._messages: List[Message] = list(messages or [])
        self._in_flight = False
        self._parts: List[str] = []    # deltas not yet folded into the last message

    # -------- reads --------
    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __getitem__(self, index: int) -> Message:
        with self._lock:
            self._fold()
            return self._messages[index]

    @property
    def messages(self) -> Tuple[Message, ...]:
        with self._lock:
            self._fold()
            return tuple(self._messages)

    @property
    def last(self) -> Optional[Message]:
        with self._lock:
            self._fold()
            return self._messages[-1] if self._messages else None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # -------- writes --------
    def append(self, message: Message) -> None:
        with self._lock:
            if self._in_flight:
                raise InvariantViolation("cannot append while an assistant turn is in flight")
            self._messages.append(message)

    def begin_turn(self) -> Message:
        """Pre-append the empty assistant message that the next stream will fill."""
        with self._lock:
            if self._in_flight:
                raise InvariantViolation("another assistant turn is already in flight")
            placeholder = Message(Role.ASSISTANT, "")
            self._messages.append(placeholder)
            self._in_flight = True
            self._parts = []
            return placeholder

    def amend(self, content: str) -> None:
        """Replace the in-flight assistant content wholesale."""
        with self._lock:
            self._check_turn("amend")
            self._parts = []
            self._messages[-1] = dataclasses.replace(self._messages[-1], content=content)

    def extend(self, delta: str) -> None:
        """Add one streamed delta to the in-flight assistant turn. Joined lazily on the next read."""
        with self._lock:
            self._check_turn("extend")
            self._parts.append(delta)

    def finish_turn(self) -> None:
        with self._lock:
            self._fold()
            self._in_flight = False

    def clear(self) -> None:
        with self._lock:
            if self._in_flight:
                raise InvariantViolation("cannot clear while an assistant turn is in flight")
            self._messages.clear()

    def snapshot_for_request(self, system_prompt: str) -> List[Message]:
        with self._lock:
            self._fold()
            history = [m for m in self._messages if m.content or m.images]
        return [Message(Role.SYSTEM, system_prompt or ""), *history]

    # -------- internals --------
    def _check_turn(self, op: str) -> None:
        if not self._in_flight or not self._messages or self._messages[-1].role is not Role.ASSISTANT:
            raise InvariantViolation(f"{op}() needs an in-flight assistant turn")

    def _fold(self) -> None:
        # caller holds the lock
        if self._parts:
            last = self._messages[-1]
            self._messages[-1] = dataclasses.replace(last, content=last.content + "".join(self._parts))
            self._parts = []
