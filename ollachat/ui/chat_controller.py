# ollachat/ui/chat_controller.py
from __future__ import annotations
import logging
from typing import Optional, Sequence
from PyQt6.QtCore import QObject, Qt, pyqtSignal

from ollachat.core.conversation import Conversation, TurnResult
from ollachat.infra.llm.thread_broker import ThreadBroker

log = logging.getLogger("chat")


class ChatController(QObject):
    """
    Glue between a chat display widget and a Conversation.

    Responsibilities:
    - Run each turn on the ThreadBroker so the GUI thread never blocks on the network.
    - Forward deltas to the display as they arrive, in order.
    - Surface stop / error notices as system lines.

    The display is duck-typed: begin_assistant_stream() -> row,
    stream_chunk(row, text), end_assistant_stream(row),
    append_message(role, text) and set_streaming(bool).
    """

    turn_finished = pyqtSignal(object)   # TurnResult, or None if the job raised

    def __init__(self, chat_display, conversation: Conversation, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.chat = chat_display
        self.conversation = conversation
        self.broker = ThreadBroker(self)

        # Broker → UI
        self.broker.job_token.connect(self._on_job_token, Qt.ConnectionType.QueuedConnection)
        self.broker.job_finished.connect(self._on_job_finished, Qt.ConnectionType.QueuedConnection)
        self.broker.job_error.connect(self._on_job_error, Qt.ConnectionType.QueuedConnection)

        self._active_row: Optional[int] = None
        self._active_ticket: int = -1
        self._row_filled = False

    @property
    def is_streaming(self) -> bool:
        return self._active_ticket != -1

    def send_text(self, text: str, images: Sequence = ()) -> int:
        """Queue a user turn; returns the broker ticket."""
        if self.is_streaming:
            log.warning("Send ignored: a reply is still streaming")
            return -1
        self._active_row = self.chat.begin_assistant_stream()
        self._row_filled = False
        self.chat.set_streaming(True)
        self._active_ticket = self.broker.submit(self.conversation.send, text, tuple(images))
        return self._active_ticket

    def stop(self):
        self.broker.stop_active()

    # ---------- Slots ----------
    def _on_job_token(self, ticket: int, chunk: str):
        if ticket == self._active_ticket and self._active_row is not None:
            self.chat.stream_chunk(self._active_row, chunk)
            self._row_filled = True

    def _on_job_finished(self, ticket: int, status: str, result: object):
        if ticket != self._active_ticket:
            return
        if self._active_row is not None:
            # blocking turns deliver the whole reply at once, with no deltas
            if isinstance(result, TurnResult) and result.text and not self._row_filled:
                self.chat.stream_chunk(self._active_row, result.text)
            self.chat.end_assistant_stream(self._active_row)
        if isinstance(result, TurnResult) and result.notice:
            self.chat.append_message("system", result.notice)
        self._reset_active()
        self.turn_finished.emit(result)

    def _on_job_error(self, ticket: int, message: str):
        if ticket == self._active_ticket:
            self.chat.append_message("system", f"Error occurred: {message}")

    def _reset_active(self):
        self.chat.set_streaming(False)
        self._active_row = None
        self._active_ticket = -1
        self._row_filled = False

    def hard_kill(self) -> bool:
        """
        Kill switch for any background LLM work.
        Intended to be called from the window's closeEvent before shutdown.
        """
        self.broker.clear_queue(include_active=True)
        if self.is_streaming:
            self._reset_active()
        return True
