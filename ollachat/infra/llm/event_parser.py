# ollachat/infra/llm/event_parser.py
from __future__ import annotations
import json, logging
from typing import Any, Dict, List, Optional

from .base import StreamEvent
from .errors import ProtocolFrameError

log = logging.getLogger("stream")

USAGE_KEYS = ("prompt_eval_count", "eval_count", "total_duration")


class EventParser:
    """
    Reads one NDJSON frame of an Ollama chat stream.

    Each frame looks like {"message": {"role": "...", "content": "Δ"}, "done": bool, ...}.
    Frames that are not JSON objects, or that carry no content, are skipped:
    the backend is free to interleave heartbeats and control objects.
    """

    def __init__(self):
        self.skipped = 0

    def parse(self, frame: str) -> Optional[str]:
        obj = self._load(frame)
        if obj is None:
            return None
        delta = _content_of(obj)
        if delta is None:
            self._skip(ProtocolFrameError("frame has no message.content", frame))
        return delta

    def decode(self, frame: str) -> List[StreamEvent]:
        obj = self._load(frame)
        if obj is None:
            return []
        if obj.get("error"):
            return [StreamEvent(type="error", error=str(obj["error"]))]
        events: List[StreamEvent] = []
        delta = _content_of(obj)
        if delta is not None:
            events.append(StreamEvent(type="delta", text=delta))
        # the closing frame may carry a last delta as well as the done marker
        if obj.get("done"):
            events.append(StreamEvent(
                type="end",
                finish_reason=(obj.get("done_reason") or None),
                usage={k: obj.get(k) for k in USAGE_KEYS},
            ))
        if not events:
            self._skip(ProtocolFrameError("frame has no message.content", frame))
        return events

    def _load(self, frame: str) -> Optional[Dict[str, Any]]:
        try:
            obj = json.loads(frame)
        except ValueError as exc:
            self._skip(ProtocolFrameError(f"not JSON: {exc}", frame))
            return None
        if not isinstance(obj, dict):
            self._skip(ProtocolFrameError("frame is not an object", frame))
            return None
        return obj

    def _skip(self, err: ProtocolFrameError) -> None:
        self.skipped += 1
        log.debug("Skipped frame in stream (%s): %.200r", err, err.frame)


def _content_of(obj: Dict[str, Any]) -> Optional[str]:
    msg = obj.get("message")
    if not isinstance(msg, dict):
        return None
    content = msg.get("content")
    if isinstance(content, str) and content:
        return content
    return None


