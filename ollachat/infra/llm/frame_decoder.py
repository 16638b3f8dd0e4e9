# ollachat/infra/llm/frame_decoder.py
from __future__ import annotations
import codecs
from typing import Iterator, List, Optional

DELIMITER = "\n"


class FrameDecoder:
    """
    Turns arbitrarily split response bytes into newline-terminated text frames.

    A chunk may end inside a frame, inside a multi-byte character or right
    before the delimiter; whatever is incomplete stays buffered until a later
    push completes it. Frames are split off eagerly on push, the returned
    iterator is only the delivery.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def push(self, data: bytes) -> Iterator[str]:
        self._buffer += self._decoder.decode(data)
        if DELIMITER not in self._buffer:
            return iter(())
        *complete, self._buffer = self._buffer.split(DELIMITER)
        return iter(self._clean(complete))

    def flush(self) -> Optional[str]:
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        frames = self._clean([rest])
        return frames[0] if frames else None

    @staticmethod
    def _clean(frames: List[str]) -> List[str]:
        out = []
        for frame in frames:
            if frame.endswith("\r"):
                frame = frame[:-1]
            # bare newlines are keep-alives, not frames
            if frame.strip():
                out.append(frame)
        return out
