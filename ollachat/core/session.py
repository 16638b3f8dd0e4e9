# ollachat/core/session.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ollachat.constants import DEFAULT_NUM_CTX, DEFAULT_SYSTEM_PROMPT, DEFAULT_TEMPERATURE
from ollachat.core.settings import Settings
from ollachat.infra.llm.base import StreamOptions


@dataclass
class Preferences:
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    temperature: Optional[float] = DEFAULT_TEMPERATURE
    num_ctx: Optional[int] = DEFAULT_NUM_CTX
    streaming: bool = True
    model_id: Optional[str] = None       # None → resolved from the server's model list


class SessionManager:
    """
    Chat preferences hydrated from (and persisted to) a Settings store.

    Key names are kept stable so an existing chat.json keeps working.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.prefs = Preferences()
        p = self.prefs
        p.system_prompt = settings.get("systemPrompt", p.system_prompt)
        p.temperature   = _as_float(settings.get("temperature"), p.temperature)
        p.num_ctx       = _as_int(settings.get("numCtx"), p.num_ctx)
        p.streaming     = bool(settings.get("isStreaming", p.streaming))
        p.model_id      = settings.get("selectedModel") or None

    # unified mutators (persist)
    def set_system_prompt(self, prompt: str):
        self.prefs.system_prompt = prompt
        self.settings.set("systemPrompt", prompt)

    def set_temperature(self, value: Optional[float]):
        self.prefs.temperature = value
        self.settings.set("temperature", value)

    def set_num_ctx(self, value: Optional[int]):
        self.prefs.num_ctx = value
        self.settings.set("numCtx", value)

    def set_streaming(self, on: bool):
        self.prefs.streaming = bool(on)
        self.settings.set("isStreaming", bool(on))

    # --- Model helpers ---

    def get_model_id(self) -> Optional[str]:
        return self.prefs.model_id

    def set_model_id(self, model_id: str):
        self.prefs.model_id = model_id
        self.settings.set("selectedModel", model_id)

    def stream_options(self) -> StreamOptions:
        if not self.prefs.model_id:
            raise ValueError("no model selected; resolve one before sending")
        return StreamOptions(
            model_id=self.prefs.model_id,
            temperature=self.prefs.temperature,
            context_size=self.prefs.num_ctx,
        )


def _as_float(value, default):
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default

def _as_int(value, default):
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
