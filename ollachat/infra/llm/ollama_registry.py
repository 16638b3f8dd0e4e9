# ollachat/infra/llm/ollama_registry.py
from __future__ import annotations
import logging
from typing import List

from ollachat.constants import FALLBACK_MODEL
from .base import ModelClient
from .errors import TransportError

log = logging.getLogger("models")


def fetch_model_names(client: ModelClient) -> List[str]:
    """Model names from the server (deduplicated, sorted), or [] if it is not reachable."""
    try:
        return client.list_models()
    except TransportError as e:
        log.warning("Ollama not reachable (%s).", e)
        return []

def resolve_model(session, client: ModelClient) -> str:
    """
    Return the configured model; only when none is set, ask the server and
    take the first listed model (falling back to FALLBACK_MODEL). The choice
    is persisted so the lookup happens once.
    """
    model = session.get_model_id()
    if model:
        return model
    names = fetch_model_names(client)
    model = names[0] if names else FALLBACK_MODEL
    log.info("No model configured; selected %s", model)
    session.set_model_id(model)
    return model

def refresh_models(session, client: ModelClient) -> List[str]:
    """Re-list models; if the configured one vanished, select the first available."""
    names = fetch_model_names(client)
    current = session.get_model_id()
    if names and current not in names:
        log.info("Model %s not available; switching to %s", current, names[0])
        session.set_model_id(names[0])
    return names
