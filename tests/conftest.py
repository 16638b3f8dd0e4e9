"""Shared pytest fixtures for OllaChat tests."""

import pytest

from ollachat.core.session import SessionManager
from ollachat.core.settings import Settings
from ollachat.core.transcript import Transcript
from ollachat.infra.llm.base import Message, Role, StreamOptions


@pytest.fixture
def options():
    return StreamOptions(model_id="llama3", temperature=0.7, context_size=4096)


@pytest.fixture
def settings(tmp_path):
    return Settings(tmp_path / "chat.json")


@pytest.fixture
def session(settings):
    """Preferences with a model already chosen so no lookup is needed."""
    mgr = SessionManager(settings)
    mgr.set_model_id("llama3")
    return mgr


@pytest.fixture
def transcript():
    return Transcript([Message(Role.USER, "Hi there")])


@pytest.fixture
def deltas():
    """Collects on_delta calls."""
    return []
