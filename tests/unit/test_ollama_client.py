"""Unit tests for the requests-based Ollama client."""

from unittest.mock import MagicMock, Mock

import pytest
import requests

from ollachat.infra.llm.base import ImageReference, Message, RawImage, Role, StreamOptions
from ollachat.infra.llm.errors import TransportError
from ollachat.infra.llm.ollama_client import OllamaClient


def make_response(status=200, chunks=(), json_data=None):
    r = MagicMock(spec=requests.Response)
    r.status_code = status
    r.ok = 200 <= status < 400
    r.raw = object()
    r.iter_content.return_value = iter(chunks)
    r.json.return_value = json_data
    return r


@pytest.fixture
def http():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(http):
    return OllamaClient("http://ollama.local:11434/", timeout=5, session=http)


MESSAGES = [Message(Role.SYSTEM, "sys"), Message(Role.USER, "hi")]


class TestRequestBody:
    def test_shape(self, client, options):
        body = client.build_request_body(MESSAGES, options, stream=True)
        assert body == {
            "model": "llama3",
            "messages": [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}],
            "stream": True,
            "options": {"temperature": 0.7, "num_ctx": 4096},
        }

    def test_optional_options_are_omitted(self, client):
        body = client.build_request_body(MESSAGES, StreamOptions(model_id="m"), stream=False)
        assert body["options"] == {}
        body = client.build_request_body(MESSAGES, StreamOptions(model_id="m", temperature=0, context_size=0), stream=False)
        assert body["options"] == {"temperature": 0.0}

    def test_images_are_base64(self, client, options):
        msg = Message(Role.USER, "", (RawImage(b"hello"),))
        body = client.build_request_body([msg], options, stream=True)
        assert body["messages"][0]["images"] == ["aGVsbG8="]

    def test_image_reference_needs_resolver(self, client, options):
        msg = Message(Role.USER, "x", (ImageReference("file-7"),))
        with pytest.raises(ValueError):
            client.build_request_body([msg], options, stream=True)
        client.image_resolver = {"file-7": b"hello"}.__getitem__
        body = client.build_request_body([msg], options, stream=True)
        assert body["messages"][0]["images"] == ["aGVsbG8="]

    def test_prepare_images_resolves_references(self, client):
        client.image_resolver = {"file-7": b"hello"}.__getitem__
        assert client.prepare_images([RawImage(b"a"), ImageReference("file-7")]) == (RawImage(b"a"), RawImage(b"hello"))

    def test_prepare_images_rejects_unknown_reference(self, client):
        with pytest.raises(ValueError, match="no resolver"):
            client.prepare_images([ImageReference("gone")])
        client.image_resolver = {}.__getitem__
        with pytest.raises(ValueError, match="cannot resolve"):
            client.prepare_images([ImageReference("gone")])


class TestOpenStream:
    def test_streams_chunks(self, client, http, options):
        resp = make_response(chunks=[b'{"a"', b"", b":1}\n"])
        http.post.return_value = resp
        stream = client.open_stream(MESSAGES, options)
        assert list(stream) == [b'{"a"', b":1}\n"]
        stream.close()
        resp.close.assert_called_once()

        args, kwargs = http.post.call_args
        assert args[0] == "http://ollama.local:11434/api/chat"
        assert kwargs["stream"] is True
        assert kwargs["json"]["stream"] is True
        assert kwargs["timeout"] == 5

    def test_http_error_status(self, client, http, options):
        resp = make_response(status=404)
        http.post.return_value = resp
        with pytest.raises(TransportError) as err:
            client.open_stream(MESSAGES, options)
        assert err.value.status_code == 404
        assert str(err.value) == "Network error: 404"
        resp.close.assert_called_once()

    def test_connection_error(self, client, http, options):
        http.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(TransportError):
            client.open_stream(MESSAGES, options)

    def test_missing_body(self, client, http, options):
        resp = make_response()
        resp.raw = None
        http.post.return_value = resp
        with pytest.raises(TransportError):
            client.open_stream(MESSAGES, options)


class TestChat:
    def test_returns_message_content(self, client, http, options):
        http.post.return_value = make_response(json_data={"message": {"role": "assistant", "content": "Hi!"}})
        assert client.chat(MESSAGES, options) == "Hi!"
        assert http.post.call_args.kwargs["json"]["stream"] is False

    def test_missing_content_is_empty(self, client, http, options):
        http.post.return_value = make_response(json_data={"done": True})
        assert client.chat(MESSAGES, options) == ""

    def test_error_status(self, client, http, options):
        http.post.return_value = make_response(status=500)
        with pytest.raises(TransportError):
            client.chat(MESSAGES, options)


class TestListModels:
    def test_deduplicated_and_sorted(self, client, http):
        http.get.return_value = make_response(json_data={"models": [
            {"name": "mistral:latest"}, {"name": "llama3:8b"}, {"name": "mistral:latest"}, {"model": "nameless"},
        ]})
        assert client.list_models() == ["llama3:8b", "mistral:latest"]
        assert http.get.call_args.args[0] == "http://ollama.local:11434/api/tags"

    def test_error_status(self, client, http):
        http.get.return_value = make_response(status=503)
        with pytest.raises(TransportError) as err:
            client.list_models()
        assert str(err.value) == "Error loading models: 503"

    def test_unreachable(self, client, http):
        http.get.side_effect = requests.Timeout("slow")
        with pytest.raises(TransportError):
            client.list_models()
