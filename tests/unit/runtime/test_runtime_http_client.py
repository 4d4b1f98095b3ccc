"""
Unit tests for the runtime HTTP client.

Tests for:
- Runtime probing
- Model listing
- Embedding request payloads
- Error mapping (HTTP, connection, timeout)
"""

import io
import json
import socket
from unittest.mock import patch, MagicMock
from urllib.error import HTTPError, URLError

import pytest

from localrag.core.exceptions import RagTimeoutError, RagUpstreamError
from localrag.providers.ollama_client import ModelListing, OllamaClient


def mock_json_response(payload):
    mock_response = MagicMock()
    mock_response.read.return_value = json.dumps(payload).encode("utf-8")
    mock_response.__enter__ = lambda s: mock_response
    mock_response.__exit__ = MagicMock(return_value=False)
    return mock_response


@pytest.fixture
def client():
    """Create a test client."""
    return OllamaClient("http://localhost:11434/", timeout_seconds=30)


class TestModelListing:
    """Tests for ModelListing."""

    def test_has_model_matches_tagged_name(self):
        listing = ModelListing(names=["nomic-embed-text:latest", "llama3.2:3b"])

        assert listing.has_model("nomic-embed-text") is True
        assert listing.has_model("nomic-embed-text:latest") is True
        assert listing.has_model("nomic-embed") is False


class TestOllamaClient:
    """Tests for OllamaClient."""

    def test_initialization_strips_trailing_slash(self, client):
        assert client.base_url == "http://localhost:11434"
        assert client.timeout == 30

    @patch('localrag.providers.ollama_client.urlopen')
    def test_probe_recognizes_runtime(self, mock_urlopen, client):
        """Test probe accepts a models listing and uses the short timeout."""
        mock_urlopen.return_value = mock_json_response({"models": []})

        assert client.probe(timeout_seconds=2.0) is True
        assert mock_urlopen.call_args[1]["timeout"] == 2.0

    @patch('localrag.providers.ollama_client.urlopen')
    def test_probe_rejects_foreign_listener(self, mock_urlopen, client):
        """Test some other HTTP service on the port is not mistaken for the runtime."""
        mock_urlopen.return_value = mock_json_response({"status": "ok"})

        assert client.probe() is False

    @patch('localrag.providers.ollama_client.urlopen')
    def test_probe_connection_refused(self, mock_urlopen, client):
        mock_urlopen.side_effect = URLError(ConnectionRefusedError("refused"))

        assert client.probe() is False

    @patch('localrag.providers.ollama_client.urlopen')
    def test_list_models(self, mock_urlopen, client):
        mock_urlopen.return_value = mock_json_response({
            "models": [
                {"name": "nomic-embed-text:latest", "size": 274302450},
                {"name": "llama3.2:3b"},
            ]
        })

        listing = client.list_models()

        assert listing.names == ["nomic-embed-text:latest", "llama3.2:3b"]
        request = mock_urlopen.call_args[0][0]
        assert request.full_url == "http://localhost:11434/api/tags"
        assert request.get_method() == "GET"

    @patch('localrag.providers.ollama_client.urlopen')
    def test_embeddings_payload(self, mock_urlopen, client):
        """Test the embedding request carries model and prompt."""
        mock_urlopen.return_value = mock_json_response({"embedding": [0.1, 0.2, 0.3]})

        vector = client.embeddings("hello world", model="nomic-embed-text", timeout_seconds=5)

        assert vector == [0.1, 0.2, 0.3]
        request = mock_urlopen.call_args[0][0]
        assert request.full_url == "http://localhost:11434/api/embeddings"
        assert json.loads(request.data.decode("utf-8")) == {
            "model": "nomic-embed-text",
            "prompt": "hello world",
        }
        assert mock_urlopen.call_args[1]["timeout"] == 5

    @patch('localrag.providers.ollama_client.urlopen')
    def test_embeddings_missing_field_returns_none(self, mock_urlopen, client):
        mock_urlopen.return_value = mock_json_response({"error": "model not loaded"})

        assert client.embeddings("hello", model="nomic-embed-text") is None

    @patch('localrag.providers.ollama_client.urlopen')
    def test_http_error_keeps_status_and_body(self, mock_urlopen, client):
        """Test HTTP errors surface status code and body."""
        mock_urlopen.side_effect = HTTPError(
            "http://localhost:11434/api/delete",
            404,
            "Not Found",
            {},
            io.BytesIO(b'{"error": "model \'ghost\' not found"}'),
        )

        with pytest.raises(RagUpstreamError) as exc_info:
            client.delete_model("ghost")

        assert exc_info.value.status_code == 404
        assert "not found" in exc_info.value.body

    @patch('localrag.providers.ollama_client.urlopen')
    def test_delete_uses_delete_method(self, mock_urlopen, client):
        mock_urlopen.return_value = mock_json_response({})

        client.delete_model("nomic-embed-text")

        request = mock_urlopen.call_args[0][0]
        assert request.get_method() == "DELETE"
        assert json.loads(request.data.decode("utf-8")) == {"name": "nomic-embed-text"}

    @patch('localrag.providers.ollama_client.urlopen')
    def test_pull_is_non_streaming(self, mock_urlopen, client):
        mock_urlopen.return_value = mock_json_response({"status": "success"})

        assert client.pull_model("llama3:8b") == {"status": "success"}

        request = mock_urlopen.call_args[0][0]
        assert request.full_url == "http://localhost:11434/api/pull"
        assert request.get_method() == "POST"
        assert json.loads(request.data.decode("utf-8")) == {"name": "llama3:8b", "stream": False}
        assert mock_urlopen.call_args[1]["timeout"] == 600.0

    @patch('localrag.providers.ollama_client.urlopen')
    def test_timeout_maps_to_timeout_error(self, mock_urlopen, client):
        mock_urlopen.side_effect = socket.timeout("timed out")

        with pytest.raises(RagTimeoutError) as exc_info:
            client.embeddings("hello", model="nomic-embed-text", timeout_seconds=1)

        assert exc_info.value.timeout_seconds == 1

    @patch('localrag.providers.ollama_client.urlopen')
    def test_url_error_timeout_maps_to_timeout_error(self, mock_urlopen, client):
        mock_urlopen.side_effect = URLError(socket.timeout("timed out"))

        with pytest.raises(RagTimeoutError):
            client.list_models()

    @patch('localrag.providers.ollama_client.urlopen')
    def test_connection_error(self, mock_urlopen, client):
        mock_urlopen.side_effect = URLError("Connection refused")

        with pytest.raises(RagUpstreamError) as exc_info:
            client.list_models()

        assert not isinstance(exc_info.value, RagTimeoutError)
        assert "Failed to connect" in str(exc_info.value)

    @patch('localrag.providers.ollama_client.urlopen')
    def test_invalid_json(self, mock_urlopen, client):
        mock_response = MagicMock()
        mock_response.read.return_value = b"<html>not json</html>"
        mock_response.__enter__ = lambda s: mock_response
        mock_response.__exit__ = MagicMock(return_value=False)
        mock_urlopen.return_value = mock_response

        with pytest.raises(RagUpstreamError, match="Invalid JSON"):
            client.list_models()
