"""
Ollama runtime client.

Thin HTTP client over the local runtime's REST API: model listing,
single-text embeddings, and model pull/delete. Transport errors are mapped
onto the localrag exception taxonomy so callers can decide what to retry.
"""

import json
import logging
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.request import Request, urlopen
from urllib.error import URLError, HTTPError

from ..core.exceptions import RagTimeoutError, RagUpstreamError
from ..core.types import DEFAULT_BASE_URL


logger = logging.getLogger(__name__)


@dataclass
class ModelListing:
    """
    Response from the runtime's model listing endpoint.

    Attributes:
        names: Installed model names, e.g. ``nomic-embed-text:latest``
        raw_response: Full response JSON
    """
    names: List[str] = field(default_factory=list)
    raw_response: Optional[Dict[str, Any]] = None

    def has_model(self, model: str) -> bool:
        """Exact or version-qualified (``model:tag``) match."""
        return any(name == model or name.startswith(f"{model}:") for name in self.names)


class OllamaClient:
    """
    HTTP client for the local inference runtime.

    Example:
        >>> client = OllamaClient("http://127.0.0.1:11434")
        >>> client.list_models().names
        ['nomic-embed-text:latest']
        >>> vector = client.embeddings("hello", model="nomic-embed-text")
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout_seconds: float = 60.0):
        """
        Initialize the client.

        Args:
            base_url: Runtime base URL
            timeout_seconds: Default request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds

        logger.debug(f"Initialized OllamaClient: base_url={self.base_url}")

    def probe(self, timeout_seconds: float = 2.0) -> bool:
        """
        Check whether a recognizable runtime answers at ``base_url``.

        Only a JSON object carrying a ``models`` key counts; any other
        listener on the port is treated as absent.

        Returns:
            True if the runtime answered like Ollama, False otherwise
        """
        try:
            result = self._request("GET", "/api/tags", timeout=timeout_seconds)
        except RagUpstreamError as e:
            logger.debug(f"Runtime probe at {self.base_url} failed: {e}")
            return False
        return isinstance(result, dict) and "models" in result

    def list_models(self, timeout_seconds: Optional[float] = None) -> ModelListing:
        """
        List installed models via ``GET /api/tags``.

        Raises:
            RagUpstreamError: If the request fails
        """
        result = self._request("GET", "/api/tags", timeout=timeout_seconds)
        if not isinstance(result, dict):
            raise RagUpstreamError("Unexpected model listing response from runtime")
        names = [m.get("name", "") for m in result.get("models", []) if isinstance(m, dict)]
        return ModelListing(names=[n for n in names if n], raw_response=result)

    def embeddings(
        self,
        text: str,
        model: str,
        timeout_seconds: Optional[float] = None,
    ) -> Any:
        """
        Request one embedding via ``POST /api/embeddings``.

        Returns the raw ``embedding`` field; shape validation is the
        caller's job.

        Raises:
            RagTimeoutError: If the request exceeds the timeout
            RagUpstreamError: If the runtime fails or answers malformed JSON
        """
        payload = {"model": model, "prompt": text}
        result = self._request("POST", "/api/embeddings", payload, timeout=timeout_seconds)
        if not isinstance(result, dict):
            raise RagUpstreamError("Unexpected embeddings response from runtime")
        return result.get("embedding")

    def pull_model(self, model: str, timeout_seconds: float = 600.0) -> Dict[str, Any]:
        """Pull a model through the runtime (non-streaming)."""
        payload = {"name": model, "stream": False}
        return self._request("POST", "/api/pull", payload, timeout=timeout_seconds)

    def delete_model(self, model: str) -> None:
        """
        Delete an installed model via ``DELETE /api/delete``.

        Raises:
            RagUpstreamError: With ``status_code`` and ``body`` on failure
        """
        self._request("DELETE", "/api/delete", {"name": model})

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Make an HTTP request to the runtime and decode the JSON body.

        Raises:
            RagTimeoutError: If the request times out
            RagUpstreamError: For HTTP errors, connection errors or bad JSON
        """
        url = f"{self.base_url}{path}"
        timeout = self.timeout if timeout is None else timeout
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        headers = {"Content-Type": "application/json"} if data is not None else {}

        try:
            request = Request(url, data=data, headers=headers, method=method)
            logger.debug(f"{method} {url}")

            with urlopen(request, timeout=timeout) as response:
                body = response.read().decode("utf-8")
                return json.loads(body) if body.strip() else {}

        except HTTPError as e:
            error_body = e.read().decode("utf-8", errors="replace") if e.fp else str(e)
            logger.error(f"HTTP error from runtime: {e.code} - {error_body}")
            raise RagUpstreamError(
                f"Runtime API error: {e.code} - {error_body}",
                status_code=e.code,
                body=error_body,
            )
        except URLError as e:
            if isinstance(e.reason, (socket.timeout, TimeoutError)):
                raise RagTimeoutError(
                    f"Runtime request to {url} timed out after {timeout}s",
                    timeout_seconds=timeout,
                )
            raise RagUpstreamError(f"Failed to connect to runtime at {self.base_url}: {e}")
        except (socket.timeout, TimeoutError):
            raise RagTimeoutError(
                f"Runtime request to {url} timed out after {timeout}s",
                timeout_seconds=timeout,
            )
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON response from runtime: {e}")
            raise RagUpstreamError(f"Invalid JSON response from runtime: {e}")
        except OSError as e:
            raise RagUpstreamError(f"Runtime connection error: {e}")
