"""
Embedding client.

Turns text into vectors through the local runtime. Batch embedding is
serialized by default: the runtime's accelerator backend is unstable under
concurrent requests, so items are embedded one after another with a fixed
pause between calls and a per-item retry with exponential backoff.
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from numbers import Real
from typing import Callable, List, Optional, Sequence

from ..core.exceptions import RagUpstreamError, RagValidationError
from ..core.types import DEFAULT_EMBED_MODEL, EMBEDDING_DIMENSION, EmbeddingProgress, ModelProgress
from ..providers.ollama_client import ModelListing, OllamaClient
from ..runtime.assets import BundledAssets
from ..utils.retry import RetryPolicy, poll_until, retry_with_backoff


logger = logging.getLogger(__name__)


BatchProgressCallback = Callable[[EmbeddingProgress], None]
ModelProgressCallback = Callable[[ModelProgress], None]


class EmbeddingClient:
    """
    Embedding generation against the local runtime.

    Example:
        >>> client = EmbeddingClient(OllamaClient(), model="nomic-embed-text")
        >>> client.ensure_model_available()
        True
        >>> vectors = client.embed_batch(["first chunk", "second chunk"])
        >>> len(vectors[0])
        768
    """

    def __init__(
        self,
        client: OllamaClient,
        model: str = DEFAULT_EMBED_MODEL,
        timeout_seconds: float = 60.0,
        retry_policy: Optional[RetryPolicy] = None,
        inter_call_delay_seconds: float = 1.0,
        assets: Optional[BundledAssets] = None,
        availability_poll: Optional[RetryPolicy] = None,
        expected_dimension: Optional[int] = EMBEDDING_DIMENSION,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            client: Runtime HTTP client
            model: Default embedding model
            timeout_seconds: Hard timeout for one embedding request
            retry_policy: Per-item retry policy (3 attempts, 1s base, x2)
            inter_call_delay_seconds: Pause between consecutive batch items
            assets: Bundled model source used when the model is missing
            availability_poll: Poll policy after provisioning a model (5 x 500ms)
            expected_dimension: Width that, if different, triggers a warning
            sleep: Sleep function (injectable for tests)
        """
        self.client = client
        self.model = model
        self.timeout = timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, base_delay_ms=1000)
        self.inter_call_delay = inter_call_delay_seconds
        self.assets = assets
        self.availability_poll = availability_poll or RetryPolicy.fixed(5, 500)
        self.expected_dimension = expected_dimension
        self._sleep = sleep

    def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        """
        Embed a single text with one request.

        Raises:
            RagValidationError: If text is empty or whitespace
            RagTimeoutError: If the request exceeds the timeout
            RagUpstreamError: On runtime errors or a malformed vector
        """
        if not text or not text.strip():
            raise RagValidationError("Text cannot be empty")

        model = model or self.model
        raw = self.client.embeddings(text, model=model, timeout_seconds=self.timeout)
        vector = _validate_vector(raw)

        if self.expected_dimension and len(vector) != self.expected_dimension:
            logger.warning(
                f"Unexpected embedding dimension: {len(vector)}, "
                f"expected: {self.expected_dimension}"
            )

        return vector

    def embed_with_retry(self, text: str, model: Optional[str] = None) -> List[float]:
        """
        Embed with exponential backoff on upstream errors.

        Validation errors are not retried.

        Raises:
            RagValidationError: If text is empty
            RagUpstreamError: After all attempts failed
        """
        result = retry_with_backoff(
            lambda: self.embed(text, model=model),
            self.retry_policy,
            retry_on=(RagUpstreamError,),
            operation_name="embedding",
            sleep=self._sleep,
        )
        if result.success:
            return result.result

        if not result.exhausted:
            raise result.error

        raise RagUpstreamError(
            f"Failed to generate embedding after {result.attempts} attempts: {result.error}",
            status_code=getattr(result.error, "status_code", None),
            body=getattr(result.error, "body", None),
        ) from result.error

    def embed_batch(
        self,
        texts: Sequence[str],
        concurrency: int = 1,
        on_progress: Optional[BatchProgressCallback] = None,
    ) -> List[List[float]]:
        """
        Embed texts in order, reporting progress after each item or group.

        Args:
            texts: Texts to embed
            concurrency: Items embedded at once; keep at 1 for the local runtime
            on_progress: Called with EmbeddingProgress after each item/group

        Returns:
            Vectors in the same order as ``texts``

        Raises:
            RagValidationError: If concurrency < 1 or any text is empty
            RagUpstreamError: If an item fails after retries
        """
        if concurrency < 1:
            raise RagValidationError("concurrency must be at least 1")

        total = len(texts)
        if total == 0:
            return []

        vectors: List[List[float]] = []
        executor = ThreadPoolExecutor(max_workers=concurrency) if concurrency > 1 else None
        try:
            for start in range(0, total, concurrency):
                group = texts[start:start + concurrency]
                if executor is None:
                    vectors.append(self.embed_with_retry(group[0]))
                else:
                    vectors.extend(executor.map(self.embed_with_retry, group))

                if on_progress is not None:
                    on_progress(EmbeddingProgress(processed=len(vectors), total=total))

                if len(vectors) < total and self.inter_call_delay > 0:
                    self._sleep(self.inter_call_delay)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        logger.debug(f"Embedded {total} texts with model {self.model}")
        return vectors

    def list_models(self) -> ModelListing:
        return self.client.list_models()

    def ensure_model_available(
        self,
        model: Optional[str] = None,
        on_progress: Optional[ModelProgressCallback] = None,
    ) -> bool:
        """
        Make sure ``model`` is installed in the runtime.

        Installed models are recognized by exact name or ``name:tag``. Missing
        models are copied from the bundle, after which the installed list is
        polled until the runtime picks them up.

        Returns:
            True if the model is available; False on any failure (never raises)
        """
        model = model or self.model

        def emit(status: str, percent: Optional[int] = None) -> None:
            if on_progress is not None:
                on_progress(ModelProgress(status, percent))

        emit("checking-installed", 0)
        try:
            if self.list_models().has_model(model):
                logger.debug(f"Model {model} already installed")
                emit("ready", 100)
                return True
        except RagUpstreamError as e:
            logger.error(f"Cannot list installed models: {e}")
            return False

        emit("bundled-check", 20)
        if self.assets is None:
            logger.warning(f"Model {model} is not installed and no bundled assets are configured")
            emit("bundled-copy-failed")
            return False

        emit("bundled-copy", 40)
        if not self.assets.ensure_model_from_bundle(model):
            emit("bundled-copy-failed")
            return False

        available = poll_until(
            lambda: self.list_models().has_model(model),
            self.availability_poll,
            operation_name=f"model {model} availability",
            sleep=self._sleep,
        )
        if not available:
            logger.error(f"Runtime did not recognize model {model} after provisioning")
            emit("bundled-copy-failed")
            return False

        logger.info(f"Model {model} provisioned from bundle")
        emit("ready", 100)
        return True


def _validate_vector(raw) -> List[float]:
    if not isinstance(raw, list) or not raw:
        raise RagUpstreamError("Invalid embedding response from runtime")
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            raise RagUpstreamError("Embedding response contains non-numeric values")
    return [float(v) for v in raw]
