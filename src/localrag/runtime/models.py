"""
Installed model management.

Models are pulled through the runtime on demand. Deleting a model is refused
while chat sessions still reference it, unless forced. Runtime failures are
reported in the result instead of raised so the caller can present the reason.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..core.exceptions import RagUpstreamError
from ..knowledge.metadata import MetadataRepository, SessionInfo
from ..providers.ollama_client import OllamaClient


logger = logging.getLogger(__name__)


class ModelDeleteReason(str, Enum):
    IN_USE = "in_use"
    NOT_FOUND = "not_found"
    RUNTIME_ERROR = "runtime_error"
    UNKNOWN = "unknown"


@dataclass
class ModelDeleteResult:
    success: bool
    reason: Optional[ModelDeleteReason] = None
    error: Optional[str] = None
    sessions: List[SessionInfo] = field(default_factory=list)


@dataclass
class ModelPullResult:
    success: bool
    status: Optional[str] = None
    error: Optional[str] = None


class ModelManager:
    """
    Pulls runtime models and deletes installed ones with an in-use guard.

    Example:
        >>> result = ModelManager(client, metadata).delete_model("llama3:8b")
        >>> result.reason
        <ModelDeleteReason.IN_USE: 'in_use'>
    """

    def __init__(self, client: OllamaClient, metadata: MetadataRepository):
        self.client = client
        self.metadata = metadata

    def check_in_use(self, model_id: str) -> List[SessionInfo]:
        return list(self.metadata.sessions_using_model(model_id))

    def delete_model(self, model_id: str, force: bool = False) -> ModelDeleteResult:
        """
        Delete ``model_id`` from the runtime.

        Args:
            model_id: Model name, e.g. ``llama3:8b``
            force: Skip the chat-session usage check

        Returns:
            ModelDeleteResult describing the outcome
        """
        if not force:
            sessions = self.check_in_use(model_id)
            if sessions:
                return ModelDeleteResult(
                    success=False,
                    reason=ModelDeleteReason.IN_USE,
                    error=f"Model is used by {len(sessions)} session(s)",
                    sessions=sessions,
                )

        try:
            self.client.delete_model(model_id)
        except RagUpstreamError as e:
            if e.status_code is None:
                logger.error(f"Failed to delete model {model_id}: {e}")
                return ModelDeleteResult(
                    success=False,
                    reason=ModelDeleteReason.UNKNOWN,
                    error=str(e),
                )

            message = _runtime_error_message(e.body) or str(e)
            if "is in use" in message:
                return ModelDeleteResult(
                    success=False,
                    reason=ModelDeleteReason.IN_USE,
                    error="Model is currently running in the runtime",
                )
            if e.status_code == 404 or "not found" in message:
                return ModelDeleteResult(
                    success=False,
                    reason=ModelDeleteReason.NOT_FOUND,
                    error="Model not found",
                )
            return ModelDeleteResult(
                success=False,
                reason=ModelDeleteReason.RUNTIME_ERROR,
                error=message,
            )

        logger.info(f"Deleted model {model_id}")
        return ModelDeleteResult(success=True)

    def pull_model(self, model_id: str) -> ModelPullResult:
        """
        Download ``model_id`` through the runtime.

        Already installed models are reported as successful without a pull.
        """
        try:
            if self.client.list_models().has_model(model_id):
                logger.info(f"Model {model_id} already installed, skipping pull")
                return ModelPullResult(success=True, status="already-installed")
            response = self.client.pull_model(model_id)
        except RagUpstreamError as e:
            message = _runtime_error_message(e.body) or str(e)
            logger.error(f"Failed to pull model {model_id}: {message}")
            return ModelPullResult(success=False, error=message)

        status = response.get("status") if isinstance(response, dict) else None
        if status != "success":
            error = response.get("error") if isinstance(response, dict) else None
            return ModelPullResult(success=False, status=status, error=error or "Pull did not complete")

        logger.info(f"Pulled model {model_id}")
        return ModelPullResult(success=True, status=status)


def _runtime_error_message(body: Optional[str]) -> Optional[str]:
    """Pull ``error`` out of a JSON error body, falling back to the raw text."""
    if not body:
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return body
