"""
Custom exceptions for the local RAG pipeline.
"""


class RagError(Exception):
    """Base exception for all localrag errors."""
    pass


class RagValidationError(RagError):
    """
    Input rejected before any side effect.

    Raised when:
    - File size or type is outside the allow-list
    - Text to embed or query is empty
    - A vector has the wrong dimensionality
    - A referenced note or knowledge base does not exist

    Never retried.
    """
    pass


class RagUpstreamError(RagError):
    """
    Error response from the local inference runtime.

    Raised when:
    - Runtime is unreachable
    - Runtime returns a non-success status
    - Runtime returns a malformed embedding

    Retried by the embedding client, not by provisioning checks.
    """

    def __init__(self, message: str, status_code: int = None, body: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RagTimeoutError(RagUpstreamError):
    """Runtime request exceeded its deadline. Retried like any upstream error."""

    def __init__(self, message: str, timeout_seconds: float = None):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class RagProvisioningError(RagError):
    """
    Runtime or model could not be provisioned.

    Raised when:
    - Bundled runtime executable or model assets are missing
    - Platform is not supported by the bundle
    - Runtime never becomes reachable after launch
    - Embedding model never becomes available

    Fatal; surfaced to the user as "feature unavailable".
    """
    pass


class RagStorageError(RagError):
    """
    Disk or vector store I/O failure.

    Raised when:
    - Document file cannot be written, read, or deleted
    - Vector table cannot be created, opened, written, or searched
    - An existing table has an unexpected vector width

    Triggers pipeline rollback.
    """
    pass


class RagExtractionError(RagError):
    """Text extraction produced nothing usable."""

    def __init__(self, message: str, code: str = "EXTRACTION_FAILED"):
        super().__init__(message)
        self.code = code


class RagConfigError(RagError):
    """
    Error in localrag configuration.

    Raised when:
    - Configuration file is missing or not a mapping
    - Configuration values are out of valid range
    """
    pass
