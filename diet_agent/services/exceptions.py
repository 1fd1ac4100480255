from __future__ import annotations

from typing import Optional


class ServiceError(RuntimeError):
    """Base class for service-layer errors."""

class LLMError(ServiceError):
    """Errors from the LLM adapter."""

class RepoError(ServiceError):
    """Errors from repositories (I/O, parse, schema)."""

class BrowserUseError(ServiceError):
    """Errors from the Browser-Use task API adapter."""


class CredentialMissingError(BrowserUseError):
    """No API key configured; raised before any network call."""

    def __init__(self, message: str = "Browser-Use API key is required"):
        super().__init__(message)


class RemoteSubmissionError(BrowserUseError):
    """Task creation did not succeed."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RemoteFetchError(BrowserUseError):
    """A task GET failed. Recovered by the poller's backoff."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TaskTimeoutError(BrowserUseError):
    def __init__(self, task_id: str, elapsed_seconds: float):
        super().__init__(f"Task {task_id} timed out after {elapsed_seconds:.0f} seconds")
        self.task_id = task_id
        self.elapsed_seconds = elapsed_seconds


class TaskTerminalFailure(BrowserUseError):
    """Remote task ended as `failed` or `stopped`."""

    def __init__(self, task_id: str, status: str, error: Optional[str] = None):
        super().__init__(f"Task {status}: {error or 'Unknown error'}")
        self.task_id = task_id
        self.status = status
        self.error = error


class OutputMissingError(BrowserUseError):
    """Task finished without an output payload."""


class OutputShapeError(BrowserUseError):
    """Output is not JSON, or is JSON missing required fields."""
