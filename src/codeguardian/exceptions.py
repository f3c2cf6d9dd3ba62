# src/codeguardian/exceptions.py
from typing import Optional


class CodeGuardianError(Exception):
    """Base class for errors raised by the reviewer."""


class ChunkAnalysisError(CodeGuardianError):
    """
    Raised by the model client when a chunk could not be analyzed
    (API error, timeout, empty or unparseable response).
    The batch orchestrator records it against the chunk and moves on.
    """


class SCMRequestError(CodeGuardianError):
    """Raised when an SCM API call fails and the caller needs the reason."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
