"""Domain errors for the interview and prioritization workflow.

Every error carries enough context (interview id, repository, offending
problems) for the tool gateway to surface a clear message instead of a
silent no-op.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class InterviewError(Exception):
    """Base class for all interview workflow failures."""

    def __init__(self, message: str, *, interview_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.interview_id = interview_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a structured tool result."""
        return {
            "error": self.message,
            "error_type": type(self).__name__,
            "interview_id": self.interview_id,
        }


class NotFoundError(InterviewError, LookupError):
    """Raised when an interview id is unknown, expired or cleaned up."""

    def __init__(self, interview_id: str):
        super().__init__(f"Interview '{interview_id}' not found", interview_id=interview_id)


class ValidationError(InterviewError, ValueError):
    """Raised when an interview cannot be assembled or an answer targets the wrong question."""

    def __init__(
        self,
        message: str,
        *,
        interview_id: Optional[str] = None,
        problems: Optional[List[str]] = None,
    ):
        super().__init__(message, interview_id=interview_id)
        self.problems = list(problems or [])

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["problems"] = list(self.problems)
        return data


class StoreError(InterviewError):
    """Raised when the interview store cannot read or durably write a record."""


class InterviewBusyError(InterviewError):
    """Raised when another submission holds the interview's lock."""

    def __init__(self, interview_id: str):
        super().__init__(
            f"Interview '{interview_id}' is busy processing another answer; retry shortly",
            interview_id=interview_id,
        )


class BackendError(InterviewError):
    """Raised when the issue backend rejects or fails a request."""

    def __init__(
        self,
        message: str,
        *,
        repository: Optional[str] = None,
        status_code: Optional[int] = None,
        interview_id: Optional[str] = None,
    ):
        super().__init__(message, interview_id=interview_id)
        self.repository = repository
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["repository"] = self.repository
        data["status_code"] = self.status_code
        return data
