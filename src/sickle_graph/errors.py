# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Exception taxonomy for SickleGraph.

Every error raised by the package derives from SickleGraphError so callers
(the HTTP layer, the CLI) can catch the family in one place and map each
subclass to a status code or exit message.
"""
from typing import Any, Dict, List, NamedTuple, Optional


class SickleGraphError(Exception):
    """Base class for all SickleGraph errors."""


class ValidationError(SickleGraphError):
    """Bad caller input. Reported to the caller, never retried."""


class Violation(NamedTuple):
    """A single field that failed validation."""
    field: str
    reason: str

    def __str__(self) -> str:
        return f"{self.field}: {self.reason}"


class SchemaValidationError(ValidationError):
    """
    Raised when an input object violates its schema.
    Carries every violation found, not just the first one.
    """

    def __init__(self, violations: List[Violation], subject: str = "input"):
        self.violations = list(violations)
        self.subject = subject
        details = "; ".join(str(v) for v in self.violations)
        super().__init__(f"Invalid {subject}: {details}")

    @property
    def fields(self) -> List[str]:
        return [v.field for v in self.violations]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": str(self),
            "violations": [{"field": v.field, "reason": v.reason} for v in self.violations],
        }


class NotFoundError(SickleGraphError):
    """A requested entity does not exist."""


class NotInitializedError(SickleGraphError):
    """An adapter or service was used outside of its Ready state."""


class BackendConnectionError(SickleGraphError):
    """The graph backend is unreachable or misconfigured. Fatal to the adapter instance."""


class QueryExecutionError(SickleGraphError):
    """The backend rejected or failed a statement."""

    def __init__(self, query: str, message: str, params: Optional[Dict[str, Any]] = None):
        self.query = query
        self.backend_message = message
        self.params = params
        super().__init__(f"Query failed: {message}\nStatement: {query.strip()}")


class OperationTimeoutError(SickleGraphError, TimeoutError):
    """A backend or upstream call did not answer within its timeout."""


class UpstreamServiceError(SickleGraphError):
    """The upstream biomedical API (NCBI) failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class UnsupportedOperationError(SickleGraphError):
    """The selected backend dialect cannot express the requested operation."""


class ConfigurationError(SickleGraphError):
    """Settings are missing or invalid. Lists every offending field."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid configuration:\n" + "\n".join(f"  - {p}" for p in self.problems))


class PrecisionLossWarning(UserWarning):
    """A backend numeric value could not be represented exactly as a native number."""
