"""Error hierarchy shared by every bounded context.

Three families of failure exist:
- InvalidInputError: the caller handed the engine something it cannot analyze
  (empty profile, zero-length path, non-positive frequency).
- ExternalServiceError: an outbound lookup failed (non-2xx, transport error,
  malformed payload). Always recoverable; the engine stays usable.
- StaleRunError: a completion belonged to a superseded analysis run and was
  discarded instead of being published.

Approximation limitations (geodetic round-trip drift, the center-height
fallback) are not errors; they are logged where they occur.
"""

from __future__ import annotations


class LinkPlannerError(Exception):
    """Base error for link planning operations."""


class InvalidInputError(LinkPlannerError, ValueError):
    """Input cannot be analyzed (empty/malformed profile, bad parameters)."""


class ExternalServiceError(LinkPlannerError):
    """An external elevation, search or tile lookup failed.

    Attributes:
        category: Fetch category of the failed request (profile, height, ...)
        url: Request URL, if known
        status_code: HTTP status code, or None for transport/parse failures
    """

    def __init__(
        self,
        message: str,
        *,
        category: str | None = None,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.category = category
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class StaleRunError(LinkPlannerError):
    """Analysis run was superseded before it could publish its results.

    Attributes:
        run_id: The superseded run
        current_run_id: The run that is current now
    """

    def __init__(self, run_id: int, current_run_id: int) -> None:
        self.run_id = run_id
        self.current_run_id = current_run_id
        super().__init__(f"Run {run_id} superseded by run {current_run_id}")
