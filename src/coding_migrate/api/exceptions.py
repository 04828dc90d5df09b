"""Errors raised by the Coding and GitHub API clients.

Every error records the platform that raised it. GitHub signals failures
through HTTP statuses (``error_for_status``); Coding answers 200 and puts a
Tencent-cloud style code in ``Response.Error`` (``error_for_coding_code``).
Both map onto the same classes so callers only catch one taxonomy.
"""

import time
from typing import Dict, Optional

from ..exceptions import MigrationError


class APIError(MigrationError):
    """A Coding or GitHub API call failed."""

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
        code: Optional[str] = None,
    ):
        """Initialize API error.

        Args:
            message: Error message
            platform: ``Coding`` or ``GitHub``
            status_code: HTTP status code
            response_data: Decoded error body
            code: Coding error code such as ``AuthFailure.TokenInvalid``
        """
        super().__init__(message)
        self.platform = platform
        self.status_code = status_code
        self.response_data = response_data
        self.code = code


class APIAuthenticationError(APIError):
    """Token missing, invalid or expired."""


class APIPermissionError(APIError):
    """Token valid but not allowed to do this (e.g. no admin on the organization)."""


class APINotFoundError(APIError):
    """Repository, organization or action does not exist."""


class APIValidationError(APIError):
    """Request rejected as invalid, e.g. a repository name collision."""


class APIRateLimitError(APIError):
    """Platform throttled the token.

    ``retry_after`` is the number of seconds until the quota resets, or None
    when the platform did not say.
    """

    def __init__(self, message: str, retry_after: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


_STATUS_ERRORS = {
    401: (APIAuthenticationError, 'authentication failed'),
    403: (APIPermissionError, 'permission denied'),
    404: (APINotFoundError, 'resource not found'),
    422: (APIValidationError, 'rejected request'),
    429: (APIRateLimitError, 'rate limit exceeded'),
}

# Substring of a Coding error code -> error class, first match wins
_CODING_ERRORS = (
    ('AuthFailure', APIAuthenticationError),
    ('UnauthorizedOperation', APIPermissionError),
    ('NotFound', APINotFoundError),
    ('LimitExceeded', APIRateLimitError),
    ('InvalidParameter', APIValidationError),
)


def retry_after_seconds(headers: Dict[str, str]) -> Optional[int]:
    """Seconds to wait according to ``Retry-After`` or GitHub's ``X-RateLimit-Reset``."""
    lowered = {key.lower(): value for key, value in (headers or {}).items()}
    try:
        if 'retry-after' in lowered:
            return max(0, int(lowered['retry-after']))
        if 'x-ratelimit-reset' in lowered:
            return max(0, int(lowered['x-ratelimit-reset']) - int(time.time()))
    except ValueError:
        return None
    return None


def error_for_status(
    platform: str,
    status_code: int,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    response_data: Optional[dict] = None,
) -> APIError:
    """Build the error for an HTTP error status.

    GitHub reports an exhausted primary quota as 403 with a "rate limit"
    message, so that case is a rate limit error as well.
    """
    key = status_code
    if status_code == 403 and 'rate limit' in message.lower():
        key = 429

    error_class, summary = _STATUS_ERRORS.get(key, (APIError, 'API request failed'))
    kwargs = {'platform': platform, 'status_code': status_code, 'response_data': response_data}
    text = f'{platform} {summary}: {message}'

    if error_class is APIRateLimitError:
        return APIRateLimitError(text, retry_after=retry_after_seconds(headers or {}), **kwargs)
    return error_class(text, **kwargs)


def error_for_coding_code(
    code: str,
    message: str,
    status_code: Optional[int] = None,
    response_data: Optional[dict] = None,
) -> APIError:
    """Build the error for a Coding ``Response.Error`` payload."""
    error_class = APIError
    for fragment, candidate in _CODING_ERRORS:
        if fragment in code:
            error_class = candidate
            break

    return error_class(
        f'Coding API error: {message} (Code: {code})',
        platform='Coding',
        status_code=status_code,
        response_data=response_data,
        code=code,
    )
