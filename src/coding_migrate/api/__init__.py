"""Coding and GitHub API clients."""

from .client import APIClient, APIResponse
from .coding import CodingClient
from .exceptions import (
    APIAuthenticationError,
    APIError,
    APINotFoundError,
    APIPermissionError,
    APIRateLimitError,
    APIValidationError,
)
from .github import GitHubClient
from .rate_limiter import RateLimiter

__all__ = [
    'APIClient',
    'APIResponse',
    'CodingClient',
    'GitHubClient',
    'RateLimiter',
    'APIError',
    'APIAuthenticationError',
    'APINotFoundError',
    'APIPermissionError',
    'APIRateLimitError',
    'APIValidationError',
]
