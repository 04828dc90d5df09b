"""GitHub REST API client (destination side)."""

from typing import Any, List

from ..config.config import DestinationConfig
from ..models.repository import RepositoryCreate, TargetRepository
from .client import APIClient
from .exceptions import APIError, APINotFoundError

PAGE_SIZE = 100


class GitHubClient(APIClient):
    """Creates and looks up repositories in a GitHub organization.

    Calls made by the migration core are async. Organization listing,
    deletion and ``test_connection`` serve the CLI and are blocking.
    """

    platform = 'GitHub'
    accept = 'application/vnd.github.v3+json'

    def __init__(self, config: DestinationConfig, log=None):
        """Initialize GitHub client.

        Args:
            config: GitHub destination configuration
            log: Optional logger to bind instead of the global one
        """
        super().__init__(
            config.url,
            config.token,
            timeout=config.timeout,
            rate_limit_per_second=config.rate_limit_per_second,
            log=log,
        )
        self.organization = config.organization
        self.logger.info(f'Initialized GitHub client for {self.base_url}')

    def _error_message(self, status_code: int, data: Any) -> str:
        message = super()._error_message(status_code, data)
        if isinstance(data, dict) and isinstance(data.get('errors'), list):
            details = []
            for item in data['errors']:
                if isinstance(item, dict):
                    details.append(item.get('message') or item.get('code') or str(item))
                else:
                    details.append(str(item))
            if details:
                message = f"{message} ({'; '.join(details)})"
        return message

    async def get_repository(self, owner: str, name: str) -> TargetRepository:
        """Fetch a repository.

        Raises:
            APINotFoundError: If the repository does not exist
        """
        response = await self.get_async(f'/repos/{owner}/{name}')
        return TargetRepository.from_api(response.data)

    async def repository_exists(self, owner: str, name: str) -> bool:
        """Check whether ``owner/name`` exists; a 404 means it does not."""
        try:
            await self.get_async(f'/repos/{owner}/{name}')
            return True
        except APINotFoundError:
            return False

    async def create_repository(self, owner: str, repository: RepositoryCreate) -> TargetRepository:
        """Create a repository in organization ``owner``.

        Raises:
            APIValidationError: If GitHub rejects the payload (e.g. name taken)
            APIError: For any other failure
        """
        response = await self.post_async(f'/orgs/{owner}/repos', data=repository.model_dump())
        if not isinstance(response.data, dict):
            raise APIError(
                f'Unexpected response creating {owner}/{repository.name}',
                status_code=response.status_code,
            )

        target = TargetRepository.from_api(response.data)
        self.logger.info(f'Created GitHub repository {target.full_name}')
        return target

    def list_organization_repositories(self, owner: str) -> List[TargetRepository]:
        """List every repository of organization ``owner``, newest first.

        Follows ``page`` until a page comes back shorter than ``per_page``.
        """
        repositories: List[TargetRepository] = []
        page = 1

        while True:
            response = self.get(
                f'/orgs/{owner}/repos',
                params={
                    'type': 'all',
                    'sort': 'created',
                    'direction': 'desc',
                    'per_page': PAGE_SIZE,
                    'page': page,
                },
            )
            items = response.data if isinstance(response.data, list) else []
            repositories.extend(TargetRepository.from_api(item) for item in items)
            self.logger.debug(f'Fetched page {page} of {owner} repositories ({len(items)} items)')

            if len(items) < PAGE_SIZE:
                break
            page += 1

        self.logger.info(f'Retrieved {len(repositories)} repositories from {owner}')
        return repositories

    def delete_repository(self, owner: str, name: str) -> None:
        """Delete ``owner/name``; the token needs the ``delete_repo`` scope.

        Raises:
            APIPermissionError: If the token may not delete repositories
            APINotFoundError: If the repository does not exist
        """
        self.delete(f'/repos/{owner}/{name}')
        self.logger.warning(f'Deleted GitHub repository {owner}/{name}')

    def test_connection(self) -> bool:
        """Check the token and access to the configured organization.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self.get('/user')
            if self.organization:
                self.get(f'/orgs/{self.organization}')
            return True
        except APIError as e:
            self.logger.error(f'GitHub connection test failed: {e}')
            return False
