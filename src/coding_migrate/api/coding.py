"""Coding open API client (source side)."""

from typing import Any, Dict, List

from pydantic import ValidationError

from ..config.config import SourceConfig
from ..models.repository import Repository
from .client import APIClient
from .exceptions import APIError, error_for_coding_code

PAGE_SIZE = 100


class CodingClient(APIClient):
    """Lists the repositories of a Coding team.

    Every call is an ``Action`` posted to ``/open-api``. Coding answers
    HTTP 200 even for failures and reports them in ``Response.Error``.
    """

    platform = 'Coding'

    def __init__(self, config: SourceConfig, log=None):
        """Initialize Coding client.

        Args:
            config: Coding source configuration
            log: Optional logger to bind instead of the global one
        """
        super().__init__(
            config.url,
            config.token,
            timeout=config.timeout,
            rate_limit_per_second=config.rate_limit_per_second,
            log=log,
        )
        self.logger.info(f'Initialized Coding client for {self.base_url}')

    def _error_message(self, status_code: int, data: Any) -> str:
        error = _response_error(data)
        if error:
            return error
        return super()._error_message(status_code, data)

    def call_action(self, action: str, **params: Any) -> Dict[str, Any]:
        """Invoke an open API action and return its ``Response`` payload.

        Raises:
            APIError: On HTTP errors, malformed payloads or ``Response.Error``
        """
        body = {'Action': action, **params}
        response = self.post('/open-api', data=body, params={'Action': action})

        data = response.data
        if not isinstance(data, dict) or not isinstance(data.get('Response'), dict):
            raise APIError(
                f'Invalid response format from Coding API for {action}',
                platform=self.platform,
                status_code=response.status_code,
            )

        payload = data['Response']
        if 'Error' in payload:
            error = payload['Error'] or {}
            raise error_for_coding_code(
                str(error.get('Code', 'UnknownError')),
                error.get('Message', 'Unknown error'),
                status_code=response.status_code,
                response_data=payload,
            )

        return payload

    def describe_team_depots(self, page_number: int = 1, page_size: int = PAGE_SIZE) -> Dict[str, Any]:
        """Fetch one page of ``DescribeTeamDepotInfoList``."""
        payload = self.call_action(
            'DescribeTeamDepotInfoList', PageNumber=page_number, PageSize=page_size
        )
        return payload.get('DepotData') or {}

    def list_all_repositories(self) -> List[Repository]:
        """List every repository of the team, following pagination.

        Records that cannot be turned into a ``Repository`` (for example a
        depot without any clone URL) are logged and left out.

        Returns:
            Repositories in API order
        """
        repositories: List[Repository] = []
        page_number = 1

        while True:
            depot_data = self.describe_team_depots(page_number)
            records = depot_data.get('Depots') or []

            for record in records:
                try:
                    repositories.append(Repository.from_api(record))
                except ValidationError as e:
                    label = f"{record.get('ProjectName', '?')}/{record.get('Name', '?')}"
                    self.logger.warning(f'Ignoring invalid repository record {label}: {e}')

            total_pages = int((depot_data.get('Page') or {}).get('TotalPage') or 1)
            self.logger.debug(f'Fetched page {page_number}/{total_pages} ({len(records)} records)')

            if not records or page_number >= total_pages:
                break
            page_number += 1

        self.logger.info(f'Retrieved {len(repositories)} repositories from Coding')
        return repositories

    def test_connection(self) -> bool:
        """Check the token by asking Coding for the current user.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self.call_action('DescribeCodingCurrentUser')
            return True
        except APIError as e:
            self.logger.error(f'Coding connection test failed: {e}')
            return False


def _response_error(data: Any) -> str:
    response = data.get('Response') if isinstance(data, dict) else None
    error = response.get('Error') if isinstance(response, dict) else None
    if isinstance(error, dict) and error.get('Message'):
        return str(error['Message'])
    return ''
