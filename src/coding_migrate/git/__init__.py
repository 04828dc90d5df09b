"""Git operations module for repository migration."""

from .clone import GitCloner
from .command import GitCommandResult, GitCommandRunner, mask_credentials
from .operations import GitOperations
from .push import GitPusher

__all__ = [
    'GitCloner',
    'GitCommandResult',
    'GitCommandRunner',
    'GitOperations',
    'GitPusher',
    'mask_credentials',
]
