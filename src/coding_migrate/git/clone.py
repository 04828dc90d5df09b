"""Git repository cloning operations."""

import asyncio
import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Optional

from ..utils.logging import get_logger
from .command import GitCommandRunner, mask_credentials


def _force_remove(func, path, _exc):
    # Git object files are read-only
    os.chmod(path, stat.S_IWRITE)
    func(path)


def _rmtree(path: str) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_force_remove)
    else:
        shutil.rmtree(path, onerror=_force_remove)


class GitCloner:
    """Clones source repositories into workspace directories."""

    def __init__(self, runner: GitCommandRunner, timeout: Optional[float] = None, log=None):
        """Initialize git cloner.

        Args:
            runner: Git command runner
            timeout: Clone timeout in seconds
            log: Optional logger to bind instead of the global one
        """
        self.runner = runner
        self.timeout = timeout
        self.logger = get_logger('GitCloner', log)

    async def clone(self, url: str, path: str) -> str:
        """Clone ``url`` into ``path``, replacing anything already there.

        Returns:
            The clone path

        Raises:
            TransferError: If git clone fails or times out
        """
        target = Path(path)
        if target.exists():
            self.logger.warning(f'Workspace {path} already exists, removing it')
            await asyncio.to_thread(self.remove, path)
        target.parent.mkdir(parents=True, exist_ok=True)

        self.logger.info(f'Cloning {mask_credentials(url)} into {path}')
        await self.runner.run(['clone', url, str(target)], timeout=self.timeout)
        self.logger.debug(f'Clone of {mask_credentials(url)} completed')
        return str(target)

    def remove(self, path: str) -> None:
        """Delete a workspace directory; a missing directory is ignored.

        Blocking; async callers run it in a worker thread.
        """
        if not os.path.lexists(path):
            return
        if os.path.isdir(path) and not os.path.islink(path):
            _rmtree(path)
        else:
            os.remove(path)
        self.logger.debug(f'Removed workspace {path}')
