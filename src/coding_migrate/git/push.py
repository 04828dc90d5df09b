"""Git push operations."""

from typing import Optional

from ..utils.logging import get_logger
from .command import GitCommandRunner, mask_credentials


class GitPusher:
    """Adds the destination remote and pushes branches to it."""

    def __init__(self, runner: GitCommandRunner, log=None):
        """Initialize git pusher.

        Args:
            runner: Git command runner
            log: Optional logger to bind instead of the global one
        """
        self.runner = runner
        self.logger = get_logger('GitPusher', log)

    async def add_remote(self, path: str, name: str, url: str) -> None:
        """Point remote ``name`` at ``url``, adding it if it does not exist yet.

        Raises:
            TransferError: If git remote fails
        """
        existing = await self.runner.run(['remote'], cwd=path)
        remotes = existing.stdout.split()

        if name in remotes:
            await self.runner.run(['remote', 'set-url', name, url], cwd=path)
            self.logger.debug(f'Updated remote {name} -> {mask_credentials(url)}')
        else:
            await self.runner.run(['remote', 'add', name, url], cwd=path)
            self.logger.debug(f'Added remote {name} -> {mask_credentials(url)}')

    async def push(
        self,
        path: str,
        remote: str,
        branch: str,
        force: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        """Push ``branch`` to ``remote``.

        Args:
            path: Repository working directory
            remote: Remote name
            branch: Branch to push
            force: Overwrite the remote branch
            timeout: Per-push timeout in seconds

        Raises:
            TransferError: If git push fails
            TransferTimeout: If the push exceeds ``timeout``
        """
        cmd = ['push']
        if force:
            cmd.append('--force')
        cmd.extend([remote, branch])

        self.logger.info(f'Pushing {branch} to {remote}{" (force)" if force else ""}')
        await self.runner.run(cmd, cwd=path, timeout=timeout)
        self.logger.debug(f'Push of {branch} to {remote} completed')
