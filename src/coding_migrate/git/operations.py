"""Git transfer primitive used by the migration core."""

import asyncio
from typing import List, Optional

from ..exceptions import TransferError
from ..utils.logging import get_logger
from .clone import GitCloner
from .command import GitCommandRunner
from .push import GitPusher


class GitOperations:
    """Clone, inspect and push repositories with the git executable.

    Composes ``GitCloner`` and ``GitPusher`` over one ``GitCommandRunner``.
    """

    def __init__(
        self,
        git_command: str = 'git',
        clone_timeout: Optional[float] = None,
        runner: Optional[GitCommandRunner] = None,
        log=None,
    ):
        """Initialize Git operations.

        Args:
            git_command: Git executable
            clone_timeout: Clone timeout in seconds
            runner: Optional preconfigured command runner
            log: Optional logger to bind instead of the global one
        """
        self.runner = runner or GitCommandRunner(git_command, log=log)
        self.cloner = GitCloner(self.runner, timeout=clone_timeout, log=log)
        self.pusher = GitPusher(self.runner, log=log)
        self.logger = get_logger('GitOperations', log)

    async def clone(self, url: str, path: str) -> str:
        """Clone ``url`` into ``path``."""
        return await self.cloner.clone(url, path)

    async def add_remote(self, path: str, name: str, url: str) -> None:
        """Add (or repoint) remote ``name``."""
        await self.pusher.add_remote(path, name, url)

    async def push(
        self,
        path: str,
        remote: str,
        branch: str,
        force: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        """Push ``branch`` to ``remote``."""
        await self.pusher.push(path, remote, branch, force=force, timeout=timeout)

    async def list_branches(self, path: str) -> List[str]:
        """Local and remote-tracking branch names, remote prefixes removed."""
        result = await self.runner.run(['branch', '-a'], cwd=path)

        branches: List[str] = []
        for line in result.stdout.splitlines():
            name = line.strip()
            if not name or '->' in name:
                continue
            if name.startswith('* '):
                name = name[2:].strip()
            if name.startswith('remotes/'):
                name = name.split('/', 2)[2] if name.count('/') >= 2 else name
            if name not in branches:
                branches.append(name)
        return branches

    async def detect_default_branch(self, path: str) -> str:
        """Find the branch to push.

        Order: the remote's symbolic HEAD, then ``main``, then ``master``,
        then the first branch found, then ``main``.
        """
        head = await self.runner.run(
            ['symbolic-ref', 'refs/remotes/origin/HEAD'], cwd=path, check=False
        )
        ref = head.stdout.strip()
        if head.returncode == 0 and ref:
            prefix = 'refs/remotes/origin/'
            branch = ref[len(prefix):] if ref.startswith(prefix) else ref.rsplit('/', 1)[-1]
            if branch:
                return branch

        branches = await self.list_branches(path)
        for preferred in ('main', 'master'):
            if preferred in branches:
                return preferred
        return branches[0] if branches else 'main'

    async def is_empty(self, path: str) -> bool:
        """True if the repository has no commits at all."""
        result = await self.runner.run(['rev-list', '--all', '--count'], cwd=path)
        try:
            return int(result.stdout.strip() or 0) == 0
        except ValueError:
            raise TransferError(
                'Unexpected git rev-list output', output=result.stdout, exit_code=0
            )

    async def has_content(self, path: str) -> bool:
        """True if the working tree has any tracked or untracked files."""
        tracked = await self.runner.run(['ls-files'], cwd=path)
        if tracked.stdout.strip():
            return True
        status = await self.runner.run(['status', '--porcelain'], cwd=path)
        return bool(status.stdout.strip())

    async def cleanup(self, path: str) -> None:
        """Remove a workspace; missing paths are ignored and failures only logged."""
        try:
            await asyncio.to_thread(self.cloner.remove, path)
        except OSError as e:
            self.logger.warning(f'Failed to clean up workspace {path}: {e}')

    async def check_git_available(self) -> bool:
        """Check if the git executable can be run."""
        try:
            result = await self.runner.run(['--version'], check=False)
        except TransferError:
            return False
        return result.returncode == 0
