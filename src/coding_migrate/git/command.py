"""Async git subprocess runner."""

import asyncio
import os
import re
from dataclasses import dataclass
from typing import List, Optional

from ..exceptions import TransferError, TransferTimeout
from ..utils.logging import get_logger

_CREDENTIALS = re.compile(r'(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s]+@')


def mask_credentials(text: str) -> str:
    """Hide ``user:token@`` parts of URLs in ``text``."""
    return _CREDENTIALS.sub(r'\g<scheme>***@', text)


@dataclass
class GitCommandResult:
    """Result of a finished git command."""

    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def output(self) -> str:
        """stderr if present, else stdout."""
        return self.stderr.strip() or self.stdout.strip()


class GitCommandRunner:
    """Runs git commands with ``asyncio.create_subprocess_exec``."""

    def __init__(self, git_command: str = 'git', default_timeout: Optional[float] = None, log=None):
        """Initialize git command runner.

        Args:
            git_command: Git executable
            default_timeout: Timeout applied when a call gives none
            log: Optional logger to bind instead of the global one
        """
        self.git_command = git_command
        self.default_timeout = default_timeout
        self.logger = get_logger('GitCommandRunner', log)

    async def run(
        self,
        args: List[str],
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
        check: bool = True,
    ) -> GitCommandResult:
        """Run ``git <args>``.

        Args:
            args: Arguments after the git executable
            cwd: Working directory
            timeout: Seconds before the process is killed
            check: Raise on a non-zero exit code

        Returns:
            Command result

        Raises:
            TransferTimeout: If the command exceeded its timeout
            TransferError: If git could not be started, or exited non-zero with ``check``
        """
        cmd = [self.git_command, *args]
        masked = [mask_credentials(part) for part in cmd]
        action = args[0] if args else 'command'
        timeout = timeout if timeout is not None else self.default_timeout

        self.logger.debug(f'Executing: {" ".join(masked)} (cwd={cwd or "."})')

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env={**os.environ, 'GIT_TERMINAL_PROMPT': '0'},
            )
        except OSError as e:
            raise TransferError(f'Could not start {self.git_command}: {e}', command=masked) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise TransferTimeout(
                f'git {action} timed out after {timeout} seconds',
                command=masked,
            )

        result = GitCommandResult(
            returncode=process.returncode,
            stdout=mask_credentials(stdout.decode(errors='replace')) if stdout else '',
            stderr=mask_credentials(stderr.decode(errors='replace')) if stderr else '',
        )

        if check and result.returncode != 0:
            raise TransferError(
                f'git {action} failed',
                command=masked,
                output=result.output,
                exit_code=result.returncode,
            )

        return result
