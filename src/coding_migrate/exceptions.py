"""Exception taxonomy for repository migration."""

from typing import List, Optional


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigurationInvalid(MigrationError):
    """Configuration failed validation; the whole batch is aborted."""

    def __init__(self, errors: List[str]):
        """Initialize configuration error.

        Args:
            errors: Human readable validation messages
        """
        self.errors = list(errors)
        super().__init__('Configuration validation failed: ' + '; '.join(self.errors))


class TargetResolutionError(MigrationError):
    """Destination existence check, lookup or creation failed for one unit."""


class TransferError(MigrationError):
    """A git transfer command failed."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        output: str = '',
        exit_code: Optional[int] = None,
    ):
        """Initialize transfer error.

        Args:
            message: Error message
            command: Command line that failed (credentials already masked)
            output: Captured stdout/stderr of the command
            exit_code: Process exit code, None if the process never finished
        """
        super().__init__(message)
        self.command = command or []
        self.output = output
        self.exit_code = exit_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.exit_code is not None:
            message = f'{message} (exit code {self.exit_code})'
        if self.output:
            message = f'{message}: {self.output.strip()}'
        return message


class TransferTimeout(TransferError):
    """A git transfer command exceeded its timeout."""


class ContentGuardSkip(MigrationError):
    """Source repository has no commits or no files; skipped on purpose."""


class RetryExhausted(MigrationError):
    """All push attempts failed."""

    def __init__(self, last_error: Exception, attempts: int):
        """Initialize retry exhaustion error.

        Args:
            last_error: Error raised by the final attempt
            attempts: Number of attempts made
        """
        super().__init__(f'Push failed after {attempts} attempt(s): {last_error}')
        self.last_error = last_error
        self.attempts = attempts


class MigrationCancelled(MigrationError):
    """The batch was cancelled while a repository was between steps."""
