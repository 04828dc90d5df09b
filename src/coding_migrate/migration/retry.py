"""Bounded retry of git pushes."""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Tuple, Type

from ..exceptions import RetryExhausted, TransferError
from ..utils.logging import get_logger


class RetryPolicy:
    """Retry a call a fixed number of times with a fixed delay in between.

    No backoff and no jitter: attempt, sleep ``delay``, attempt again with the
    same arguments, until ``max_attempts`` calls have failed.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 5.0,
        timeout: float = 300.0,
        retry_on: Tuple[Type[BaseException], ...] = (TransferError,),
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        log=None,
    ):
        """Initialize retry policy.

        Args:
            max_attempts: Total attempts, at least 1
            delay: Seconds slept between attempts
            timeout: Per-attempt timeout handed to the pushed operation
            retry_on: Exception types that trigger another attempt
            sleep: Coroutine function used to wait, ``asyncio.sleep`` by default
            log: Optional logger to bind instead of the global one
        """
        if max_attempts < 1:
            raise ValueError('max_attempts must be at least 1')
        if delay < 0:
            raise ValueError('delay must not be negative')
        if timeout <= 0:
            raise ValueError('timeout must be positive')

        self.max_attempts = max_attempts
        self.delay = delay
        self.timeout = timeout
        self.retry_on = retry_on
        self.sleep = sleep or asyncio.sleep
        self.logger = get_logger('RetryPolicy', log)
        self.attempts = 0

    async def call(self, func, *args, **kwargs):
        """Call ``func`` until it succeeds or the attempts are used up.

        ``func`` may be a coroutine function or a plain callable. Errors not
        listed in ``retry_on`` propagate immediately. ``attempts`` holds the
        number of calls made, so use one policy per unit of work.

        Returns:
            Whatever ``func`` returns

        Raises:
            RetryExhausted: After ``max_attempts`` retryable failures
        """
        self.attempts = 0
        last_error: Optional[BaseException] = None

        while self.attempts < self.max_attempts:
            self.attempts += 1
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
                return result
            except self.retry_on as e:
                last_error = e
                self.logger.warning(
                    f'Attempt {self.attempts}/{self.max_attempts} failed: {e}'
                )
                if self.attempts < self.max_attempts:
                    await self.sleep(self.delay)

        raise RetryExhausted(last_error, self.attempts)
