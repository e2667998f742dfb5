"""
Uniform retry policy for RPC-backed reads.

``RetryPolicy`` holds the attempt budget, a fixed backoff and the predicate
deciding which failures are transient. It runs sync callables in the default
executor and awaits coroutines directly.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from arbwatch.exceptions import AbiMismatchError, DataError
from arbwatch.utils import get_logger

logger = get_logger(__name__)

RATE_LIMIT_MARKERS = (
    "429",
    "too many requests",
    "-32005",
    "limit exceeded",
    "rate limit",
)

CALL_EXCEPTIONS = (ContractLogicError, BadFunctionCallOutput)


def is_rate_limit_error(exc: BaseException) -> bool:
    """Check whether an exception message looks like an RPC rate limit."""
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def default_is_retryable(exc: BaseException) -> bool:
    """
    Decide whether a failed read is worth repeating.

    Contract-call exceptions, timeouts, dropped connections and rate-limit
    responses are transient. ABI mismatches and bad venue data are not: the
    next attempt would fail the same way.
    """
    if isinstance(exc, (AbiMismatchError, DataError)):
        return False
    if isinstance(exc, CALL_EXCEPTIONS):
        return True
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    return is_rate_limit_error(exc)


@dataclass
class RetryPolicy:
    """
    Retry configuration applied uniformly by the adapter-invocation layer.

    Attributes:
        max_attempts: Total attempts including the first one
        backoff_sec: Fixed sleep between attempts
        is_retryable: Predicate on the raised exception
    """

    max_attempts: int = 3
    backoff_sec: float = 0.25
    is_retryable: Callable[[BaseException], bool] = field(
        default=default_is_retryable
    )

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1: {self.max_attempts}")
        if self.backoff_sec < 0:
            raise ValueError(f"backoff_sec must be >= 0: {self.backoff_sec}")

    async def run(
        self,
        func: Callable[..., Union[Any, Awaitable[Any]]],
        *args: Any,
        label: Optional[str] = None,
    ) -> Any:
        """
        Call ``func`` until it succeeds, fails permanently or runs out of attempts.

        Synchronous callables run in the default executor so blocking web3
        calls never stall the event loop.

        Raises:
            The last exception raised by ``func``.
        """
        label = label or getattr(func, "__name__", "call")

        for attempt in range(1, self.max_attempts + 1):
            try:
                if inspect.iscoroutinefunction(func):
                    return await func(*args)
                loop = asyncio.get_running_loop()
                return await loop.run_in_executor(None, func, *args)
            except Exception as e:
                if attempt >= self.max_attempts or not self.is_retryable(e):
                    raise
                logger.debug(
                    f"{label}: attempt {attempt}/{self.max_attempts} failed ({e}), "
                    f"retrying in {self.backoff_sec}s"
                )
                await asyncio.sleep(self.backoff_sec)

        # Loop always returns or raises
        raise RuntimeError(f"{label}: retry loop exited without result")
