"""
Resilient executor. Runs a remote operation, transparently re-authenticating
and retrying when the failure looks like an expired credential.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from ..config import ResilienceConfig
from ..errors import FatalError, RefreshFailedError, RetriesExhaustedError
from .classify import classify_error
from .health import TokenHealthMonitor

logger = logging.getLogger("m365_readiness.resilience.executor")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and auth-failure patterns for one invocation."""
    max_retries: int = 1
    auth_error_patterns: frozenset[str] = frozenset()

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    def is_auth_error(self, error: BaseException) -> bool:
        return classify_error(error, self.auth_error_patterns)


class ResilientExecutor:
    """
    Wraps remote calls with auth-failure recovery.

    Non-auth failures propagate untouched on the first occurrence. Auth failures
    force a session refresh and retry, up to max_retries times; a failed refresh
    raises RefreshFailedError, an exhausted budget raises RetriesExhaustedError.
    """

    def __init__(
        self,
        monitor: TokenHealthMonitor,
        config: Optional[ResilienceConfig] = None,
    ):
        self.monitor = monitor
        self.config = config or monitor.config

    def policy(
        self,
        max_retries: Optional[int] = None,
        auth_error_patterns: Optional[Iterable[str]] = None,
    ) -> RetryPolicy:
        if max_retries is None:
            max_retries = self.config.max_retries
        if auth_error_patterns is None:
            auth_error_patterns = self.config.auth_error_patterns
        return RetryPolicy(
            max_retries=max_retries,
            auth_error_patterns=frozenset(p.lower() for p in auth_error_patterns),
        )

    async def invoke(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: Optional[int] = None,
        auth_error_patterns: Optional[Iterable[str]] = None,
        *,
        description: str = "",
    ) -> T:
        """
        Run operation(), which must return a fresh awaitable on each call.
        """
        policy = self.policy(max_retries, auth_error_patterns)
        label = description or getattr(operation, "__name__", "operation")
        attempts = 0
        retries_used = 0

        while True:
            attempts += 1
            try:
                result = await operation()
            except FatalError:
                # Already terminal in a nested invocation
                raise
            except Exception as e:
                if not policy.is_auth_error(e):
                    raise

                if retries_used >= policy.max_retries:
                    logger.error(
                        f"[{label}] Auth failure persisted after {attempts} attempt(s): {e}"
                    )
                    raise RetriesExhaustedError(e, attempts) from e

                retries_used += 1
                logger.warning(
                    f"[{label}] Auth failure on attempt {attempts} ({e}); "
                    f"refreshing session (retry {retries_used}/{policy.max_retries})"
                )
                if not await self.monitor.check_and_refresh(force=True):
                    logger.error(f"[{label}] Session refresh failed; aborting.")
                    raise RefreshFailedError(e) from e
                continue

            if attempts > 1:
                logger.info(f"[{label}] Succeeded on attempt {attempts} after session refresh.")
            return result
