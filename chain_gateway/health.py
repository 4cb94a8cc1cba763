"""
ConnectionHealth — bounded readiness probing for a ledger endpoint.

await_ready() is the only place in the gateway that retries. It is used once
while a provider initializes; callers that want to wait indefinitely must
call it again themselves.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from chain_gateway.errors import ConnectionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_INTERVAL = 3.0


class ConnectionHealth:
    """
    Args:
        check: Async callable returning True when the endpoint is healthy.
        max_attempts: Default attempt limit for await_ready.
        interval: Default seconds to sleep between failed attempts.
        name: Endpoint label for log lines.
        sleep: Injected for tests.
    """

    def __init__(
        self,
        check: Callable[[], Awaitable[bool]],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval: float = DEFAULT_INTERVAL,
        name: str = "ledger",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._check = check
        self.max_attempts = max_attempts
        self.interval = interval
        self.name = name
        self._sleep = sleep
        self.last_error: Exception | None = None

    async def probe(self) -> bool:
        """Run a single probe. Exceptions count as unhealthy."""
        try:
            healthy = bool(await self._check())
        except Exception as e:  # any transport failure means "not healthy"
            self.last_error = e
            return False
        self.last_error = None if healthy else ConnectionError(f"{self.name} reported unhealthy")
        return healthy

    async def await_ready(self, max_attempts: int = None, interval: float = None) -> int:
        """
        Probe until healthy or the attempt limit is reached.

        Returns:
            The number of probes it took.

        Raises:
            ConnectionError: If every attempt failed.
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        delay = self.interval if interval is None else interval
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        logger.info("Connecting to %s...", self.name)
        for attempt in range(1, attempts + 1):
            if await self.probe():
                logger.info("Connected to %s", self.name)
                return attempt
            logger.warning(
                "Connection attempt %d/%d failed: %s", attempt, attempts, self.last_error
            )
            if attempt < attempts:
                await self._sleep(delay)

        raise ConnectionError(f"{self.name} unreachable after {attempts} attempts")
