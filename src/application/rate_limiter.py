import asyncio
import logging

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 2.0  # Keeps a pass under the GitHub REST hourly limit


class FixedDelayRateLimiter:
    """Pauses for a fixed interval after every candidate of a pass."""

    def __init__(self, delay_seconds: float = DEFAULT_DELAY_SECONDS):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative.")
        self.delay_seconds = delay_seconds

    async def wait(self) -> None:
        await asyncio.sleep(self.delay_seconds)
