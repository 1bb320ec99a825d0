"""
HTTP utilities for portfolio-sync.
"""
import asyncio
import time
import logging
from collections import defaultdict
from typing import Dict, Optional

import aiohttp

# Configure logging
logger = logging.getLogger(__name__)

# Notion allows an average of three requests per second per integration
RATE_LIMIT = 3  # requests per second per host
MAX_CONCURRENT_REQUESTS = 5
REQUEST_TIMEOUT = 30  # seconds

USER_AGENT = 'portfolio-sync/0.1.0'


class RateLimiter:
    """
    Spaces out requests to the same host so a sync run stays under the
    remote API's request budget.
    """
    def __init__(self, requests_per_second: float = RATE_LIMIT):
        self.min_interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self.last_requests = defaultdict(lambda: 0.0)
        self.locks = defaultdict(asyncio.Lock)

    async def acquire(self, host: str):
        """
        Wait until a request to ``host`` may be sent.

        Args:
            host: The host to rate limit
        """
        async with self.locks[host]:
            wait_time = self.min_interval - (time.monotonic() - self.last_requests[host])
            if wait_time > 0:
                logger.debug(f"Rate limiting {host}, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
            self.last_requests[host] = time.monotonic()


def create_session(headers: Optional[Dict[str, str]] = None) -> aiohttp.ClientSession:
    """
    Build the shared aiohttp session used by the client and the materializer.

    Args:
        headers: Extra default headers

    Returns:
        aiohttp.ClientSession: The HTTP session
    """
    default_headers = {'User-Agent': USER_AGENT}
    if headers:
        default_headers.update(headers)
    return aiohttp.ClientSession(headers=default_headers)
