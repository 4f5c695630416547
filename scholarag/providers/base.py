"""Base provider interfaces."""
import time
from abc import ABC
from typing import Optional

from ..exceptions import ProviderError
from ..utils.rate_limiter import RateLimiter


class BaseProvider(ABC):
    """Base class for all providers.

    Providers are built per request with the credential that request
    resolved, so an instance never outlives the key it was given.

    Args:
        api_key: Credential for this request (user key or platform key)
        timeout: Request timeout in seconds
        rate_limiter: Shared limiter for this provider, if it has one
        deadline: time.monotonic() value after which no request may be sent
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        rate_limiter: Optional[RateLimiter] = None,
        deadline: Optional[float] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.rate_limiter = rate_limiter
        self.deadline = deadline

    def _acquire_rate_limit(self) -> None:
        if self.rate_limiter is not None:
            self.rate_limiter.acquire()

    def _remaining_timeout(self) -> float:
        """Timeout for the next HTTP call, never past the deadline.

        Raises:
            ProviderError: If the deadline has already passed
        """
        if self.deadline is None:
            return self.timeout
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise ProviderError("Request deadline passed before the call was sent")
        return min(self.timeout, remaining)
