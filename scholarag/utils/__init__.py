"""Utility helpers."""
from .logging import get_logger, setup_logging
from .rate_limiter import RateLimiter

__all__ = ["get_logger", "setup_logging", "RateLimiter"]
