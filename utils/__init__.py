# utils/__init__.py
from .logger import (
    setup_logger,
    get_server_logger,
    get_crawler_logger,
    get_pipeline_logger,
    get_ratelimit_logger
)
from .validators import validate_message
from .urls import extract_urls, remove_urls
from .rate_limiter import (
    RateLimitDecision,
    SlidingWindowLimiter,
    InMemoryWindowStore,
    RedisWindowStore,
    build_limiter,
    get_client_ip,
)

__all__ = [
    "setup_logger",
    "get_server_logger",
    "get_crawler_logger",
    "get_pipeline_logger",
    "get_ratelimit_logger",
    "validate_message",
    "extract_urls",
    "remove_urls",
    "RateLimitDecision",
    "SlidingWindowLimiter",
    "InMemoryWindowStore",
    "RedisWindowStore",
    "build_limiter",
    "get_client_ip",
]
