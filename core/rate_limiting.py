"""
Redis-based rate limiting for API endpoints.
Fixed window counter per (scope, client IP); fails open when Redis is down.
"""
import logging
from functools import wraps
from typing import Optional, Tuple

import redis
from django.conf import settings
from rest_framework import status
from rest_framework.exceptions import Throttled
from rest_framework.response import Response

logger = logging.getLogger(__name__)

_redis_client = None


def get_redis_client() -> Optional[redis.Redis]:
    """Connect lazily; returns None when Redis is not configured or unreachable."""
    global _redis_client
    if _redis_client is not None or not settings.REDIS_URL:
        return _redis_client
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5
        )
        client.ping()
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(f"Redis connection failed: {e}. Rate limiting will be disabled.")
        return None
    _redis_client = client
    return _redis_client


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def _hit(client, scope: str, request, window_seconds: int) -> Tuple[int, int]:
    key = f"rate_limit:{scope}:{get_client_ip(request)}"
    current_count = client.incr(key)
    if current_count == 1:
        client.expire(key, window_seconds)
    return current_count, client.ttl(key)


def _too_many_requests(max_requests: int, window_seconds: int, ttl: int) -> Response:
    return Response(
        {
            'success': False,
            'message': f'Rate limit exceeded: maximum {max_requests} requests per {window_seconds} seconds.',
            'retry_after': ttl
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={
            'X-RateLimit-Limit': str(max_requests),
            'X-RateLimit-Remaining': '0',
            'X-RateLimit-Reset': str(ttl),
            'Retry-After': str(ttl)
        }
    )


def _limited(scope, request, max_requests, window_seconds, call):
    client = get_redis_client() if settings.RATE_LIMIT_ENABLED else None
    if client is None:
        return call()

    try:
        current_count, ttl = _hit(client, scope, request, window_seconds)
    except redis.RedisError as e:
        logger.error(f"Redis error in rate limiting: {e}")
        return call()

    if current_count > max_requests:
        logger.warning(f"Rate limit exceeded for {scope} from {get_client_ip(request)}")
        return _too_many_requests(max_requests, window_seconds, ttl)

    response = call()
    response['X-RateLimit-Limit'] = str(max_requests)
    response['X-RateLimit-Remaining'] = str(max(0, max_requests - current_count))
    response['X-RateLimit-Reset'] = str(ttl)
    return response


def rate_limit(max_requests: int = 20, window_seconds: int = 60):
    """
    Rate limiting decorator for DRF view methods.

    Usage:
        @rate_limit(10, 60)  # 10 requests per minute
        def post(self, request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(self, request, *args, **kwargs):
            return _limited(
                view_func.__qualname__, request, max_requests, window_seconds,
                lambda: view_func(self, request, *args, **kwargs)
            )
        return wrapper
    return decorator


class RateLimitMixin:
    """
    Rate limiting for every method of a class-based view.
    Exceeding the limit raises Throttled, rendered by the API exception handler.

    Usage:
        class MyView(RateLimitMixin, APIView):
            rate_limit_max_requests = 20
            rate_limit_window_seconds = 60
    """
    rate_limit_max_requests = 20
    rate_limit_window_seconds = 60

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self.rate_limit_headers = {}

        client = get_redis_client() if settings.RATE_LIMIT_ENABLED else None
        if client is None:
            return

        try:
            current_count, ttl = _hit(
                client, self.__class__.__name__, request, self.rate_limit_window_seconds
            )
        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return

        self.rate_limit_headers = {
            'X-RateLimit-Limit': str(self.rate_limit_max_requests),
            'X-RateLimit-Remaining': str(max(0, self.rate_limit_max_requests - current_count)),
            'X-RateLimit-Reset': str(ttl),
        }
        if current_count > self.rate_limit_max_requests:
            raise Throttled(wait=ttl)

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        for header, value in getattr(self, 'rate_limit_headers', {}).items():
            response[header] = value
        return response
