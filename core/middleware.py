import logging
import time

from django.conf import settings

logger = logging.getLogger(__name__)


class RequestTimingMiddleware:
    """Log API requests slower than ``SLOW_OPERATION_SECONDS``."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.perf_counter()
        response = self.get_response(request)
        elapsed = time.perf_counter() - started
        if elapsed > getattr(settings, 'SLOW_OPERATION_SECONDS', 1.0):
            user = getattr(request, 'user', None)
            logger.warning(
                'slow request %s %s -> %s', request.method, request.path, response.status_code,
                extra={
                    'execution_time': round(elapsed, 3),
                    'user_id': getattr(user, 'id', None),
                    'request_id': request.META.get('HTTP_X_REQUEST_ID'),
                },
            )
        return response
