"""
Custom middleware for API request logging.
"""
import logging
import time

logger = logging.getLogger('api.requests')


class APILoggingMiddleware:
    """
    Logs method, path, status and execution time of every API request.
    """

    LOGGED_PREFIX = '/api/'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        should_log = request.path.startswith(self.LOGGED_PREFIX)
        start_time = time.monotonic()

        response = self.get_response(request)

        if should_log:
            execution_time_ms = round((time.monotonic() - start_time) * 1000, 2)

            # Get results count from response data if available
            results_count = None
            data = getattr(response, 'data', None)
            if isinstance(data, dict) and isinstance(data.get('results'), list):
                results_count = len(data['results'])

            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level, "%s %s -> %s in %sms%s",
                request.method, request.path, response.status_code, execution_time_ms,
                f" ({results_count} results)" if results_count is not None else '',
            )

        return response
