"""
Request ID tracking middleware.

Assigns every request a request_id (honouring an incoming X-Request-ID),
echoes it back in the response and logs request start and completion.
"""
import re
import uuid
import logging
import time
from typing import Optional
from django.utils.deprecation import MiddlewareMixin
from django.http import HttpRequest, HttpResponse

from apps.core.logging import PIIMasker

REQUEST_ID_PATTERN = re.compile(r'^[A-Za-z0-9\-_.]{1,64}$')


class RequestTrackingMiddleware(MiddlewareMixin):
    """
    Middleware to track request IDs and add them to logging context.
    """

    def __init__(self, get_response=None):
        super().__init__(get_response)
        self.logger = logging.getLogger('apps.core.request_tracking')

    def process_request(self, request: HttpRequest) -> Optional[HttpResponse]:
        request.request_id = self._get_or_generate_request_id(request)
        request.start_time = time.time()
        self._log_request_start(request)
        return None

    def process_response(self, request: HttpRequest, response: HttpResponse) -> HttpResponse:
        duration = time.time() - getattr(request, 'start_time', time.time())

        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
            self._log_request_completion(request, response, duration)

        return response

    def process_exception(self, request: HttpRequest, exception: Exception) -> Optional[HttpResponse]:
        duration = time.time() - getattr(request, 'start_time', time.time())
        self.logger.error(
            f"Request failed: {request.method} {request.path} - {type(exception).__name__}",
            extra={
                'request_id': getattr(request, 'request_id', None),
                'method': request.method,
                'path': request.path,
                'duration_ms': round(duration * 1000, 2),
                'exception_type': type(exception).__name__,
                'exception_message': PIIMasker.mask_text(str(exception)),
                'event_type': 'request_exception'
            },
            exc_info=exception
        )
        return None

    def _get_or_generate_request_id(self, request: HttpRequest) -> str:
        """
        Use the caller's X-Request-ID when it is well formed, else a new UUID hex.
        """
        request_id = request.META.get('HTTP_X_REQUEST_ID', '')
        if request_id and REQUEST_ID_PATTERN.match(request_id):
            return request_id
        return uuid.uuid4().hex

    def _log_request_start(self, request: HttpRequest):
        self.logger.info(
            f"Request started: {request.method} {request.path}",
            extra={
                'request_id': request.request_id,
                'method': request.method,
                'path': request.path,
                'ip_address': self._get_client_ip(request),
                'user_agent': PIIMasker.mask_text(request.META.get('HTTP_USER_AGENT', '')),
                'event_type': 'request_start'
            }
        )

    def _log_request_completion(self, request: HttpRequest, response: HttpResponse, duration: float):
        status_code = response.status_code

        if status_code >= 500:
            log_level = 'error'
        elif status_code >= 400:
            log_level = 'warning'
        else:
            log_level = 'info'

        getattr(self.logger, log_level)(
            f"Request completed: {request.method} {request.path} - {status_code} in {duration:.3f}s",
            extra={
                'request_id': request.request_id,
                'method': request.method,
                'path': request.path,
                'status_code': status_code,
                'duration_ms': round(duration * 1000, 2),
                'event_type': 'request_completion'
            }
        )

    def _get_client_ip(self, request: HttpRequest) -> str:
        forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if forwarded_for:
            return forwarded_for.split(',')[0].strip()

        real_ip = request.META.get('HTTP_X_REAL_IP')
        if real_ip:
            return real_ip

        return request.META.get('REMOTE_ADDR', 'unknown')
