# core/middleware.py
"""
MIDDLEWARE - security headers, exception mapping, request logging.
NO direct model imports, WELL LOGGED
"""
import logging

from django.conf import settings
from django.http import JsonResponse

from shared.services import NotificationService
from .exceptions import SchoolManagementException

logger = logging.getLogger(__name__)


# ============ SECURITY HEADERS MIDDLEWARE ============

class SecurityHeadersMiddleware:
    """Adds baseline security headers."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if response is None or callable(response):
            return response

        response["X-Content-Type-Options"] = "nosniff"
        response["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# ============ EXCEPTION HANDLING MIDDLEWARE ============

class ExceptionHandlingMiddleware:
    """Handles SchoolManagementException and general server errors as JSON."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        # Business logic error
        if isinstance(exception, SchoolManagementException):
            logger.warning(f"Business exception: {exception}")
            payload = exception.to_dict()
            payload['toast'] = NotificationService.error(request, payload['error'])
            return JsonResponse(payload, status=exception.status_code)

        # System error
        logger.error(f"System exception: {exception}", exc_info=True)
        if settings.DEBUG:
            return None  # Let Django render the debug page
        return JsonResponse({
            'error': "System error. Our team has been notified.",
            'error_code': 'SYSTEM_ERROR',
        }, status=500)


def api_exception_handler(exc, context):
    """
    REST framework exception handler.
    SchoolManagementException becomes a JSON error plus a destructive toast;
    everything else falls through to the framework default.
    """
    from rest_framework.response import Response
    from rest_framework.views import exception_handler

    if isinstance(exc, SchoolManagementException):
        request = context.get('request')
        logger.warning(f"API business exception: {exc}")
        payload = exc.to_dict()
        payload['toast'] = NotificationService.error(request, payload['error'])
        return Response(payload, status=exc.status_code)

    return exception_handler(exc, context)


# ============ REQUEST LOGGING MIDDLEWARE ============

class RequestLoggingMiddleware:
    """Debug-level structured request/response logging."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if self._should_skip_logging(request):
            return self.get_response(request)

        if settings.DEBUG:
            logger.debug("Request", extra={
                "method": request.method,
                "path": request.path,
                "ip": self._get_client_ip(request),
                "user": getattr(request.user, "id", None) if hasattr(request, 'user') else None,
            })

        response = self.get_response(request)

        if settings.DEBUG:
            logger.debug("Response", extra={
                "path": request.path,
                "status": getattr(response, 'status_code', None),
                "user": getattr(request.user, "id", None) if hasattr(request, 'user') else None,
            })

        return response

    def _should_skip_logging(self, request) -> bool:
        """Skip logging for noisy requests."""
        skip_paths = ['/static/', '/media/', '/favicon.ico', '/health/']
        return any(request.path.startswith(path) for path in skip_paths)

    def _get_client_ip(self, request) -> str:
        xff = request.META.get("HTTP_X_FORWARDED_FOR")
        return xff.split(",")[0] if xff else request.META.get("REMOTE_ADDR", "unknown")
