# config/views.py
"""
Project-level views: health check and JSON error handlers.
"""
from django.http import JsonResponse
from django.utils import timezone


def health_check_view(request):
    """System health check endpoint."""
    from django.db import connection
    from django.db.utils import OperationalError

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        db_status = True
    except OperationalError:
        db_status = False

    status_code = 200 if db_status else 503

    return JsonResponse({
        'status': 'healthy' if db_status else 'unhealthy',
        'database': 'connected' if db_status else 'disconnected',
        'timestamp': timezone.now().isoformat(),
    }, status=status_code)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def handler404(request, exception):
    return JsonResponse({'error': 'Not found.', 'error_code': 'NOT_FOUND'}, status=404)


def handler500(request):
    return JsonResponse({'error': 'System error. Our team has been notified.', 'error_code': 'SYSTEM_ERROR'}, status=500)
