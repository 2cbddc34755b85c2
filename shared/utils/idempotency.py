# shared/utils/idempotency.py
"""
Idempotency service to prevent duplicate processing.
Used for promotion batches, dues payments, waivers and carry-forwards.
"""
import hashlib

from django.conf import settings
from django.core.cache import cache


class IdempotencyService:
    """Service to ensure operations are processed only once."""

    @staticmethod
    def get_idempotency_key(request):
        key = request.headers.get('X-Idempotency-Key')
        if not key:
            return None

        # Prefix with user ID to ensure the key is unique to this user
        user_id = getattr(request.user, 'id', 'anonymous')
        return f"idemp_{user_id}_{key}"

    @staticmethod
    def get_key(scope, *parts):
        """
        Deterministic key for one operation, e.g. ('waiver', student_id, year_id).
        Same inputs always give the same key, so a re-run maps onto the first run.
        """
        raw = ':'.join(str(part) for part in parts)
        digest = hashlib.sha256(raw.encode('utf-8')).hexdigest()[:32]
        return f"{scope}_{digest}"

    @staticmethod
    def check_and_lock(key, ttl=None):
        """
        Check if operation was already processed and lock for processing.
        Returns True if should proceed, False if duplicate.
        """
        ttl = ttl or getattr(settings, 'IDEMPOTENCY_LOCK_TTL', 300)
        if cache.add(f"{key}_lock", True, ttl):
            if cache.get(f"{key}_processed"):
                cache.delete(f"{key}_lock")
                return False
            return True
        return False  # Already being processed

    @staticmethod
    def is_processed(key):
        return bool(cache.get(f"{key}_processed"))

    @staticmethod
    def mark_processed(key, ttl=None):
        """Mark operation as successfully processed."""
        ttl = ttl or getattr(settings, 'IDEMPOTENCY_PROCESSED_TTL', 24 * 60 * 60)
        cache.set(f"{key}_processed", True, ttl)
        cache.delete(f"{key}_lock")

    @staticmethod
    def mark_failed(key):
        """Mark operation as failed (release lock for retry)."""
        cache.delete(f"{key}_lock")
