"""
Shared services aggregator.
Safe to import without triggering circular imports.
"""

from .notifications import NotificationService, VARIANT_DEFAULT, VARIANT_DESTRUCTIVE

__all__ = [
    'NotificationService',
    'VARIANT_DEFAULT',
    'VARIANT_DESTRUCTIVE',
]
