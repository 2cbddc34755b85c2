# shared/utils/__init__.py
from .field_mapping import FieldMapper, ENHANCED_SOURCE, LEGACY_SOURCE
from .idempotency import IdempotencyService

__all__ = [
    'FieldMapper',
    'ENHANCED_SOURCE',
    'LEGACY_SOURCE',
    'IdempotencyService',
]
