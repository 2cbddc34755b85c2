# shared/constants/__init__.py
from .model_fields import (
    CLASS_MODEL_PATH,
    ACADEMIC_YEAR_MODEL_PATH,
    LEGACY_FEE_TO_CANONICAL,
    FORM_TO_MODEL,
    StatusChoices,
    StudentStatus,
    PromotionTypes,
    FeeActions,
    FeeTypes,
    PaymentMethods
)

__all__ = [
    'CLASS_MODEL_PATH',
    'ACADEMIC_YEAR_MODEL_PATH',
    'LEGACY_FEE_TO_CANONICAL',
    'FORM_TO_MODEL',
    'StatusChoices',
    'StudentStatus',
    'PromotionTypes',
    'FeeActions',
    'FeeTypes',
    'PaymentMethods'
]
