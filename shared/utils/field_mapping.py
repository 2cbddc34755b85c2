# shared/utils/field_mapping.py
"""
Consistent field mapping across both fee ledgers, forms and APIs.
DEPENDS ONLY ON: shared.constants
"""
from decimal import Decimal

from shared.constants.model_fields import FORM_TO_MODEL, LEGACY_FEE_TO_CANONICAL

import logging

logger = logging.getLogger(__name__)

ENHANCED_SOURCE = 'enhanced'
LEGACY_SOURCE = 'legacy'


def _to_decimal(value):
    if value is None or value == '':
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class FieldMapper:
    """Handle field name standardization and ledger unification."""

    # Centralized mapping configuration
    MAPS = {
        # The dashboard sends camelCase payloads
        'fee_action': {
            'studentId': 'student_id',
            'paymentAmount': 'amount',
            'waiverReason': 'reason',
            'paymentMethod': 'payment_method',
        },
        'promotion_item': {
            'studentId': 'student_id',
            'fromAcademicYearId': 'from_academic_year_id',
            'fromClassId': 'from_class_id',
            'toClassId': 'to_class_id',
            'promotionType': 'promotion_type',
        },
        'legacy_fee': LEGACY_FEE_TO_CANONICAL,
    }

    @staticmethod
    def map_form_to_model(form_data, model_name=None):
        """
        Apply consistent field mapping from forms/API payloads to models.
        """
        if not form_data:
            return {}

        standardized_data = {}
        # Model-specific map first, the global form map otherwise
        mapping = FieldMapper.MAPS.get(model_name, FORM_TO_MODEL)

        for key, value in form_data.items():
            standardized_data[mapping.get(key, key)] = value

        return standardized_data

    @staticmethod
    def to_canonical_fee(record, source):
        """
        Normalise a fee row from either ledger into one canonical dict.

        Args:
            record: StudentFeeRecord / Fee instance, or a dict of their columns
            source: 'enhanced' or 'legacy'

        Returns:
            dict with canonical keys (actual_fee, discount_amount, paid_amount, ...)
        """
        if source not in (ENHANCED_SOURCE, LEGACY_SOURCE):
            raise ValueError(f"Unknown fee ledger: {source}")

        get = record.get if isinstance(record, dict) else lambda name, default=None: getattr(record, name, default)

        if source == ENHANCED_SOURCE:
            actual_fee = get('actual_fee')
            paid_amount = get('paid_amount')
            final_fee = get('final_fee')
            balance_fee = get('balance_fee')
        else:
            actual_fee = get('actual_amount')
            if actual_fee is None:
                actual_fee = get('amount')
            paid_amount = get('total_paid')
            # Legacy rows never carried computed columns
            final_fee = None
            balance_fee = None

        return {
            'source': source,
            'record_id': get('id') if get('id') is not None else get('pk'),
            'student_id': get('student_id'),
            'fee_type': get('fee_type'),
            'academic_year_id': get('academic_year_id'),
            'actual_fee': _to_decimal(actual_fee) or Decimal('0'),
            'discount_amount': _to_decimal(get('discount_amount')) or Decimal('0'),
            'paid_amount': _to_decimal(paid_amount) or Decimal('0'),
            'final_fee': _to_decimal(final_fee),
            'balance_fee': _to_decimal(balance_fee),
            'status': get('status'),
            'due_date': get('due_date'),
        }

    @staticmethod
    def fee_key(canonical_fee):
        """Composite identity of a fee obligation shared by both ledgers."""
        return (
            str(canonical_fee['student_id']),
            canonical_fee['fee_type'],
            str(canonical_fee['academic_year_id']),
        )
