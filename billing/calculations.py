# billing/calculations.py
"""
Fee record projection.
Read-side arithmetic shared by both fee ledgers; nothing here writes.
"""
from decimal import Decimal

from django.utils import timezone

from shared.constants import StatusChoices
from shared.utils.field_mapping import FieldMapper, ENHANCED_SOURCE, LEGACY_SOURCE

ZERO = Decimal('0')


def _money(value):
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def project_fee_record(actual, discount, paid, final_fee=None, balance_fee=None):
    """
    Fill in final/balance for a fee row.

    Stored values win when present; otherwise
    final = actual - discount and balance = final - paid.

    Returns:
        dict: actual_amount, discount_amount, paid_amount, final_fee, balance_fee
    """
    actual = _money(actual)
    discount = _money(discount)
    paid = _money(paid)

    final = _money(final_fee) if final_fee is not None else actual - discount
    balance = _money(balance_fee) if balance_fee is not None else final - paid

    return {
        'actual_amount': actual,
        'discount_amount': discount,
        'paid_amount': paid,
        'final_fee': final,
        'balance_fee': balance,
    }


def classify_status(final_fee, paid, balance, due_date=None, today=None):
    """
    Advisory status for a fee row.
    balance <= 0 is Paid, a part-payment is Partial, then Overdue/Pending by due date.
    """
    final_fee = _money(final_fee)
    paid = _money(paid)
    balance = _money(balance)

    if balance <= 0:
        return StatusChoices.PAID
    if ZERO < paid < final_fee:
        return StatusChoices.PARTIAL

    today = today or timezone.now().date()
    if due_date and due_date < today:
        return StatusChoices.OVERDUE
    return StatusChoices.PENDING


def project_record(record):
    """Projection of a StudentFeeRecord or legacy Fee instance."""
    source = ENHANCED_SOURCE if hasattr(record, 'actual_fee') else LEGACY_SOURCE
    canonical = FieldMapper.to_canonical_fee(record, source)
    return project_fee_record(
        canonical['actual_fee'],
        canonical['discount_amount'],
        canonical['paid_amount'],
        canonical['final_fee'],
        canonical['balance_fee'],
    )


def outstanding_balance(canonical_fee):
    """Balance of a canonical fee dict, always recomputed from its parts."""
    return (
        canonical_fee['actual_fee']
        - canonical_fee['discount_amount']
        - canonical_fee['paid_amount']
    )
