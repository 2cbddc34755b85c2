# shared/constants/model_fields.py

"""
CONSTANT field names and choice values shared by every app.
NO DEPENDENCIES - safe to import from models, services and settings.
"""

# This is the ONLY class model
CLASS_MODEL_PATH = 'core.Class'
ACADEMIC_YEAR_MODEL_PATH = 'core.AcademicYear'

# Ledger field → canonical fee field mapping.
# Enhanced ledger (billing.StudentFeeRecord) already uses canonical names.
LEGACY_FEE_TO_CANONICAL = {
    'actual_amount': 'actual_fee',
    'total_paid': 'paid_amount',
}

# Form/API field → model field mapping
FORM_TO_MODEL = {
    'class': 'current_class_id',
    'class_id': 'current_class_id',
    'year_id': 'academic_year_id',
    'actual_amount': 'actual_fee',
    'total_paid': 'paid_amount',
}


# Fee status values (stored capitalised, as the ledgers always have)
class StatusChoices:
    PENDING = 'Pending'
    PAID = 'Paid'
    OVERDUE = 'Overdue'
    PARTIAL = 'Partial'

    FEE_STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (PAID, 'Paid'),
        (OVERDUE, 'Overdue'),
        (PARTIAL, 'Partial'),
    )


class StudentStatus:
    ACTIVE = 'Active'
    INACTIVE = 'Inactive'
    ALUMNI = 'Alumni'

    CHOICES = (
        (ACTIVE, 'Active'),
        (INACTIVE, 'Inactive'),
        (ALUMNI, 'Alumni'),
    )


class PromotionTypes:
    PROMOTED = 'promoted'
    REPEATED = 'repeated'
    DROPOUT = 'dropout'

    CHOICES = (
        (PROMOTED, 'Promoted'),
        (REPEATED, 'Repeated'),
        (DROPOUT, 'Dropout'),
    )


class FeeActions:
    BLOCK = 'block'
    PAYMENT = 'payment'
    WAIVER = 'waiver'
    CARRY_FORWARD = 'carry_forward'

    CHOICES = (
        (BLOCK, 'Block promotion'),
        (PAYMENT, 'Record payment'),
        (WAIVER, 'Waive dues'),
        (CARRY_FORWARD, 'Carry forward'),
    )
    ALL = (BLOCK, PAYMENT, WAIVER, CARRY_FORWARD)


class FeeTypes:
    TUITION = 'Tuition Fee'
    DEVELOPMENT = 'Development Fee'
    LIBRARY = 'Library Fee'
    LABORATORY = 'Laboratory Fee'
    SPORTS = 'Sports Fee'
    TRANSPORT = 'Transport Fee'
    EXAM = 'Exam Fee'
    BOOKS = 'Books Fee'
    UNIFORM = 'Uniform Fee'
    ACTIVITIES = 'Activities Fee'
    MEALS = 'Meals Fee'
    OTHER = 'Other Fee'
    PREVIOUS_YEAR_DUES = 'Previous Year Dues'

    CHOICES = tuple(
        (value, value) for value in (
            TUITION, DEVELOPMENT, LIBRARY, LABORATORY, SPORTS, TRANSPORT,
            EXAM, BOOKS, UNIFORM, ACTIVITIES, MEALS, OTHER, PREVIOUS_YEAR_DUES,
        )
    )


# Payment methods
class PaymentMethods:
    CASH = 'cash'
    TRANSFER = 'transfer'
    CHEQUE = 'cheque'
    ONLINE = 'online'
    WAIVER = 'waiver'

    CHOICES = (
        (CASH, 'Cash'),
        (TRANSFER, 'Bank Transfer'),
        (CHEQUE, 'Cheque'),
        (ONLINE, 'Online'),
        (WAIVER, 'Waiver'),
    )
