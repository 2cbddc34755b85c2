# billing/models.py
import uuid
import logging
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.core.validators import MinValueValidator
from django.core.exceptions import ValidationError

# ✅ Import shared constants
from shared.constants import StatusChoices, PaymentMethods, FeeTypes

logger = logging.getLogger(__name__)

MONEY = dict(max_digits=12, decimal_places=2)


class FeeStructure(models.Model):
    """Fee plan for one class in one academic year."""
    FREQUENCY_CHOICES = (
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('annually', 'Annually'),
        ('one_time', 'One Time'),
    )

    school_class = models.ForeignKey('core.Class', on_delete=models.CASCADE, related_name='fee_structures')
    academic_year = models.ForeignKey('core.AcademicYear', on_delete=models.PROTECT, related_name='fee_structures')
    fee_type = models.CharField(max_length=50, choices=FeeTypes.CHOICES)
    amount = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    frequency = models.CharField(max_length=20, choices=FREQUENCY_CHOICES, default='annually')
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_feestructure'
        unique_together = ('school_class', 'academic_year', 'fee_type')
        ordering = ['academic_year', 'school_class', 'fee_type']
        verbose_name = 'Fee Structure'
        verbose_name_plural = 'Fee Structures'
        indexes = [
            models.Index(fields=['academic_year', 'is_active']),
        ]

    def __str__(self):
        return f"{self.school_class} - {self.fee_type} ({self.academic_year}) ₹{self.amount:,.2f}"

    def clean(self):
        if self.amount is not None and self.amount < 0:
            raise ValidationError({'amount': 'Fee amount cannot be negative.'})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class StudentFeeRecord(models.Model):
    """
    Per-student fee obligation (the enhanced ledger).
    final_fee and balance_fee are stored, recomputed on every save.
    """
    student = models.ForeignKey('students.Student', on_delete=models.CASCADE, related_name='fee_records')
    school_class = models.ForeignKey('core.Class', on_delete=models.SET_NULL, null=True, blank=True, related_name='fee_records')
    academic_year = models.ForeignKey('core.AcademicYear', on_delete=models.PROTECT, related_name='fee_records')
    fee_type = models.CharField(max_length=50, choices=FeeTypes.CHOICES)

    actual_fee = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    discount_amount = models.DecimalField(**MONEY, default=Decimal('0'), validators=[MinValueValidator(0)])
    paid_amount = models.DecimalField(**MONEY, default=Decimal('0'), validators=[MinValueValidator(0)])
    final_fee = models.DecimalField(**MONEY, null=True, blank=True)
    balance_fee = models.DecimalField(**MONEY, null=True, blank=True)

    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=StatusChoices.FEE_STATUS_CHOICES, default=StatusChoices.PENDING)
    discount_notes = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    # Carry-forward tracking
    is_carry_forward = models.BooleanField(default=False)
    carry_forward_source = models.ForeignKey(
        'FeeCarryForward', on_delete=models.SET_NULL, null=True, blank=True, related_name='created_records'
    )
    payment_blocked = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_student_fee_record'
        ordering = ['academic_year', 'fee_type']
        verbose_name = 'Student Fee Record'
        verbose_name_plural = 'Student Fee Records'
        indexes = [
            models.Index(fields=['student', 'academic_year']),
            models.Index(fields=['academic_year', 'status']),
            models.Index(fields=['student', 'fee_type', 'academic_year']),
        ]

    def __str__(self):
        return f"{self.student_id} - {self.fee_type} ({self.academic_year})"

    def clean(self):
        if self.discount_amount and self.actual_fee is not None and self.discount_amount > self.actual_fee:
            raise ValidationError({'discount_amount': 'Discount cannot exceed the fee amount.'})

    def save(self, *args, **kwargs):
        self.final_fee = (self.actual_fee or Decimal('0')) - (self.discount_amount or Decimal('0'))
        self.balance_fee = self.final_fee - (self.paid_amount or Decimal('0'))
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def is_paid(self):
        return self.status == StatusChoices.PAID


class Fee(models.Model):
    """
    Legacy per-student fee row.
    Same obligation as StudentFeeRecord under older column names; read through
    FieldMapper, never stores computed columns.
    """
    student = models.ForeignKey('students.Student', on_delete=models.CASCADE, related_name='legacy_fees')
    academic_year = models.ForeignKey('core.AcademicYear', on_delete=models.PROTECT, related_name='legacy_fees')
    fee_type = models.CharField(max_length=50, choices=FeeTypes.CHOICES)
    amount = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    actual_amount = models.DecimalField(**MONEY, null=True, blank=True)
    discount_amount = models.DecimalField(**MONEY, default=Decimal('0'))
    total_paid = models.DecimalField(**MONEY, default=Decimal('0'))
    due_date = models.DateField(null=True, blank=True)
    payment_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=StatusChoices.FEE_STATUS_CHOICES, default=StatusChoices.PENDING)
    discount_notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_fee'
        ordering = ['academic_year', 'fee_type']
        verbose_name = 'Fee (legacy)'
        verbose_name_plural = 'Fees (legacy)'
        indexes = [
            models.Index(fields=['student', 'fee_type', 'academic_year']),
        ]

    def __str__(self):
        return f"{self.student_id} - {self.fee_type} ({self.academic_year}) [legacy]"

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class FeePaymentRecord(models.Model):
    """Receipt for money received against one fee row of either ledger."""
    fee_record = models.ForeignKey(
        StudentFeeRecord, on_delete=models.CASCADE, null=True, blank=True, related_name='payments'
    )
    legacy_fee = models.ForeignKey(
        Fee, on_delete=models.CASCADE, null=True, blank=True, related_name='payments'
    )
    student = models.ForeignKey('students.Student', on_delete=models.CASCADE, related_name='fee_payments')
    amount_paid = models.DecimalField(**MONEY, validators=[MinValueValidator(Decimal('0.01'))])
    payment_date = models.DateField(default=timezone.localdate)
    payment_method = models.CharField(max_length=20, choices=PaymentMethods.CHOICES, default=PaymentMethods.CASH)
    receipt_number = models.CharField(max_length=50, unique=True, db_index=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.CharField(max_length=150, blank=True)
    idempotency_key = models.CharField(max_length=100, unique=True, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'billing_fee_payment_record'
        ordering = ['-payment_date', '-created_at']
        verbose_name = 'Fee Payment'
        verbose_name_plural = 'Fee Payments'
        indexes = [
            models.Index(fields=['student', 'payment_date']),
        ]

    def __str__(self):
        return f"Receipt {self.receipt_number} - ₹{self.amount_paid:,.2f}"

    def clean(self):
        if bool(self.fee_record_id) == bool(self.legacy_fee_id):
            raise ValidationError('A payment must reference exactly one fee record.')

    def save(self, *args, **kwargs):
        if not self.receipt_number:
            self.receipt_number = self.generate_receipt_number()
        self.full_clean()
        super().save(*args, **kwargs)

    def generate_receipt_number(self):
        stamp = timezone.now().strftime('%y%m')
        unique_id = str(uuid.uuid4().int)[:8]
        return f"RCP/{stamp}/{unique_id}"


class FeeCarryForward(models.Model):
    """Unresolved dues moved from one academic year into the next."""
    TYPE_CHOICES = (
        ('promotion', 'Promotion'),
        ('manual', 'Manual'),
        ('bulk', 'Bulk'),
    )
    STATUS_CHOICES = (
        ('applied', 'Applied'),
        ('cancelled', 'Cancelled'),
    )

    student = models.ForeignKey('students.Student', on_delete=models.CASCADE, related_name='carry_forwards')
    from_academic_year = models.ForeignKey('core.AcademicYear', on_delete=models.PROTECT, related_name='carried_from')
    to_academic_year = models.ForeignKey('core.AcademicYear', on_delete=models.PROTECT, related_name='carried_to')
    original_amount = models.DecimalField(**MONEY)
    carried_amount = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    carry_forward_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='promotion')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='applied')
    notes = models.TextField(blank=True)
    created_by = models.CharField(max_length=150, blank=True)
    idempotency_key = models.CharField(max_length=100, unique=True, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'billing_fee_carry_forward'
        ordering = ['-created_at']
        verbose_name = 'Fee Carry Forward'
        verbose_name_plural = 'Fee Carry Forwards'

    def __str__(self):
        return f"{self.student_id}: ₹{self.carried_amount:,.2f} {self.from_academic_year} → {self.to_academic_year}"

    def clean(self):
        if self.from_academic_year_id and self.from_academic_year_id == self.to_academic_year_id:
            raise ValidationError('Dues cannot be carried forward into the same academic year.')

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class PaymentBlockageLog(models.Model):
    """A payment refused because the student still owes previous-year dues."""
    student = models.ForeignKey('students.Student', on_delete=models.CASCADE, related_name='payment_blockages')
    academic_year = models.ForeignKey(
        'core.AcademicYear', on_delete=models.SET_NULL, null=True, blank=True, related_name='payment_blockages'
    )
    blocked_amount = models.DecimalField(**MONEY)
    outstanding_dues = models.DecimalField(**MONEY)
    reason = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'billing_payment_blockage_log'
        ordering = ['-created_at']
        verbose_name = 'Payment Blockage'
        verbose_name_plural = 'Payment Blockages'

    def __str__(self):
        return f"{self.student_id} blocked ₹{self.blocked_amount:,.2f}"
