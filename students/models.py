# students/models.py
"""
STUDENT MODELS - roster, promotions and the promotion audit trail.
Uses core.Class and core.AcademicYear only, NO circular imports
"""
import logging

from django.db import models
from django.utils import timezone
from django.core.exceptions import ValidationError

# SHARED IMPORTS
from shared.constants import (
    ACADEMIC_YEAR_MODEL_PATH,
    CLASS_MODEL_PATH,
    PromotionTypes,
    StudentStatus,
)

logger = logging.getLogger(__name__)


class StudentQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status=StudentStatus.ACTIVE)

    def in_class(self, school_class):
        return self.filter(current_class=school_class)


class Student(models.Model):
    """
    Represents a student enrolled in the school.
    Only Active students take part in promotions and dues calculations.
    """
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    admission_number = models.CharField(max_length=50, unique=True, blank=True)

    # ✅ SINGLE SOURCE OF TRUTH: core.Class for academic enrollment
    current_class = models.ForeignKey(
        CLASS_MODEL_PATH,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students',
        help_text="Student's current academic class assignment"
    )
    status = models.CharField(max_length=20, choices=StudentStatus.CHOICES, default=StudentStatus.ACTIVE)
    admission_date = models.DateField(default=timezone.localdate)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StudentQuerySet.as_manager()

    class Meta:
        db_table = 'students_student'
        verbose_name = 'Student'
        verbose_name_plural = 'Students'
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['current_class', 'status']),
            models.Index(fields=['first_name', 'last_name']),
        ]
        ordering = ['admission_number']

    def __str__(self):
        return f"{self.full_name} ({self.admission_number})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self):
        return self.status == StudentStatus.ACTIVE

    def generate_admission_number(self):
        """Generate unique admission number if not provided."""
        year = self.admission_date.year
        sequence = Student.objects.filter(admission_date__year=year).count() + 1
        candidate = f"ADM/{year}/{sequence:04d}"
        while Student.objects.filter(admission_number=candidate).exists():
            sequence += 1
            candidate = f"ADM/{year}/{sequence:04d}"
        self.admission_number = candidate

    def clean(self):
        if self.admission_date and self.admission_date > timezone.localdate():
            raise ValidationError({'admission_date': 'Admission date cannot be in the future.'})

    def save(self, *args, **kwargs):
        if not self.admission_number:
            self.generate_admission_number()
        self.full_clean()
        super().save(*args, **kwargs)


class PromotionBatch(models.Model):
    """
    One run of the promotion procedure.
    A repeat run with the same idempotency key returns the stored result.
    """
    idempotency_key = models.CharField(max_length=100, unique=True, null=True, blank=True)
    target_academic_year = models.ForeignKey(
        ACADEMIC_YEAR_MODEL_PATH, on_delete=models.PROTECT, related_name='promotion_batches'
    )
    promoted_by = models.CharField(max_length=150)
    result = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'students_promotion_batch'
        ordering = ['-created_at']
        verbose_name = 'Promotion Batch'
        verbose_name_plural = 'Promotion Batches'

    def __str__(self):
        return f"Batch {self.pk} → {self.target_academic_year} by {self.promoted_by}"


class StudentPromotion(models.Model):
    """One student's move from one academic year/class to the next."""
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='promotions')
    from_academic_year = models.ForeignKey(
        ACADEMIC_YEAR_MODEL_PATH, on_delete=models.PROTECT, related_name='promotions_from'
    )
    to_academic_year = models.ForeignKey(
        ACADEMIC_YEAR_MODEL_PATH, on_delete=models.PROTECT, related_name='promotions_to'
    )
    from_class = models.ForeignKey(
        CLASS_MODEL_PATH, on_delete=models.SET_NULL, null=True, blank=True, related_name='promotions_from'
    )
    to_class = models.ForeignKey(
        CLASS_MODEL_PATH, on_delete=models.SET_NULL, null=True, blank=True, related_name='promotions_to'
    )
    promotion_type = models.CharField(max_length=20, choices=PromotionTypes.CHOICES)
    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    promoted_by = models.CharField(max_length=150)
    promotion_date = models.DateField(default=timezone.localdate)
    batch = models.ForeignKey(
        PromotionBatch, on_delete=models.SET_NULL, null=True, blank=True, related_name='promotions'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'students_student_promotion'
        ordering = ['-promotion_date', 'student']
        verbose_name = 'Student Promotion'
        verbose_name_plural = 'Student Promotions'
        indexes = [
            models.Index(fields=['student', 'to_academic_year']),
            models.Index(fields=['to_academic_year', 'promotion_type']),
        ]

    def __str__(self):
        return f"{self.student} {self.promotion_type}: {self.from_class} → {self.to_class or '-'}"

    def clean(self):
        if self.from_academic_year_id and self.from_academic_year_id == self.to_academic_year_id:
            raise ValidationError({'to_academic_year': 'Target year must differ from the source year.'})
        if self.promotion_type == PromotionTypes.DROPOUT and self.to_class_id:
            raise ValidationError({'to_class': 'A dropout has no target class.'})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class PromotionAudit(models.Model):
    """Summary of one bulk promotion, dues actions included."""
    from_academic_year = models.ForeignKey(
        ACADEMIC_YEAR_MODEL_PATH, on_delete=models.PROTECT, related_name='promotion_audits_from'
    )
    to_academic_year = models.ForeignKey(
        ACADEMIC_YEAR_MODEL_PATH, on_delete=models.PROTECT, related_name='promotion_audits_to'
    )
    batch = models.ForeignKey(
        PromotionBatch, on_delete=models.SET_NULL, null=True, blank=True, related_name='audits'
    )
    payments = models.PositiveIntegerField(default=0)
    waivers = models.PositiveIntegerField(default=0)
    carried_forward = models.PositiveIntegerField(default=0)
    blocked = models.PositiveIntegerField(default=0)
    promoted = models.PositiveIntegerField(default=0)
    fee_rows_created = models.PositiveIntegerField(default=0)
    errors = models.JSONField(default=list, blank=True)
    performed_by = models.CharField(max_length=150)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'students_promotion_audit'
        ordering = ['-created_at']
        verbose_name = 'Promotion Audit'
        verbose_name_plural = 'Promotion Audits'

    def __str__(self):
        return f"{self.from_academic_year} → {self.to_academic_year}: {self.promoted} promoted"
