# core/models.py
"""
CORE MODELS - academic calendar and class structure.
Consistent field naming, proper relationships, well documented
"""
import logging
from typing import Optional

from django.db import models
from django.db.models import Q
from django.core.exceptions import ValidationError

# SHARED IMPORTS
from shared.models import ClassManager

logger = logging.getLogger(__name__)


# ============ ACADEMIC YEAR MODEL ============

class AcademicYearQuerySet(models.QuerySet):

    def current(self):
        return self.filter(is_current=True).first()

    def in_start_order(self):
        """Ascending by start date; pk breaks ties so the order is deterministic."""
        return self.order_by('start_date', 'pk')


class AcademicYear(models.Model):
    """Academic year, e.g. 2024-25. Exactly one is flagged current."""
    name = models.CharField(max_length=50, unique=True, help_text="e.g., 2024-25")
    start_date = models.DateField()
    end_date = models.DateField()
    is_current = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AcademicYearQuerySet.as_manager()

    class Meta:
        db_table = 'core_academic_year'
        ordering = ['-start_date']
        constraints = [
            models.UniqueConstraint(
                fields=['is_current'],
                condition=Q(is_current=True),
                name='unique_current_academic_year',
            ),
        ]
        indexes = [
            models.Index(fields=['is_current']),
            models.Index(fields=['start_date', 'end_date']),
        ]
        verbose_name = 'Academic Year'
        verbose_name_plural = 'Academic Years'

    def __str__(self):
        return self.name

    @property
    def duration_months(self) -> int:
        """Get duration of academic year in months."""
        if self.start_date and self.end_date:
            return (self.end_date.year - self.start_date.year) * 12 + self.end_date.month - self.start_date.month
        return 0

    def clean(self):
        """Validate academic year dates."""
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError({'end_date': 'End date must be after start date.'})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


# ============ CLASS MODEL ============

class Class(models.Model):
    """
    Academic class, e.g. "Class 7" section "A".
    The name encodes the numeric level used for promotion mapping.
    """
    name = models.CharField(max_length=100)
    section = models.CharField(max_length=20, blank=True, default='')
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'core_class'
        unique_together = ('name', 'section')
        ordering = ['name', 'section']
        indexes = [
            models.Index(fields=['is_active']),
            models.Index(fields=['name']),
        ]
        verbose_name = "Class"
        verbose_name_plural = "Classes"

    def __str__(self):
        return self.display_name

    @property
    def display_name(self) -> str:
        return ClassManager.display_name(self.name, self.section)

    @property
    def level_number(self) -> Optional[int]:
        return ClassManager.level_number(self.name)

    def get_active_students(self):
        """Get all active students in this class."""
        from students.models import Student
        return Student.objects.active().filter(current_class=self)

    def clean(self):
        if not (self.name or '').strip():
            raise ValidationError({'name': 'Class name is required.'})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
