# students/tests/fixtures.py
from datetime import date
from decimal import Decimal

from django.core.cache import cache

from billing.models import FeeStructure, StudentFeeRecord
from core.models import AcademicYear, Class
from shared.constants import FeeTypes
from students.models import Student


class PromotionFixturesMixin:
    """
    Three consecutive years (2023-24 current), Class 5/6/7 section A, ten
    Active students split over Class 5 and 6, tuition plans for every class
    in 2024-25.
    """

    def setUp(self):
        cache.clear()
        self.y0 = AcademicYear.objects.create(
            name="2022-23", start_date=date(2022, 4, 1), end_date=date(2023, 3, 31)
        )
        self.y1 = AcademicYear.objects.create(
            name="2023-24", start_date=date(2023, 4, 1), end_date=date(2024, 3, 31), is_current=True
        )
        self.y2 = AcademicYear.objects.create(
            name="2024-25", start_date=date(2024, 4, 1), end_date=date(2025, 3, 31)
        )

        self.class5 = Class.objects.create(name="Class 5", section="A")
        self.class6 = Class.objects.create(name="Class 6", section="A")
        self.class7 = Class.objects.create(name="Class 7", section="A")

        for school_class in (self.class5, self.class6, self.class7):
            self.add_structure(school_class)

        self.students = [
            Student.objects.create(
                first_name=f"Student{i}",
                last_name="Test",
                current_class=self.class5 if i < 5 else self.class6,
            )
            for i in range(10)
        ]

    def add_structure(self, school_class, year=None, fee_type=FeeTypes.TUITION, amount='12000'):
        return FeeStructure.objects.create(
            school_class=school_class,
            academic_year=year or self.y2,
            fee_type=fee_type,
            amount=Decimal(amount),
        )

    def add_dues(self, student, amount, year=None, fee_type=FeeTypes.TUITION):
        return StudentFeeRecord.objects.create(
            student=student,
            school_class=student.current_class,
            academic_year=year or self.y0,
            fee_type=fee_type,
            actual_fee=Decimal(amount),
        )
