# core/tests/test_services.py
from datetime import date
from unittest import mock

from django.test import TestCase

from core.exceptions import CurrentYearVerificationError, ValidationError
from core.models import AcademicYear
from core.services import AcademicYearService


class AcademicYearServiceTest(TestCase):
    def setUp(self):
        self.y1 = AcademicYear.objects.create(
            name="2023-24", start_date=date(2023, 4, 1), end_date=date(2024, 3, 31), is_current=True
        )
        self.y2 = AcademicYear.objects.create(
            name="2024-25", start_date=date(2024, 4, 1), end_date=date(2025, 3, 31)
        )

    def test_set_current_year_switches_flag(self):
        year = AcademicYearService.set_current_year(self.y2.pk)

        self.assertEqual(year, self.y2)
        self.assertTrue(year.is_current)
        self.assertEqual(AcademicYear.objects.filter(is_current=True).count(), 1)
        self.assertEqual(AcademicYearService.get_current_year(), self.y2)

    def test_set_current_year_is_repeatable(self):
        AcademicYearService.set_current_year(self.y2.pk)
        AcademicYearService.set_current_year(self.y2.pk)
        self.assertEqual(list(AcademicYear.objects.filter(is_current=True)), [self.y2])

    def test_set_current_year_unknown_year(self):
        with self.assertRaises(ValidationError):
            AcademicYearService.set_current_year(9999)
        self.assertEqual(AcademicYearService.get_current_year(), self.y1)

    def test_failed_verification_rolls_back(self):
        # The target never reads back as current
        with mock.patch.object(AcademicYear.objects, 'filter') as mocked_filter:
            mocked_filter.return_value.values_list.return_value.first.return_value = False
            with self.assertRaises(CurrentYearVerificationError) as ctx:
                AcademicYearService.set_current_year(self.y2.pk)

        self.assertEqual(ctx.exception.error_code, "CURRENT_YEAR_NOT_SET")
        self.y1.refresh_from_db()
        self.assertTrue(self.y1.is_current)

    def test_get_years_in_order(self):
        earlier = AcademicYear.objects.create(
            name="2022-23", start_date=date(2022, 4, 1), end_date=date(2023, 3, 31)
        )
        self.assertEqual(AcademicYearService.get_years_in_order(), [earlier, self.y1, self.y2])

    def test_get_year_unknown(self):
        with self.assertRaises(ValidationError):
            AcademicYearService.get_year(9999)

    def test_create_year_as_current(self):
        year = AcademicYearService.create_year({
            'name': "2025-26",
            'start_date': date(2025, 4, 1),
            'end_date': date(2026, 3, 31),
            'is_current': True,
        })
        self.assertTrue(year.is_current)
        self.y1.refresh_from_db()
        self.assertFalse(self.y1.is_current)

    def test_create_year_missing_field(self):
        with self.assertRaises(ValidationError):
            AcademicYearService.create_year({'name': "2025-26"})

    def test_create_year_invalid_dates(self):
        with self.assertRaises(ValidationError):
            AcademicYearService.create_year({
                'name': "2025-26",
                'start_date': date(2026, 4, 1),
                'end_date': date(2025, 3, 31),
            })

    def test_update_year(self):
        year = AcademicYearService.update_year(self.y2.pk, {'name': "2024-2025", 'is_current': True})
        self.assertEqual(year.name, "2024-2025")
        self.assertTrue(year.is_current)

    def test_delete_current_year_refused(self):
        with self.assertRaises(ValidationError):
            AcademicYearService.delete_year(self.y1.pk)
        self.assertTrue(AcademicYear.objects.filter(pk=self.y1.pk).exists())

    def test_delete_year(self):
        self.assertTrue(AcademicYearService.delete_year(self.y2.pk))
        self.assertFalse(AcademicYear.objects.filter(pk=self.y2.pk).exists())
