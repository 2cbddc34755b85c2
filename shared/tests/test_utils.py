# shared/tests/test_utils.py
from decimal import Decimal

from django.core.cache import cache
from django.test import SimpleTestCase, TestCase

from core.models import Class
from shared.models import ClassManager
from shared.services import NotificationService
from shared.utils import ENHANCED_SOURCE, LEGACY_SOURCE, FieldMapper, IdempotencyService


class FieldMapperTest(SimpleTestCase):
    def test_model_specific_map(self):
        mapped = FieldMapper.map_form_to_model(
            {'studentId': 4, 'paymentAmount': '100', 'notes': 'x'}, 'fee_action'
        )
        self.assertEqual(mapped, {'student_id': 4, 'amount': '100', 'notes': 'x'})

    def test_global_form_map(self):
        self.assertEqual(FieldMapper.map_form_to_model({'class_id': 3}), {'current_class_id': 3})

    def test_empty_form(self):
        self.assertEqual(FieldMapper.map_form_to_model(None), {})

    def test_legacy_fee_uses_actual_amount_first(self):
        canonical = FieldMapper.to_canonical_fee({
            'id': 7, 'student_id': 1, 'fee_type': 'Tuition Fee', 'academic_year_id': 2,
            'amount': '5000', 'actual_amount': '4800', 'total_paid': '800',
        }, LEGACY_SOURCE)

        self.assertEqual(canonical['actual_fee'], Decimal('4800'))
        self.assertEqual(canonical['paid_amount'], Decimal('800'))
        self.assertEqual(canonical['discount_amount'], Decimal('0'))
        self.assertIsNone(canonical['balance_fee'])
        self.assertEqual(canonical['record_id'], 7)

    def test_enhanced_fee_keeps_stored_columns(self):
        canonical = FieldMapper.to_canonical_fee({
            'id': 3, 'student_id': 1, 'fee_type': 'Tuition Fee', 'academic_year_id': 2,
            'actual_fee': '5000', 'paid_amount': '1000', 'final_fee': '5000', 'balance_fee': '4000',
        }, ENHANCED_SOURCE)

        self.assertEqual(canonical['balance_fee'], Decimal('4000'))
        self.assertEqual(canonical['source'], ENHANCED_SOURCE)

    def test_fee_key_matches_across_ledgers(self):
        enhanced = {'student_id': 1, 'fee_type': 'Tuition Fee', 'academic_year_id': 2}
        legacy = {'student_id': '1', 'fee_type': 'Tuition Fee', 'academic_year_id': '2'}
        self.assertEqual(FieldMapper.fee_key(enhanced), FieldMapper.fee_key(legacy))

    def test_unknown_ledger(self):
        with self.assertRaises(ValueError):
            FieldMapper.to_canonical_fee({}, 'archive')


class ClassManagerTest(TestCase):
    def test_next_class_name(self):
        self.assertEqual(ClassManager.next_class_name("Class 7"), "Class 8")
        self.assertEqual(ClassManager.next_class_name("Grade 9 Science"), "Grade 10 Science")
        self.assertEqual(ClassManager.next_class_name("Nursery"), "Nursery")

    def test_next_class_keeps_section(self):
        class7a = Class.objects.create(name="Class 7", section="A")
        Class.objects.create(name="Class 8", section="B")
        class8a = Class.objects.create(name="Class 8", section="A")

        self.assertEqual(ClassManager.get_next_class(class7a), class8a)

    def test_next_class_falls_back_to_same_class(self):
        class7b = Class.objects.create(name="Class 7", section="B")
        Class.objects.create(name="Class 8", section="A")

        self.assertEqual(ClassManager.get_next_class(class7b), class7b)
        self.assertIsNone(ClassManager.get_next_class(None))


class IdempotencyServiceTest(TestCase):
    def setUp(self):
        cache.clear()

    def test_key_is_deterministic(self):
        first = IdempotencyService.get_key('waiver', 12, 3)
        self.assertEqual(first, IdempotencyService.get_key('waiver', '12', '3'))
        self.assertNotEqual(first, IdempotencyService.get_key('waiver', 13, 3))
        self.assertTrue(first.startswith('waiver_'))

    def test_lock_then_processed(self):
        key = IdempotencyService.get_key('payment', 1, 2)

        self.assertTrue(IdempotencyService.check_and_lock(key))
        self.assertFalse(IdempotencyService.check_and_lock(key))

        IdempotencyService.mark_processed(key)
        self.assertTrue(IdempotencyService.is_processed(key))
        self.assertFalse(IdempotencyService.check_and_lock(key))

    def test_failed_releases_lock(self):
        key = IdempotencyService.get_key('carry_forward', 1, 2)

        IdempotencyService.check_and_lock(key)
        IdempotencyService.mark_failed(key)

        self.assertTrue(IdempotencyService.check_and_lock(key))


class NotificationServiceTest(SimpleTestCase):
    def test_toast_without_request(self):
        payload = NotificationService.success(None, "Saved")
        self.assertEqual(payload, {'title': "Success", 'description': "Saved", 'variant': 'default'})

    def test_unknown_variant_falls_back(self):
        payload = NotificationService.toast(None, "Note", "Hello", variant='sparkly')
        self.assertEqual(payload['variant'], 'default')

    def test_error_is_destructive(self):
        self.assertEqual(NotificationService.error(None, "Failed")['variant'], 'destructive')
