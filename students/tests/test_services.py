# students/tests/test_services.py
from datetime import date
from decimal import Decimal
from unittest import mock

from django.test import TestCase

from billing.models import FeeCarryForward, FeePaymentRecord, StudentFeeRecord
from billing.services import DuesCalculatorService
from core.exceptions import (
    MissingFeeStructuresError,
    PromotionExecutionError,
    ValidationError,
)
from core.models import AcademicYear, Class
from shared.constants import FeeActions, FeeTypes, PromotionTypes, StatusChoices, StudentStatus
from students.models import PromotionAudit, PromotionBatch, Student, StudentPromotion
from students.services import BulkPromotionExecutor, PromotionProcedureService

from .fixtures import PromotionFixturesMixin


class PromotionProcedureTest(PromotionFixturesMixin, TestCase):
    def item(self, student, promotion_type=PromotionTypes.PROMOTED, **extra):
        data = {
            'student_id': student.pk,
            'from_academic_year_id': self.y1.pk,
            'from_class_id': student.current_class_id,
            'promotion_type': promotion_type,
        }
        data.update(extra)
        return data

    def test_promoted_student_moves_to_next_class(self):
        student = self.students[0]

        result = PromotionProcedureService.promote_students_with_fees([self.item(student)], self.y2.pk, "Admin")

        student.refresh_from_db()
        self.assertEqual(result['promoted'], 1)
        self.assertEqual(result['fee_rows_created'], 1)
        self.assertEqual(student.current_class, self.class6)
        promotion = StudentPromotion.objects.get(student=student)
        self.assertEqual(promotion.from_class, self.class5)
        self.assertEqual(promotion.to_class, self.class6)
        self.assertEqual(promotion.promoted_by, "Admin")
        self.assertTrue(
            StudentFeeRecord.objects.filter(student=student, academic_year=self.y2, fee_type=FeeTypes.TUITION).exists()
        )

    def test_no_next_class_keeps_same_class(self):
        class7_student = Student.objects.create(first_name="Top", last_name="Class", current_class=self.class7)

        PromotionProcedureService.promote_students_with_fees([self.item(class7_student)], self.y2.pk)

        class7_student.refresh_from_db()
        self.assertEqual(class7_student.current_class, self.class7)

    def test_explicit_target_class(self):
        student = self.students[0]

        PromotionProcedureService.promote_students_with_fees(
            [self.item(student, to_class_id=self.class7.pk)], self.y2.pk
        )

        student.refresh_from_db()
        self.assertEqual(student.current_class, self.class7)

    def test_repeated_and_dropout(self):
        repeater, leaver = self.students[0], self.students[1]

        result = PromotionProcedureService.promote_students_with_fees([
            self.item(repeater, PromotionTypes.REPEATED, reason="Low attendance"),
            self.item(leaver, PromotionTypes.DROPOUT, reason="Relocated"),
        ], self.y2.pk)

        repeater.refresh_from_db()
        leaver.refresh_from_db()
        self.assertEqual(result['repeated'], 1)
        self.assertEqual(result['dropouts'], 1)
        self.assertEqual(result['fee_rows_created'], 1)
        self.assertEqual(repeater.current_class, self.class5)
        self.assertEqual(leaver.status, StudentStatus.INACTIVE)
        self.assertIsNone(StudentPromotion.objects.get(student=leaver).to_class)

    def test_camel_case_payload_accepted(self):
        student = self.students[0]
        payload = [{
            'studentId': student.pk,
            'fromAcademicYearId': self.y1.pk,
            'promotionType': PromotionTypes.PROMOTED,
        }]

        result = PromotionProcedureService.promote_students_with_fees(payload, self.y2.pk)
        self.assertEqual(result['promoted'], 1)

    def test_missing_fee_plan_refuses_whole_batch(self):
        class8 = Class.objects.create(name="Class 8", section="A")
        student = self.students[5]

        with self.assertRaises(MissingFeeStructuresError) as ctx:
            PromotionProcedureService.promote_students_with_fees([
                self.item(self.students[0]),
                self.item(student, to_class_id=class8.pk),
            ], self.y2.pk)

        self.assertEqual(ctx.exception.error_code, "MISSING_FEE_PLANS")
        self.assertEqual(ctx.exception.missing, ["Class 8 (A)"])
        self.assertEqual(StudentPromotion.objects.count(), 0)
        self.assertEqual(PromotionBatch.objects.count(), 0)

    def test_invalid_payload(self):
        with self.assertRaises(ValidationError) as ctx:
            PromotionProcedureService.promote_students_with_fees({'student_id': 1}, self.y2.pk)
        self.assertTrue(ctx.exception.message.startswith("invalid_payload"))

        with self.assertRaises(ValidationError):
            PromotionProcedureService.promote_students_with_fees([{'student_id': 1}], self.y2.pk)

        with self.assertRaises(ValidationError):
            PromotionProcedureService.promote_students_with_fees(
                [self.item(self.students[0], promotion_type='graduated')], self.y2.pk
            )

    def test_unknown_student_reported(self):
        result = PromotionProcedureService.promote_students_with_fees([{
            'student_id': 9999,
            'from_academic_year_id': self.y1.pk,
            'promotion_type': PromotionTypes.PROMOTED,
        }], self.y2.pk)

        self.assertEqual(result['promoted'], 0)
        self.assertEqual(result['errors'][0]['error'], "Student not found")

    def test_same_key_returns_stored_result(self):
        items = [self.item(student) for student in self.students[:3]]

        first = PromotionProcedureService.promote_students_with_fees(items, self.y2.pk, idempotency_key='batch-1')
        second = PromotionProcedureService.promote_students_with_fees(items, self.y2.pk, idempotency_key='batch-1')

        self.assertEqual(first, second)
        self.assertEqual(StudentPromotion.objects.count(), 3)
        self.assertEqual(PromotionBatch.objects.count(), 1)

    def test_already_promoted_student_skipped(self):
        student = self.students[0]
        PromotionProcedureService.promote_students_with_fees([self.item(student)], self.y2.pk)

        result = PromotionProcedureService.promote_students_with_fees([self.item(student)], self.y2.pk)

        student.refresh_from_db()
        self.assertEqual(result['promoted'], 0)
        self.assertIn("already promoted", result['errors'][0]['error'])
        self.assertEqual(student.current_class, self.class6)


class BulkPromotionExecutorTest(PromotionFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.payer, self.debtor = self.students[0], self.students[1]
        self.payer_dues = self.add_dues(self.payer, '5000')
        self.debtor_dues = self.add_dues(self.debtor, '30000')

    def test_payment_and_block_scenario(self):
        result = BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, {
            str(self.payer.pk): {'action': FeeActions.PAYMENT, 'amount': '5000'},
            str(self.debtor.pk): {'action': FeeActions.BLOCK},
        }, promoted_by="Principal")

        self.assertEqual(result['payments'], 1)
        self.assertEqual(result['blocked'], 1)
        self.assertEqual(result['waivers'], 0)
        self.assertEqual(result['carried_forward'], 0)
        self.assertEqual(result['errors'], [])
        self.assertEqual(result['submitted'], 9)
        self.assertEqual(result['promoted'], 9)
        self.assertEqual(result['fee_rows_created'], 9)
        self.assertEqual(result['warnings'], [])

        self.y2.refresh_from_db()
        self.y1.refresh_from_db()
        self.assertTrue(self.y2.is_current)
        self.assertFalse(self.y1.is_current)

        # The blocked student stays where they are
        self.debtor.refresh_from_db()
        self.assertEqual(self.debtor.current_class, self.class5)
        self.assertFalse(StudentPromotion.objects.filter(student=self.debtor).exists())

        self.payer_dues.refresh_from_db()
        self.assertEqual(self.payer_dues.status, StatusChoices.PAID)
        self.assertEqual(FeePaymentRecord.objects.get().created_by, "Principal")

        audit = PromotionAudit.objects.get(pk=result['audit_id'])
        self.assertEqual(audit.promoted, 9)
        self.assertEqual(audit.payments, 1)
        self.assertEqual(audit.blocked, 1)
        self.assertEqual(audit.performed_by, "Principal")

    def test_waiver_zeroes_balance(self):
        BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, {
            str(self.payer.pk): {'action': FeeActions.WAIVER, 'reason': "Scholarship"},
            str(self.debtor.pk): {'action': FeeActions.WAIVER, 'reason': "Hardship"},
        })

        for record in (self.payer_dues, self.debtor_dues):
            record.refresh_from_db()
            self.assertEqual(record.balance_fee, Decimal('0'))
            self.assertEqual(record.status, StatusChoices.PAID)
        self.assertEqual(DuesCalculatorService.calculate_outstanding_dues(self.y2.pk), {})

    def test_carry_forward_moves_dues_into_target_year(self):
        result = BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, {
            str(self.payer.pk): {'action': FeeActions.CARRY_FORWARD},
            str(self.debtor.pk): {'action': FeeActions.CARRY_FORWARD},
        })

        self.assertEqual(result['carried_forward'], 2)
        self.assertEqual(result['promoted'], 10)
        carried = StudentFeeRecord.objects.get(
            student=self.debtor, academic_year=self.y2, fee_type=FeeTypes.PREVIOUS_YEAR_DUES
        )
        self.assertEqual(carried.actual_fee, Decimal('30000'))
        self.assertTrue(carried.is_carry_forward)

    def test_carried_dues_counted_once_across_two_promotions(self):
        BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, {
            str(self.payer.pk): {'action': FeeActions.CARRY_FORWARD},
            str(self.debtor.pk): {'action': FeeActions.CARRY_FORWARD},
        })
        self.payer_dues.refresh_from_db()
        self.assertEqual(self.payer_dues.status, StatusChoices.PAID)

        y3 = AcademicYear.objects.create(
            name="2025-26", start_date=date(2025, 4, 1), end_date=date(2026, 3, 31)
        )
        self.add_structure(self.class7, year=y3)
        result = BulkPromotionExecutor.execute(self.y2.pk, y3.pk, {})

        self.assertEqual(result['promoted'], 10)
        self.assertEqual(AcademicYear.objects.current(), y3)
        dues = DuesCalculatorService.calculate_outstanding_dues(y3.pk)
        # 2024-25 tuition plus the carried balance, the 2022-23 rows closed
        self.assertEqual(dues[str(self.payer.pk)]['total_dues'], Decimal('17000'))
        self.assertEqual(dues[str(self.debtor.pk)]['total_dues'], Decimal('42000'))
        self.assertEqual(
            {d['academic_year'] for d in dues[str(self.payer.pk)]['dues_details']}, {"2024-25"}
        )

    def test_rerun_does_not_apply_actions_twice(self):
        actions = {
            str(self.payer.pk): {'action': FeeActions.CARRY_FORWARD},
            str(self.debtor.pk): {'action': FeeActions.WAIVER, 'reason': "Hardship"},
        }
        outstanding = DuesCalculatorService.calculate_outstanding_dues(self.y1.pk)

        first = BulkPromotionExecutor.process_fee_actions(actions, outstanding, self.y1.pk, self.y2.pk, "Admin")
        second = BulkPromotionExecutor.process_fee_actions(actions, outstanding, self.y1.pk, self.y2.pk, "Admin")

        self.assertEqual(first['carried_forward'], 1)
        self.assertEqual(second['carried_forward'], 1)
        self.assertEqual(FeeCarryForward.objects.count(), 1)

    def test_action_for_settled_dues_is_reported_not_counted(self):
        actions = {
            str(self.payer.pk): {'action': FeeActions.PAYMENT, 'amount': '5000'},
            str(self.debtor.pk): {'action': FeeActions.WAIVER, 'reason': "Hardship"},
        }
        outstanding = DuesCalculatorService.calculate_outstanding_dues(self.y1.pk)
        del outstanding[str(self.payer.pk)]

        tally = BulkPromotionExecutor.process_fee_actions(actions, outstanding, self.y1.pk, self.y2.pk, "Admin")

        self.assertEqual(tally['payments'], 0)
        self.assertEqual(tally['waivers'], 1)
        self.assertEqual(tally['errors'], [
            {'student_id': str(self.payer.pk), 'action': FeeActions.PAYMENT, 'error': 'No outstanding dues'},
        ])
        self.assertFalse(FeePaymentRecord.objects.exists())

    def test_replayed_execution_keeps_one_audit(self):
        actions = {
            str(self.payer.pk): {'action': FeeActions.BLOCK},
            str(self.debtor.pk): {'action': FeeActions.BLOCK},
        }

        first = BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, actions, idempotency_key='promo-2024')
        second = BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, actions, idempotency_key='promo-2024')

        self.assertEqual(first['batch_id'], second['batch_id'])
        self.assertEqual(first['audit_id'], second['audit_id'])
        self.assertEqual(PromotionAudit.objects.count(), 1)
        self.assertEqual(StudentPromotion.objects.count(), 8)

    def test_failed_action_recorded_and_others_continue(self):
        StudentFeeRecord.objects.filter(pk=self.payer_dues.pk).update(payment_blocked=True)

        result = BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, {
            str(self.payer.pk): {'action': FeeActions.PAYMENT, 'amount': '5000'},
            str(self.debtor.pk): {'action': FeeActions.WAIVER, 'reason': "Hardship"},
        })

        self.assertEqual(result['payments'], 0)
        self.assertEqual(result['waivers'], 1)
        self.assertEqual(len(result['errors']), 1)
        self.assertEqual(result['errors'][0]['student_id'], str(self.payer.pk))
        self.assertEqual(result['promoted'], 10)

    def test_missing_fee_plan_aborts_before_year_switch(self):
        class4 = Class.objects.create(name="Class 4", section="A")
        self.students[9].current_class = class4
        self.students[9].save()
        # Class 5 loses its 2024-25 plan; Class 4 students move into it
        self.class5.fee_structures.all().delete()

        with self.assertRaises(PromotionExecutionError) as ctx:
            BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, {
                str(self.payer.pk): {'action': FeeActions.PAYMENT, 'amount': '5000'},
                str(self.debtor.pk): {'action': FeeActions.BLOCK},
            })

        self.assertEqual(ctx.exception.details['error_code'], "MISSING_FEE_PLANS")
        self.assertEqual(ctx.exception.details['tally']['payments'], 1)
        self.assertEqual(AcademicYear.objects.current(), self.y1)
        self.assertEqual(StudentPromotion.objects.count(), 0)
        # Dues actions already applied stay applied
        self.payer_dues.refresh_from_db()
        self.assertEqual(self.payer_dues.status, StatusChoices.PAID)

    def test_failed_year_switch_is_fatal(self):
        with mock.patch(
            'students.services.AcademicYearService.set_current_year',
            side_effect=PromotionExecutionError("Academic year was not properly set as current"),
        ):
            with self.assertRaises(PromotionExecutionError):
                BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, {
                    str(self.payer.pk): {'action': FeeActions.BLOCK},
                    str(self.debtor.pk): {'action': FeeActions.BLOCK},
                })

        self.assertEqual(AcademicYear.objects.current(), self.y1)
        self.assertFalse(PromotionAudit.objects.exists())

    def test_warning_when_no_fee_rows_created(self):
        for student in self.students:
            next_class = self.class6 if student.current_class == self.class5 else self.class7
            StudentFeeRecord.objects.create(
                student=student, school_class=next_class, academic_year=self.y2,
                fee_type=FeeTypes.TUITION, actual_fee=Decimal('12000'),
            )

        result = BulkPromotionExecutor.execute(self.y1.pk, self.y2.pk, {
            str(self.payer.pk): {'action': FeeActions.BLOCK},
            str(self.debtor.pk): {'action': FeeActions.BLOCK},
        })

        self.assertEqual(result['promoted'], 8)
        self.assertEqual(result['fee_rows_created'], 0)
        self.assertEqual(len(result['warnings']), 1)
        self.assertIn("no fee records were created", result['warnings'][0])
