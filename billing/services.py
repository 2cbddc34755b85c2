# billing/services.py
"""
Billing services - previous-year dues, payments, waivers and carry-forwards.
Both fee ledgers are read through shared.FieldMapper; the enhanced ledger wins.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.apps import apps
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

# SHARED IMPORTS
from shared.constants import StatusChoices, PaymentMethods, FeeTypes
from shared.utils import IdempotencyService
from shared.utils.field_mapping import FieldMapper, ENHANCED_SOURCE, LEGACY_SOURCE
from shared.exceptions.payment import PaymentProcessingError, PaymentBlockedError, OverpaymentError
from core.exceptions import DataAccessError, ValidationError

# LOCAL MODELS ONLY
from .calculations import outstanding_balance
from .models import (
    Fee,
    FeeCarryForward,
    FeePaymentRecord,
    PaymentBlockageLog,
    StudentFeeRecord,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def _get_model(model_name, app_label):
    """Get model lazily to avoid circular imports."""
    return apps.get_model(app_label, model_name)


def _ledger_model(source):
    return StudentFeeRecord if source == ENHANCED_SOURCE else Fee


# ============ DUES CALCULATOR ============

class DuesCalculatorService:
    """
    Outstanding balances on fee rows of every year except a reference year.
    Pure read aggregation: no writes, same answer on repeat calls.
    """

    @staticmethod
    def _student_population(students):
        Student = _get_model('Student', 'students')
        if students is None:
            return Student.objects.active()
        ids = [getattr(s, 'pk', s) for s in students]
        return Student.objects.active().filter(pk__in=ids)

    @staticmethod
    def calculate_outstanding_dues(reference_year_id, students=None):
        """
        Previous-year dues per student.

        Args:
            reference_year_id: academic year excluded from the scan (normally the current one)
            students: Student instances or ids; defaults to every Active student

        Returns:
            dict: str(student_id) -> {student_id, student_name, admission_number,
                  total_dues, dues_details}. Students without dues are absent.

        Raises:
            DataAccessError: any database read failed
        """
        AcademicYear = _get_model('AcademicYear', 'core')

        try:
            years = {
                year.pk: year.name
                for year in AcademicYear.objects.exclude(pk=reference_year_id)
            }
            population = {
                str(student.pk): student
                for student in DuesCalculatorService._student_population(students)
            }
            if not years or not population:
                return {}

            scope = dict(academic_year_id__in=list(years), student_id__in=list(population))

            enhanced = [
                FieldMapper.to_canonical_fee(record, ENHANCED_SOURCE)
                for record in StudentFeeRecord.objects.filter(**scope).exclude(status=StatusChoices.PAID)
            ]
            legacy = [
                FieldMapper.to_canonical_fee(record, LEGACY_SOURCE)
                for record in Fee.objects.filter(**scope).exclude(status=StatusChoices.PAID)
            ]
        except DatabaseError as e:
            logger.error(f"Failed to load previous year dues: {e}", exc_info=True)
            raise DataAccessError("Failed to fetch outstanding fees", user_friendly=True)

        # Enhanced rows first, so they win over legacy rows for the same key
        unique_fees = {}
        for fee in enhanced + legacy:
            unique_fees.setdefault(FieldMapper.fee_key(fee), fee)

        dues = {}
        for fee in unique_fees.values():
            balance = outstanding_balance(fee)
            if balance <= 0:
                continue

            student_id = str(fee['student_id'])
            student = population[student_id]
            entry = dues.setdefault(student_id, {
                'student_id': student_id,
                'student_name': student.full_name,
                'admission_number': student.admission_number,
                'total_dues': ZERO,
                'dues_details': [],
            })
            entry['total_dues'] += balance
            entry['dues_details'].append({
                'academic_year': years.get(fee['academic_year_id'], 'Unknown Year'),
                'academic_year_id': fee['academic_year_id'],
                'fee_type': fee['fee_type'],
                'actual_amount': fee['actual_fee'],
                'discount_amount': fee['discount_amount'],
                'paid_amount': fee['paid_amount'],
                'balance_amount': balance,
                'source': fee['source'],
                'record_id': fee['record_id'],
            })

        logger.info(f"Previous year dues: {len(dues)} students with outstanding balances (reference year {reference_year_id})")
        return dues

    @staticmethod
    def get_student_dues(student_id, reference_year_id):
        """OutstandingDue for one student, or None."""
        dues = DuesCalculatorService.calculate_outstanding_dues(reference_year_id, students=[student_id])
        return dues.get(str(student_id))

    @staticmethod
    def has_outstanding_dues(student_id, reference_year_id):
        dues = DuesCalculatorService.get_student_dues(student_id, reference_year_id)
        return bool(dues and dues['total_dues'] > 0)

    @staticmethod
    def log_payment_blockage(student_id, attempted_amount, reason, reference_year_id):
        """Record a payment refused because of unpaid previous-year dues."""
        dues = DuesCalculatorService.get_student_dues(student_id, reference_year_id)
        log = PaymentBlockageLog.objects.create(
            student_id=student_id,
            academic_year_id=reference_year_id,
            blocked_amount=Decimal(str(attempted_amount)),
            outstanding_dues=dues['total_dues'] if dues else ZERO,
            reason=reason,
        )
        logger.warning(f"Payment of ₹{attempted_amount} blocked for student {student_id}: {reason}")
        return log


def representative_order(dues_details):
    """Largest balance first; the enhanced ledger wins ties."""
    return sorted(
        dues_details,
        key=lambda d: (-d['balance_amount'], d['source'] != ENHANCED_SOURCE, str(d['record_id'])),
    )


# ============ PAYMENT SERVICE ============

class FeePaymentService:
    """Money received against fee rows of either ledger."""

    @staticmethod
    @transaction.atomic
    def record_payment(source, record_id, amount, payment_method=PaymentMethods.CASH,
                       notes='', created_by='', idempotency_key=None):
        """
        Apply a payment to one fee row.

        Args:
            source: 'enhanced' or 'legacy'
            record_id: row id in that ledger
            amount: amount received
            idempotency_key: a repeat call with the same key returns the first receipt

        Returns:
            FeePaymentRecord

        Raises:
            PaymentProcessingError: bad amount or unknown row
            PaymentBlockedError: the row is blocked for payment
            OverpaymentError: amount exceeds the row's balance
        """
        if idempotency_key:
            existing = FeePaymentRecord.objects.filter(idempotency_key=idempotency_key).first()
            if existing:
                logger.info(f"Duplicate payment ignored: {idempotency_key}")
                return existing

        amount = Decimal(str(amount))
        if amount <= 0:
            raise PaymentProcessingError("Payment amount must be greater than zero", user_friendly=True)

        Model = _ledger_model(source)
        try:
            record = Model.objects.select_for_update().get(pk=record_id)
        except Model.DoesNotExist:
            raise PaymentProcessingError(f"Fee record {record_id} not found", user_friendly=True)

        if getattr(record, 'payment_blocked', False):
            raise PaymentBlockedError("Payments are blocked for this fee record", user_friendly=True)

        canonical = FieldMapper.to_canonical_fee(record, source)
        balance = outstanding_balance(canonical)
        if amount > balance:
            raise OverpaymentError(
                f"Payment of ₹{amount} exceeds the outstanding balance of ₹{balance}",
                user_friendly=True,
            )

        if source == ENHANCED_SOURCE:
            record.paid_amount = canonical['paid_amount'] + amount
        else:
            record.total_paid = canonical['paid_amount'] + amount
            record.payment_date = timezone.localdate()
        record.save()

        payment = FeePaymentRecord.objects.create(
            fee_record=record if source == ENHANCED_SOURCE else None,
            legacy_fee=record if source == LEGACY_SOURCE else None,
            student_id=record.student_id,
            amount_paid=amount,
            payment_method=payment_method,
            notes=notes,
            created_by=created_by,
            idempotency_key=idempotency_key,
        )
        return payment

    @staticmethod
    def pay_outstanding_dues(outstanding_due, amount, payment_method=PaymentMethods.CASH,
                             notes='', created_by='', idempotency_scope=None):
        """
        Pay a student's previous-year dues.

        The representative row (largest balance) takes the payment; any part
        of the amount beyond its balance goes to the next rows in the same order.

        Returns:
            list of FeePaymentRecord
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise PaymentProcessingError("Payment amount must be greater than zero", user_friendly=True)
        if amount > outstanding_due['total_dues']:
            raise OverpaymentError(
                f"Payment of ₹{amount} exceeds total dues of ₹{outstanding_due['total_dues']}",
                user_friendly=True,
            )

        payments = []
        remaining = amount
        for detail in representative_order(outstanding_due['dues_details']):
            if remaining <= 0:
                break
            portion = min(remaining, detail['balance_amount'])
            key = None
            if idempotency_scope:
                key = IdempotencyService.get_key('payment', idempotency_scope, detail['source'], detail['record_id'])
            payments.append(FeePaymentService.record_payment(
                detail['source'], detail['record_id'], portion,
                payment_method=payment_method, notes=notes,
                created_by=created_by, idempotency_key=key,
            ))
            remaining -= portion

        logger.info(f"Recorded ₹{amount} against dues of student {outstanding_due['student_id']} in {len(payments)} receipt(s)")
        return payments


def close_by_discount(detail, describe):
    """
    Settle the remaining balance of one fee row through its discount and
    mark it Paid. describe(balance) gives the line added to discount_notes.

    Returns:
        Decimal: the balance closed, zero when the row was already settled
    """
    Model = _ledger_model(detail['source'])
    record = Model.objects.select_for_update().get(pk=detail['record_id'])
    balance = outstanding_balance(FieldMapper.to_canonical_fee(record, detail['source']))
    if balance <= 0:
        return ZERO

    record.discount_amount = (record.discount_amount or ZERO) + balance
    record.status = StatusChoices.PAID
    record.discount_notes = f"{record.discount_notes}\n{describe(balance)}".strip()
    record.save()
    return balance


# ============ WAIVER SERVICE ============

class FeeWaiverService:

    @staticmethod
    @transaction.atomic
    def waive_outstanding_dues(outstanding_due, reason, performed_by=''):
        """
        Zero every outstanding row of a student through discount.
        discount += remaining balance, status Paid. Rows already at zero are
        left alone, so a second run changes nothing.

        Returns:
            int: rows waived
        """
        if not (reason or '').strip():
            raise ValidationError("A waiver reason is required", user_friendly=True)

        suffix = f" ({performed_by})" if performed_by else ''
        waived = 0
        for detail in outstanding_due['dues_details']:
            if close_by_discount(detail, lambda balance: f"Waived ₹{balance}: {reason}{suffix}"):
                waived += 1

        logger.info(f"Waived {waived} fee rows for student {outstanding_due['student_id']}: {reason}")
        return waived


# ============ CARRY FORWARD SERVICE ============

class CarryForwardService:

    @staticmethod
    def build_breakdown(outstanding_due):
        lines = [
            f"{d['academic_year']} - {d['fee_type']}: ₹{d['balance_amount']}"
            for d in outstanding_due['dues_details']
        ]
        return "Carried forward from previous years:\n" + "\n".join(lines)

    @staticmethod
    @transaction.atomic
    def carry_forward_dues(outstanding_due, from_year_id, to_year_id, created_by='',
                           carry_forward_type='promotion', idempotency_key=None):
        """
        Move a student's total dues into the target year as one
        "Previous Year Dues" fee row, linked through a FeeCarryForward.
        The source rows are closed in the same transaction, so the debt
        lives on the new row only.

        Returns:
            StudentFeeRecord: the new (or previously created) target-year row
        """
        if idempotency_key:
            existing = FeeCarryForward.objects.filter(idempotency_key=idempotency_key).first()
            if existing:
                logger.info(f"Duplicate carry-forward ignored: {idempotency_key}")
                return existing.created_records.first()

        Student = _get_model('Student', 'students')
        AcademicYear = _get_model('AcademicYear', 'core')
        student = Student.objects.get(pk=outstanding_due['student_id'])
        to_year = AcademicYear.objects.get(pk=to_year_id)
        total = outstanding_due['total_dues']
        breakdown = CarryForwardService.build_breakdown(outstanding_due)

        try:
            carry_forward = FeeCarryForward.objects.create(
                student=student,
                from_academic_year_id=from_year_id,
                to_academic_year_id=to_year_id,
                original_amount=total,
                carried_amount=total,
                carry_forward_type=carry_forward_type,
                notes=breakdown,
                created_by=created_by,
                idempotency_key=idempotency_key,
            )
        except IntegrityError:
            logger.warning(f"Carry-forward raced on key {idempotency_key}")
            raise

        closed = ZERO
        for detail in outstanding_due['dues_details']:
            closed += close_by_discount(
                detail,
                lambda balance: f"Carried forward ₹{balance} to {to_year.name} (carry-forward #{carry_forward.pk})",
            )
        if closed <= 0:
            raise ValidationError("No outstanding dues left to carry forward", user_friendly=True)
        if closed != total:
            # Rows paid since the dues were read are not carried
            total = closed
            carry_forward.carried_amount = total
            carry_forward.save()

        due_days = getattr(settings, 'CARRY_FORWARD_DUE_DAYS', 30)
        record = StudentFeeRecord.objects.create(
            student=student,
            school_class=student.current_class,
            academic_year_id=to_year_id,
            fee_type=FeeTypes.PREVIOUS_YEAR_DUES,
            actual_fee=total,
            due_date=timezone.localdate() + timedelta(days=due_days),
            notes=breakdown,
            is_carry_forward=True,
            carry_forward_source=carry_forward,
        )

        logger.info(f"Carried forward ₹{total} for {student.full_name} into {to_year.name}")
        return record


# ============ FEE RECORD SERVICE ============

class FeeRecordService:

    @staticmethod
    def active_structures(year_id, class_ids=None):
        FeeStructure = _get_model('FeeStructure', 'billing')
        structures = FeeStructure.objects.filter(academic_year_id=year_id, is_active=True)
        if class_ids is not None:
            structures = structures.filter(school_class_id__in=class_ids)
        return structures

    @staticmethod
    def create_records_from_structures(student, school_class, year_id, structures=None):
        """
        Fee rows for a student in a year from the class's active fee structures.
        Existing (student, fee type, year) rows are kept.

        Returns:
            int: rows created
        """
        if school_class is None:
            return 0
        if structures is None:
            structures = FeeRecordService.active_structures(year_id, [school_class.pk])

        existing = set(
            StudentFeeRecord.objects.filter(student=student, academic_year_id=year_id)
            .values_list('fee_type', flat=True)
        )

        created = 0
        for structure in structures:
            if structure.school_class_id != school_class.pk or structure.fee_type in existing:
                continue
            StudentFeeRecord.objects.create(
                student=student,
                school_class=school_class,
                academic_year_id=year_id,
                fee_type=structure.fee_type,
                actual_fee=structure.amount,
            )
            existing.add(structure.fee_type)
            created += 1
        return created
