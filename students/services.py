# students/services.py
"""
PROMOTION SERVICES - readiness checks, the promotion procedure and the bulk executor.
NO circular imports, PROPER error handling, WELL LOGGED
"""
import logging
from typing import Any, Dict, List, Optional

from django.apps import apps
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction

# SHARED IMPORTS
from shared.constants import FeeActions, PaymentMethods, PromotionTypes, StudentStatus
from shared.models import ClassManager
from shared.utils import FieldMapper, IdempotencyService
from core.exceptions import (
    DataAccessError,
    MissingFeeStructuresError,
    PromotionExecutionError,
    SchoolManagementException,
    ValidationError,
    WorkflowStateError,
)
from core.services import AcademicYearService

logger = logging.getLogger(__name__)


# ============ HELPER FUNCTIONS ============

def _get_model(model_name: str, app_label: str = 'students'):
    """Get model lazily to avoid circular imports."""
    try:
        return apps.get_model(app_label, model_name)
    except LookupError as e:
        logger.error(f"Model not found: {app_label}.{model_name} - {e}")
        raise


def _actor(promoted_by: Optional[str]) -> str:
    return promoted_by or getattr(settings, 'PROMOTION_ACTOR_DEFAULT', 'Admin')


# ============ READINESS ============

class PromotionReadinessService:
    """
    Checks that a cohort can move from one academic year to another.
    """

    @staticmethod
    def is_sequential_year(years, current_year, target_year) -> bool:
        """
        True iff target comes directly after current by start date.
        Ties in start date are ordered by pk; a year missing from `years` fails.
        """
        if current_year is None or target_year is None:
            return False

        ordered = sorted(years, key=lambda year: (year.start_date, year.pk))
        ids = [year.pk for year in ordered]
        if current_year.pk not in ids or target_year.pk not in ids:
            return False
        return ids.index(target_year.pk) == ids.index(current_year.pk) + 1

    @staticmethod
    def find_missing_fee_structures(target_year_id) -> List[str]:
        """Display names of classes with Active students but no active fee structure in the target year."""
        Student = _get_model('Student')
        Class = _get_model('Class', 'core')
        FeeStructure = _get_model('FeeStructure', 'billing')

        class_ids = set(
            Student.objects.active()
            .filter(current_class__isnull=False)
            .values_list('current_class_id', flat=True)
        )
        covered = set(
            FeeStructure.objects.filter(
                academic_year_id=target_year_id,
                is_active=True,
                school_class_id__in=class_ids,
            ).values_list('school_class_id', flat=True)
        )
        missing = Class.objects.filter(pk__in=class_ids - covered)
        return sorted(school_class.display_name for school_class in missing)

    @staticmethod
    def check_readiness(current_year_id, target_year_id) -> Dict[str, Any]:
        """
        Readiness summary for a promotion.

        Returns:
            dict: total_students, missing_fee_structures, is_sequential_year,
                  ready_for_promotion

        Raises:
            ValidationError: unknown year
            DataAccessError: a read failed
        """
        Student = _get_model('Student')

        current_year = AcademicYearService.get_year(current_year_id)
        target_year = AcademicYearService.get_year(target_year_id)

        try:
            years = AcademicYearService.get_years_in_order()
            is_sequential = PromotionReadinessService.is_sequential_year(years, current_year, target_year)
            total_students = Student.objects.active().count()
            missing = PromotionReadinessService.find_missing_fee_structures(target_year.pk)
        except DatabaseError as e:
            logger.error(f"Failed to check promotion readiness: {e}", exc_info=True)
            raise DataAccessError("Failed to check promotion readiness", user_friendly=True)

        summary = {
            'current_year_id': current_year.pk,
            'current_year': current_year.name,
            'target_year_id': target_year.pk,
            'target_year': target_year.name,
            'total_students': total_students,
            'missing_fee_structures': missing,
            'is_sequential_year': is_sequential,
            'ready_for_promotion': not missing and is_sequential,
        }
        logger.info(
            f"Promotion readiness {current_year.name} -> {target_year.name}: "
            f"students={total_students} sequential={is_sequential} missing={missing}"
        )
        return summary


# ============ PROMOTION PROCEDURE ============

class PromotionProcedureService:
    """
    Transactional batch writer for student promotions.
    Writes StudentPromotion rows, moves students and opens their target-year fee rows.
    """

    REQUIRED_FIELDS = ('student_id', 'from_academic_year_id', 'promotion_type')

    @staticmethod
    def validate_payload(promotion_data) -> List[Dict[str, Any]]:
        if not isinstance(promotion_data, (list, tuple)):
            raise ValidationError("invalid_payload: promotion_data must be an array", user_friendly=True)

        items = []
        for index, raw in enumerate(promotion_data):
            if not isinstance(raw, dict):
                raise ValidationError(
                    f"invalid_payload: item {index} must be an object", user_friendly=True,
                    details={'index': index},
                )
            item = FieldMapper.map_form_to_model(raw, 'promotion_item')
            missing = [field for field in PromotionProcedureService.REQUIRED_FIELDS if not item.get(field)]
            if missing:
                raise ValidationError(
                    f"invalid_payload: item {index} is missing {', '.join(missing)}", user_friendly=True,
                    details={'index': index, 'missing': missing},
                )
            if item['promotion_type'] not in dict(PromotionTypes.CHOICES):
                raise ValidationError(
                    f"invalid_payload: unknown promotion type '{item['promotion_type']}'", user_friendly=True,
                    details={'index': index},
                )
            items.append(item)
        return items

    @staticmethod
    def resolve_target_class(item, student, classes):
        """
        repeated -> same class; promoted -> given class, else the next class
        (falling back to the same class); dropout -> None.
        """
        promotion_type = item['promotion_type']
        from_class = classes.get(_as_pk(item.get('from_class_id'))) or (student.current_class if student else None)

        if promotion_type == PromotionTypes.DROPOUT:
            return None
        if promotion_type == PromotionTypes.REPEATED:
            return from_class
        if item.get('to_class_id'):
            to_class = classes.get(_as_pk(item['to_class_id']))
            if to_class is None:
                raise ValidationError(f"Class {item['to_class_id']} not found", user_friendly=True)
            return to_class
        return ClassManager.get_next_class(from_class, classes=classes.values())

    @staticmethod
    def promote_students_with_fees(promotion_data, target_academic_year_id, promoted_by_user=None,
                                   idempotency_key=None) -> Dict[str, Any]:
        """
        Promote a batch of students into the target year.

        Args:
            promotion_data: list of {student_id, from_academic_year_id, promotion_type,
                            from_class_id?, to_class_id?, reason?, notes?}
            target_academic_year_id: year the students move into
            promoted_by_user: actor recorded on every row
            idempotency_key: a repeat call with the same key returns the stored result

        Returns:
            dict: promoted, repeated, dropouts, fee_rows_created, errors, batch_id

        Raises:
            ValidationError: malformed payload or unknown year/class
            MissingFeeStructuresError: a target class has no active fee structure
            WorkflowStateError: the same key is being processed right now
        """
        Student = _get_model('Student')
        PromotionBatch = _get_model('PromotionBatch')
        Class = _get_model('Class', 'core')
        from billing.services import FeeRecordService

        promoted_by_user = _actor(promoted_by_user)
        items = PromotionProcedureService.validate_payload(promotion_data)
        target_year = AcademicYearService.get_year(target_academic_year_id)

        if idempotency_key:
            existing = PromotionBatch.objects.filter(idempotency_key=idempotency_key).first()
            if existing:
                logger.info(f"Duplicate promotion batch ignored: {idempotency_key}")
                return existing.result
            if not IdempotencyService.check_and_lock(idempotency_key):
                raise WorkflowStateError("This promotion is already being processed")

        try:
            students = Student.objects.select_related('current_class').in_bulk(
                [item['student_id'] for item in items]
            )
            classes = {c.pk: c for c in Class.objects.all()}

            targets = []
            for item in items:
                student = students.get(_as_pk(item['student_id']))
                target_class = None
                if student is not None:
                    target_class = PromotionProcedureService.resolve_target_class(item, student, classes)
                targets.append((item, student, target_class))

            target_class_ids = {c.pk for _, _, c in targets if c is not None}
            structures = list(FeeRecordService.active_structures(target_year.pk, target_class_ids))
            covered = {structure.school_class_id for structure in structures}
            missing = sorted(classes[pk].display_name for pk in target_class_ids - covered)
            if missing:
                logger.warning(f"Promotion refused, missing fee plans in {target_year.name}: {missing}")
                raise MissingFeeStructuresError(missing, target_year.name)

            result = PromotionProcedureService._write_batch(
                targets, target_year, structures, promoted_by_user, idempotency_key
            )
        except Exception:
            if idempotency_key:
                IdempotencyService.mark_failed(idempotency_key)
            raise

        if idempotency_key:
            IdempotencyService.mark_processed(idempotency_key)
        return result

    @staticmethod
    def _write_batch(targets, target_year, structures, promoted_by_user, idempotency_key):
        StudentPromotion = _get_model('StudentPromotion')
        PromotionBatch = _get_model('PromotionBatch')
        from billing.services import FeeRecordService

        result = {'promoted': 0, 'repeated': 0, 'dropouts': 0, 'fee_rows_created': 0, 'errors': []}
        counters = {
            PromotionTypes.PROMOTED: 'promoted',
            PromotionTypes.REPEATED: 'repeated',
            PromotionTypes.DROPOUT: 'dropouts',
        }

        with transaction.atomic():
            try:
                batch = PromotionBatch.objects.create(
                    idempotency_key=idempotency_key,
                    target_academic_year=target_year,
                    promoted_by=promoted_by_user,
                )
            except IntegrityError:
                raise WorkflowStateError("This promotion has already been processed")

            for item, student, target_class in targets:
                if student is None:
                    result['errors'].append({'student_id': str(item['student_id']), 'error': 'Student not found'})
                    continue
                if StudentPromotion.objects.filter(student=student, to_academic_year=target_year).exists():
                    result['errors'].append({
                        'student_id': str(student.pk),
                        'error': f"{student.full_name} is already promoted to {target_year.name}",
                    })
                    continue

                try:
                    with transaction.atomic():
                        StudentPromotion.objects.create(
                            student=student,
                            from_academic_year_id=item['from_academic_year_id'],
                            to_academic_year=target_year,
                            from_class=student.current_class,
                            to_class=target_class,
                            promotion_type=item['promotion_type'],
                            reason=item.get('reason') or '',
                            notes=item.get('notes') or '',
                            promoted_by=promoted_by_user,
                            batch=batch,
                        )
                        if item['promotion_type'] == PromotionTypes.DROPOUT:
                            student.status = StudentStatus.INACTIVE
                            student.save()
                        else:
                            student.current_class = target_class
                            student.save()
                            result['fee_rows_created'] += FeeRecordService.create_records_from_structures(
                                student, target_class, target_year.pk, structures
                            )
                except (DjangoValidationError, IntegrityError) as e:
                    logger.warning(f"Promotion of student {student.pk} failed: {e}")
                    result['errors'].append({'student_id': str(student.pk), 'error': str(e)})
                    continue

                result[counters[item['promotion_type']]] += 1

            result['batch_id'] = batch.pk
            batch.result = result
            batch.save()

        logger.info(
            f"Promotion batch {batch.pk} into {target_year.name} by {promoted_by_user}: "
            f"promoted={result['promoted']} repeated={result['repeated']} dropouts={result['dropouts']} "
            f"fee_rows={result['fee_rows_created']} errors={len(result['errors'])}"
        )
        return result


def _as_pk(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


# ============ BULK PROMOTION EXECUTOR ============

class BulkPromotionExecutor:
    """
    Applies dues actions, promotes the remaining Active roster, switches the
    current academic year and writes the audit row.
    """

    TALLY_COUNTERS = {
        FeeActions.BLOCK: 'blocked',
        FeeActions.PAYMENT: 'payments',
        FeeActions.WAIVER: 'waivers',
        FeeActions.CARRY_FORWARD: 'carried_forward',
    }

    @staticmethod
    def process_fee_actions(fee_actions, outstanding, current_year_id, target_year_id, performed_by):
        """
        Apply every assigned action. Failures land in `errors`; the loop carries on.

        Returns:
            dict: blocked, payments, waivers, carried_forward, errors
        """
        from billing.services import CarryForwardService, FeePaymentService, FeeWaiverService

        tally = {'blocked': 0, 'payments': 0, 'waivers': 0, 'carried_forward': 0, 'errors': []}

        for student_id, action in fee_actions.items():
            student_id = str(student_id)
            kind = action.get('action')
            counter = BulkPromotionExecutor.TALLY_COUNTERS.get(kind)
            if counter is None:
                tally['errors'].append({'student_id': student_id, 'action': kind, 'error': 'Unknown action'})
                continue

            if kind == FeeActions.BLOCK:
                tally[counter] += 1
                continue

            key = IdempotencyService.get_key(kind, student_id, target_year_id)
            if IdempotencyService.is_processed(key):
                logger.info(f"{kind} for student {student_id} already applied, skipping")
                tally[counter] += 1
                continue

            due = outstanding.get(student_id)
            if due is None:
                logger.info(f"Student {student_id} has nothing outstanding for {kind}, skipping")
                tally['errors'].append({'student_id': student_id, 'action': kind, 'error': 'No outstanding dues'})
                continue

            if not IdempotencyService.check_and_lock(key):
                tally['errors'].append({'student_id': student_id, 'action': kind, 'error': 'Already being processed'})
                continue

            try:
                if kind == FeeActions.PAYMENT:
                    FeePaymentService.pay_outstanding_dues(
                        due, action.get('amount'),
                        payment_method=action.get('payment_method') or PaymentMethods.CASH,
                        notes=action.get('notes') or 'Collected during promotion',
                        created_by=performed_by,
                        idempotency_scope=key,
                    )
                elif kind == FeeActions.WAIVER:
                    FeeWaiverService.waive_outstanding_dues(due, action.get('reason'), performed_by)
                elif kind == FeeActions.CARRY_FORWARD:
                    CarryForwardService.carry_forward_dues(
                        due, current_year_id, target_year_id,
                        created_by=performed_by,
                        idempotency_key=key,
                    )
            except Exception as e:
                IdempotencyService.mark_failed(key)
                logger.error(f"Fee action {kind} failed for student {student_id}: {e}", exc_info=True)
                tally['errors'].append({
                    'student_id': student_id,
                    'student_name': due['student_name'],
                    'action': kind,
                    'error': getattr(e, 'message', str(e)),
                })
                continue

            IdempotencyService.mark_processed(key)
            tally[counter] += 1

        return tally

    @staticmethod
    def execute(current_year_id, target_year_id, fee_actions, promoted_by=None, idempotency_key=None,
                outstanding=None) -> Dict[str, Any]:
        """
        Run the whole promotion.

        Args:
            current_year_id / target_year_id: academic years
            fee_actions: {student_id: {action, amount?, reason?, notes?, payment_method?}}
            promoted_by: actor name
            idempotency_key: passed through to the promotion procedure
            outstanding: precomputed dues; recalculated when omitted

        Returns:
            dict: the dues tally plus promoted, repeated, dropouts, fee_rows_created,
                  promotion_errors, batch_id, audit_id, warnings

        Raises:
            PromotionExecutionError: the procedure, year switch or audit failed.
                Dues actions applied before that point stay applied.
        """
        Student = _get_model('Student')
        PromotionAudit = _get_model('PromotionAudit')
        from billing.services import DuesCalculatorService

        performed_by = _actor(promoted_by)
        current_year = AcademicYearService.get_year(current_year_id)
        target_year = AcademicYearService.get_year(target_year_id)
        fee_actions = {str(k): v for k, v in (fee_actions or {}).items()}

        roster = list(Student.objects.active().select_related('current_class'))
        if outstanding is None:
            outstanding = DuesCalculatorService.calculate_outstanding_dues(current_year.pk, roster)

        logger.info(
            f"[PROMOTE] {current_year.name} -> {target_year.name}: roster={len(roster)} "
            f"actions={len(fee_actions)} by {performed_by}"
        )

        # Step 1: dues actions
        tally = BulkPromotionExecutor.process_fee_actions(
            fee_actions, outstanding, current_year.pk, target_year.pk, performed_by
        )

        # Step 2-3: blocked students stay where they are
        blocked_ids = {
            student_id for student_id, action in fee_actions.items()
            if action.get('action') == FeeActions.BLOCK
        }
        promotion_data = [
            {
                'student_id': student.pk,
                'from_academic_year_id': current_year.pk,
                'from_class_id': student.current_class_id,
                'to_class_id': None,
                'promotion_type': PromotionTypes.PROMOTED,
                'notes': 'Bulk promotion',
            }
            for student in roster
            if str(student.pk) not in blocked_ids
        ]

        # Step 4-6
        try:
            result = PromotionProcedureService.promote_students_with_fees(
                promotion_data, target_year.pk, performed_by, idempotency_key
            )
            AcademicYearService.set_current_year(target_year.pk)
            audit = None
            if result.get('batch_id'):
                # A replayed batch keeps its first audit
                audit = PromotionAudit.objects.filter(batch_id=result['batch_id']).first()
            if audit is None:
                audit = PromotionAudit.objects.create(
                    from_academic_year=current_year,
                    to_academic_year=target_year,
                    batch_id=result.get('batch_id'),
                    payments=tally['payments'],
                    waivers=tally['waivers'],
                    carried_forward=tally['carried_forward'],
                    blocked=tally['blocked'],
                    promoted=result['promoted'],
                    fee_rows_created=result['fee_rows_created'],
                    errors=tally['errors'] + result['errors'],
                    performed_by=performed_by,
                    notes=f"Bulk promotion. Promoted: {result['promoted']}, Fee rows created: {result['fee_rows_created']}",
                )
        except PromotionExecutionError:
            raise
        except SchoolManagementException as e:
            logger.error(f"[PROMOTE] aborted: {e.message}")
            raise PromotionExecutionError(
                e.message if e.user_friendly else "Failed to execute promotion",
                details={'error_code': e.error_code, 'tally': tally, **e.details},
            )
        except Exception as e:
            logger.error(f"[PROMOTE] failed: {e}", exc_info=True)
            raise PromotionExecutionError(details={'tally': tally})

        warnings = []
        if result['promoted'] > 0 and result['fee_rows_created'] == 0:
            warnings.append(
                f"Promoted {result['promoted']} students but no fee records were created. "
                f"Please check fee structures for {target_year.name}."
            )
            logger.warning(f"[PROMOTE] {warnings[-1]}")

        summary = {
            **tally,
            'promoted': result['promoted'],
            'repeated': result['repeated'],
            'dropouts': result['dropouts'],
            'fee_rows_created': result['fee_rows_created'],
            'promotion_errors': result['errors'],
            'submitted': len(promotion_data),
            'batch_id': result.get('batch_id'),
            'audit_id': audit.pk,
            'target_year': target_year.name,
            'warnings': warnings,
        }
        logger.info(f"[PROMOTE][OK] {summary}")
        return summary
