# students/workflow.py
"""
Dues resolution workflow for one promotion dialog.

validation -> outstanding -> confirmation -> submitted, explicit steps only.
State lives in the operator's session and nowhere else.
"""
import logging
from decimal import Decimal, InvalidOperation

from shared.constants import FeeActions, PaymentMethods
from core.exceptions import (
    PromotionValidationError,
    UnassignedDuesActionsError,
    ValidationError,
    WorkflowStateError,
)

logger = logging.getLogger(__name__)

VALIDATION = 'validation'
OUTSTANDING = 'outstanding'
CONFIRMATION = 'confirmation'
SUBMITTED = 'submitted'

STATES = (VALIDATION, OUTSTANDING, CONFIRMATION, SUBMITTED)


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


class PromotionWorkflow:
    SESSION_KEY = 'promotion_workflow'

    def __init__(self, current_year_id, target_year_id, state=VALIDATION, summary=None,
                 outstanding=None, actions=None, result=None):
        self.current_year_id = current_year_id
        self.target_year_id = target_year_id
        self.state = state
        self.summary = summary
        self.outstanding = outstanding or {}
        self.actions = actions or {}
        self.result = result

    # ============ SESSION ============

    def to_dict(self):
        return {
            'current_year_id': self.current_year_id,
            'target_year_id': self.target_year_id,
            'state': self.state,
            'summary': self.summary,
            'outstanding': _jsonable(self.outstanding),
            'actions': _jsonable(self.actions),
            'result': _jsonable(self.result),
        }

    @classmethod
    def from_dict(cls, data):
        if not data or data.get('state') not in STATES:
            raise WorkflowStateError("No promotion in progress. Start a new promotion.")
        return cls(
            data['current_year_id'],
            data['target_year_id'],
            state=data['state'],
            summary=data.get('summary'),
            outstanding=data.get('outstanding'),
            actions=data.get('actions'),
            result=data.get('result'),
        )

    @classmethod
    def load(cls, session):
        return cls.from_dict(session.get(cls.SESSION_KEY))

    def save(self, session):
        session[self.SESSION_KEY] = self.to_dict()

    @classmethod
    def discard(cls, session):
        session.pop(cls.SESSION_KEY, None)

    # ============ HELPERS ============

    def _require(self, *states):
        if self.state not in states:
            raise WorkflowStateError(
                f"Cannot do this while the promotion is in the '{self.state}' step",
                details={'state': self.state, 'expected': list(states)},
            )

    def total_dues(self, student_id):
        due = self.outstanding.get(str(student_id))
        return Decimal(str(due['total_dues'])) if due else Decimal('0')

    def affected_student_ids(self):
        return [student_id for student_id in self.outstanding if self.total_dues(student_id) > 0]

    def unassigned_student_ids(self):
        return [student_id for student_id in self.affected_student_ids() if student_id not in self.actions]

    # ============ STEPS ============

    def run_validation(self):
        """Readiness check; may be repeated until the promotion is ready."""
        from .services import PromotionReadinessService

        self._require(VALIDATION)
        self.summary = PromotionReadinessService.check_readiness(self.current_year_id, self.target_year_id)
        return self.summary

    def proceed_to_outstanding(self):
        from billing.services import DuesCalculatorService

        self._require(VALIDATION)
        if not self.summary:
            raise PromotionValidationError("Run the promotion readiness check first")
        if not self.summary['ready_for_promotion']:
            if not self.summary['is_sequential_year']:
                message = "Students can only be promoted to the next academic year in sequence"
            else:
                message = f"Missing fee structures for {', '.join(self.summary['missing_fee_structures'])}"
            raise PromotionValidationError(message, details={'summary': self.summary})

        self.outstanding = DuesCalculatorService.calculate_outstanding_dues(self.current_year_id)
        self.actions = {}
        self.state = OUTSTANDING
        logger.info(f"Promotion workflow: {len(self.outstanding)} students with outstanding dues")
        return self.outstanding

    def assign_action(self, student_id, action, amount=None, reason=None, notes=None, payment_method=None):
        """
        Record the operator's decision for one student's dues.
        Re-assigning replaces the previous decision.
        """
        self._require(OUTSTANDING)
        student_id = str(student_id)

        total = self.total_dues(student_id)
        if total <= 0:
            raise ValidationError("This student has no outstanding dues", user_friendly=True)
        if action not in FeeActions.ALL:
            raise ValidationError(f"Unknown fee action '{action}'", user_friendly=True)

        entry = {'action': action, 'notes': notes or ''}

        if action == FeeActions.PAYMENT:
            try:
                amount = Decimal(str(amount))
            except (InvalidOperation, ValueError, TypeError):
                raise ValidationError("Enter a valid payment amount", user_friendly=True)
            if amount <= 0:
                raise ValidationError("Payment amount must be greater than zero", user_friendly=True)
            if amount > total:
                raise ValidationError(
                    f"Payment amount cannot exceed outstanding dues of ₹{total}", user_friendly=True
                )
            entry['amount'] = amount
            entry['payment_method'] = payment_method or PaymentMethods.CASH

        elif action == FeeActions.WAIVER:
            if not (reason or '').strip():
                raise ValidationError("A reason is required for a waiver", user_friendly=True)
            entry['reason'] = reason.strip()

        self.actions[student_id] = entry
        return entry

    def proceed_to_confirmation(self):
        self._require(OUTSTANDING)
        unassigned = self.unassigned_student_ids()
        if unassigned:
            raise UnassignedDuesActionsError(len(unassigned), unassigned)
        self.state = CONFIRMATION

    def confirmation_summary(self):
        self._require(CONFIRMATION, SUBMITTED)
        counts = {FeeActions.BLOCK: 0, FeeActions.PAYMENT: 0, FeeActions.WAIVER: 0, FeeActions.CARRY_FORWARD: 0}
        for entry in self.actions.values():
            counts[entry['action']] += 1

        total_students = self.summary['total_students'] if self.summary else 0
        return {
            'total_students': total_students,
            'students_with_dues': len(self.affected_student_ids()),
            'payments': counts[FeeActions.PAYMENT],
            'waivers': counts[FeeActions.WAIVER],
            'carried_forward': counts[FeeActions.CARRY_FORWARD],
            'blocked': counts[FeeActions.BLOCK],
            'to_promote': total_students - counts[FeeActions.BLOCK],
        }

    def execute(self, promoted_by=None, idempotency_key=None):
        """
        Hand the decisions to the bulk executor. Terminal: a failed run leaves
        the workflow submitted and the operator starts over.
        """
        from .services import BulkPromotionExecutor

        self._require(CONFIRMATION)
        self.state = SUBMITTED
        self.result = BulkPromotionExecutor.execute(
            self.current_year_id,
            self.target_year_id,
            self.actions,
            promoted_by=promoted_by,
            idempotency_key=idempotency_key,
        )
        return self.result

    def back(self):
        self._require(OUTSTANDING, CONFIRMATION)
        self.state = VALIDATION if self.state == OUTSTANDING else OUTSTANDING
        return self.state
