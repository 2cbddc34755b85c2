# students/views.py
"""
PROMOTION API - readiness, the dues resolution workflow and individual promotions.
Workflow state lives in the session; business errors are mapped by
core.middleware.api_exception_handler.
"""
import logging

from rest_framework.decorators import api_view
from rest_framework.response import Response

from shared.services import NotificationService
from shared.utils import FieldMapper, IdempotencyService
from .serializers import (
    ExecuteSerializer,
    FeeActionSerializer,
    IndividualPromotionSerializer,
    ReadinessQuerySerializer,
    WorkflowStartSerializer,
)
from .services import PromotionProcedureService, PromotionReadinessService
from .workflow import PromotionWorkflow

logger = logging.getLogger(__name__)


# ============ HELPER FUNCTIONS ============

def _actor(request):
    user = request.user
    return user.get_full_name() or user.get_username()


def _workflow_response(request, workflow, **extra):
    workflow.save(request.session)
    payload = {'workflow': workflow.to_dict()}
    payload.update(extra)
    return Response(payload)


# ============ READINESS ============

@api_view(['GET'])
def promotion_readiness_view(request):
    query = ReadinessQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    summary = PromotionReadinessService.check_readiness(
        query.validated_data['current'], query.validated_data['target']
    )
    return Response(summary)


# ============ DUES RESOLUTION WORKFLOW ============

@api_view(['POST'])
def workflow_start_view(request):
    """Open a promotion dialog and run the readiness check."""
    serializer = WorkflowStartSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    workflow = PromotionWorkflow(
        serializer.validated_data['current_year_id'],
        serializer.validated_data['target_year_id'],
    )
    summary = workflow.run_validation()
    logger.info(f"Promotion workflow started by {_actor(request)}")
    return _workflow_response(request, workflow, summary=summary)


@api_view(['POST'])
def workflow_outstanding_view(request):
    workflow = PromotionWorkflow.load(request.session)
    workflow.proceed_to_outstanding()
    return _workflow_response(request, workflow)


@api_view(['POST'])
def workflow_action_view(request):
    data = FieldMapper.map_form_to_model(request.data, 'fee_action')
    serializer = FeeActionSerializer(data=data)
    serializer.is_valid(raise_exception=True)

    workflow = PromotionWorkflow.load(request.session)
    fields = serializer.validated_data
    workflow.assign_action(
        fields['student_id'],
        fields['action'],
        amount=fields.get('amount'),
        reason=fields.get('reason'),
        notes=fields.get('notes'),
        payment_method=fields.get('payment_method'),
    )
    return _workflow_response(request, workflow, unassigned=workflow.unassigned_student_ids())


@api_view(['POST'])
def workflow_confirm_view(request):
    workflow = PromotionWorkflow.load(request.session)
    try:
        workflow.proceed_to_confirmation()
    finally:
        workflow.save(request.session)
    return _workflow_response(request, workflow, confirmation=workflow.confirmation_summary())


@api_view(['POST'])
def workflow_back_view(request):
    workflow = PromotionWorkflow.load(request.session)
    workflow.back()
    return _workflow_response(request, workflow)


@api_view(['POST'])
def workflow_execute_view(request):
    serializer = ExecuteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    idempotency_key = (
        serializer.validated_data.get('idempotency_key')
        or IdempotencyService.get_idempotency_key(request)
    )

    workflow = PromotionWorkflow.load(request.session)
    try:
        result = workflow.execute(promoted_by=_actor(request), idempotency_key=idempotency_key)
    finally:
        workflow.save(request.session)

    toast = NotificationService.success(
        request,
        f"Promoted {result['promoted']} students; created {result['fee_rows_created']} "
        f"fee rows for {result['target_year']}.",
        title="Promotion Complete",
    )
    for warning in result['warnings']:
        NotificationService.toast(request, "Warning", warning, variant='destructive')

    PromotionWorkflow.discard(request.session)
    return Response({'result': result, 'toast': toast})


# ============ INDIVIDUAL PROMOTION ============

@api_view(['POST'])
def individual_promotion_view(request):
    """Operator-built batch with per-student type, target class and reason."""
    serializer = IndividualPromotionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    fields = serializer.validated_data

    result = PromotionProcedureService.promote_students_with_fees(
        fields['promotion_data'],
        fields['target_academic_year_id'],
        _actor(request),
        idempotency_key=fields.get('idempotency_key') or IdempotencyService.get_idempotency_key(request),
    )
    toast = NotificationService.success(
        request,
        f"Promoted {result['promoted']}, repeated {result['repeated']}, dropouts {result['dropouts']}.",
        title="Promotion Complete",
    )
    return Response({'result': result, 'toast': toast})
