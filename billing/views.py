# billing/views.py
"""
DUES API - previous-year dues per student and payment blockage logging.
"""
import logging

from django.apps import apps
from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view
from rest_framework.response import Response

from core.exceptions import ValidationError
from core.services import AcademicYearService
from .serializers import OutstandingDueSerializer, PaymentBlockageSerializer
from .services import DuesCalculatorService

logger = logging.getLogger(__name__)


def _reference_year_id(request):
    """?reference_year=<id>, defaulting to the current academic year."""
    year_id = request.query_params.get('reference_year')
    if year_id:
        return AcademicYearService.get_year(year_id).pk

    current = AcademicYearService.get_current_year()
    if current is None:
        raise ValidationError("No current academic year is set", user_friendly=True)
    return current.pk


@api_view(['GET'])
def outstanding_dues_view(request):
    reference_year_id = _reference_year_id(request)
    dues = DuesCalculatorService.calculate_outstanding_dues(reference_year_id)
    students = sorted(dues.values(), key=lambda due: due['student_name'])
    return Response({
        'reference_year_id': reference_year_id,
        'students': OutstandingDueSerializer(students, many=True).data,
    })


@api_view(['GET'])
def student_dues_view(request, student_id):
    reference_year_id = _reference_year_id(request)
    due = DuesCalculatorService.get_student_dues(student_id, reference_year_id)
    return Response({
        'reference_year_id': reference_year_id,
        'has_outstanding_dues': bool(due),
        'dues': OutstandingDueSerializer(due).data if due else None,
    })


@api_view(['POST'])
def payment_blockage_view(request, student_id):
    """Record that a payment was refused because previous-year dues are open."""
    student = get_object_or_404(apps.get_model('students', 'Student'), pk=student_id)
    serializer = PaymentBlockageSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reference_year_id = _reference_year_id(request)

    log = DuesCalculatorService.log_payment_blockage(
        student.pk,
        serializer.validated_data['attempted_amount'],
        serializer.validated_data['reason'],
        reference_year_id,
    )
    return Response({
        'id': log.pk,
        'blocked_amount': str(log.blocked_amount),
        'outstanding_dues': str(log.outstanding_dues),
    }, status=201)
