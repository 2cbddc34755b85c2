# core/views.py
"""
ACADEMIC YEAR API - list, create, update, delete and the current-year toggle.
All writes go through AcademicYearService.
"""
import logging

from rest_framework.decorators import api_view
from rest_framework.response import Response

from shared.services import NotificationService
from .serializers import AcademicYearSerializer, AcademicYearWriteSerializer
from .services import AcademicYearService

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
def academic_year_list_view(request):
    if request.method == 'GET':
        years = AcademicYearService.get_years_in_order()
        return Response(AcademicYearSerializer(years, many=True).data)

    serializer = AcademicYearWriteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    year = AcademicYearService.create_year(serializer.validated_data)
    toast = NotificationService.success(request, f"Academic year {year.name} created")
    return Response({'year': AcademicYearSerializer(year).data, 'toast': toast}, status=201)


@api_view(['PATCH', 'DELETE'])
def academic_year_detail_view(request, year_id):
    if request.method == 'DELETE':
        AcademicYearService.delete_year(year_id)
        toast = NotificationService.success(request, "Academic year deleted")
        return Response({'toast': toast})

    serializer = AcademicYearWriteSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    year = AcademicYearService.update_year(year_id, serializer.validated_data)
    toast = NotificationService.success(request, f"Academic year {year.name} updated")
    return Response({'year': AcademicYearSerializer(year).data, 'toast': toast})


@api_view(['POST'])
def set_current_year_view(request, year_id):
    year = AcademicYearService.set_current_year(year_id)
    toast = NotificationService.success(request, f"{year.name} is now the current academic year")
    return Response({'year': AcademicYearSerializer(year).data, 'toast': toast})
