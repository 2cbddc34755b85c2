# core/serializers.py
from rest_framework import serializers

from .models import AcademicYear


class AcademicYearSerializer(serializers.ModelSerializer):
    class Meta:
        model = AcademicYear
        fields = ['id', 'name', 'start_date', 'end_date', 'is_current']
        read_only_fields = ['is_current']


class AcademicYearWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    is_current = serializers.BooleanField(required=False)
