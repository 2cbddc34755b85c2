# billing/serializers.py
from rest_framework import serializers


class DuesDetailSerializer(serializers.Serializer):
    academic_year = serializers.CharField()
    academic_year_id = serializers.IntegerField()
    fee_type = serializers.CharField()
    actual_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    balance_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    source = serializers.CharField()
    record_id = serializers.IntegerField()


class OutstandingDueSerializer(serializers.Serializer):
    student_id = serializers.CharField()
    student_name = serializers.CharField()
    admission_number = serializers.CharField()
    total_dues = serializers.DecimalField(max_digits=12, decimal_places=2)
    dues_details = DuesDetailSerializer(many=True)


class PaymentBlockageSerializer(serializers.Serializer):
    attempted_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    reason = serializers.CharField()
