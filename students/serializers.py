# students/serializers.py
"""
Request validation for the promotion API.
"""
from rest_framework import serializers

from shared.constants import FeeActions, PaymentMethods


class ReadinessQuerySerializer(serializers.Serializer):
    current = serializers.IntegerField()
    target = serializers.IntegerField()


class WorkflowStartSerializer(serializers.Serializer):
    current_year_id = serializers.IntegerField()
    target_year_id = serializers.IntegerField()


class FeeActionSerializer(serializers.Serializer):
    student_id = serializers.CharField()
    action = serializers.ChoiceField(choices=FeeActions.CHOICES)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    payment_method = serializers.ChoiceField(choices=PaymentMethods.CHOICES, required=False, allow_null=True)


class ExecuteSerializer(serializers.Serializer):
    idempotency_key = serializers.CharField(required=False, allow_blank=True, max_length=100)


class IndividualPromotionSerializer(serializers.Serializer):
    target_academic_year_id = serializers.IntegerField()
    promotion_data = serializers.ListField(child=serializers.DictField(), allow_empty=False)
    idempotency_key = serializers.CharField(required=False, allow_blank=True, max_length=100)
