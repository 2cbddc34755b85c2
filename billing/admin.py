# billing/admin.py
from django.contrib import admin
from django.utils.html import format_html
from django.urls import reverse

# ✅ Import shared constants
from shared.constants import StatusChoices

from .calculations import project_record
from .models import (
    Fee,
    FeeCarryForward,
    FeePaymentRecord,
    FeeStructure,
    PaymentBlockageLog,
    StudentFeeRecord,
)

STATUS_COLORS = {
    StatusChoices.PENDING: 'gray',
    StatusChoices.PARTIAL: 'orange',
    StatusChoices.OVERDUE: 'red',
    StatusChoices.PAID: 'green',
}


class FeeStatusBadgeMixin:

    def status_badge(self, obj):
        color = STATUS_COLORS.get(obj.status, 'gray')
        return format_html(
            '<span style="background: {}; color: white; padding: 2px 8px; border-radius: 10px;">{}</span>',
            color, obj.get_status_display()
        )
    status_badge.short_description = 'Status'

    def balance_formatted(self, obj):
        return f"₹{project_record(obj)['balance_fee']:,.2f}"
    balance_formatted.short_description = 'Balance'

    def student_link(self, obj):
        url = reverse('admin:students_student_change', args=[obj.student_id])
        return format_html('<a href="{}">{}</a>', url, obj.student.full_name)
    student_link.short_description = 'Student'


@admin.register(FeeStructure)
class FeeStructureAdmin(admin.ModelAdmin):
    list_display = ['school_class', 'academic_year', 'fee_type', 'amount', 'frequency', 'is_active']
    list_filter = ['academic_year', 'fee_type', 'is_active']
    search_fields = ['school_class__name', 'fee_type', 'description']
    list_editable = ['is_active', 'amount']


@admin.register(StudentFeeRecord)
class StudentFeeRecordAdmin(FeeStatusBadgeMixin, admin.ModelAdmin):
    list_display = [
        'student_link', 'academic_year', 'fee_type', 'actual_fee', 'discount_amount',
        'paid_amount', 'balance_formatted', 'status_badge', 'is_carry_forward',
    ]
    list_filter = ['academic_year', 'status', 'fee_type', 'is_carry_forward', 'payment_blocked']
    search_fields = ['student__first_name', 'student__last_name', 'student__admission_number']
    readonly_fields = ['final_fee', 'balance_fee', 'status', 'created_at', 'updated_at']
    raw_id_fields = ['student', 'carry_forward_source']

    fieldsets = (
        ('Student', {
            'fields': ('student', 'school_class', 'academic_year', 'fee_type', 'due_date')
        }),
        ('Amounts', {
            'fields': ('actual_fee', 'discount_amount', 'paid_amount', 'final_fee', 'balance_fee', 'status')
        }),
        ('Notes & Carry Forward', {
            'fields': ('discount_notes', 'notes', 'is_carry_forward', 'carry_forward_source', 'payment_blocked')
        }),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('student', 'academic_year')


@admin.register(Fee)
class FeeAdmin(FeeStatusBadgeMixin, admin.ModelAdmin):
    list_display = ['student_link', 'academic_year', 'fee_type', 'amount', 'total_paid', 'balance_formatted', 'status_badge']
    list_filter = ['academic_year', 'status', 'fee_type']
    search_fields = ['student__first_name', 'student__last_name', 'student__admission_number']
    raw_id_fields = ['student']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('student', 'academic_year')


@admin.register(FeePaymentRecord)
class FeePaymentRecordAdmin(admin.ModelAdmin):
    list_display = ['receipt_number', 'student', 'amount_paid', 'payment_method', 'payment_date', 'created_by']
    list_filter = ['payment_method', 'payment_date']
    search_fields = ['receipt_number', 'student__first_name', 'student__last_name']
    readonly_fields = ['receipt_number', 'idempotency_key', 'created_at']
    raw_id_fields = ['student', 'fee_record', 'legacy_fee']
    date_hierarchy = 'payment_date'

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(FeeCarryForward)
class FeeCarryForwardAdmin(admin.ModelAdmin):
    list_display = ['student', 'from_academic_year', 'to_academic_year', 'carried_amount', 'carry_forward_type', 'status']
    list_filter = ['carry_forward_type', 'status', 'to_academic_year']
    search_fields = ['student__first_name', 'student__last_name']
    readonly_fields = ['idempotency_key', 'created_at']
    raw_id_fields = ['student']


@admin.register(PaymentBlockageLog)
class PaymentBlockageLogAdmin(admin.ModelAdmin):
    list_display = ['student', 'academic_year', 'blocked_amount', 'outstanding_dues', 'created_at']
    list_filter = ['academic_year']
    search_fields = ['student__first_name', 'student__last_name', 'reason']
    readonly_fields = ['created_at']
