# students/admin.py
from django.contrib import admin
from django.utils.html import format_html

from .models import Student, StudentPromotion, PromotionBatch, PromotionAudit


# ===== STUDENT ADMIN =====
@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = [
        'admission_number',
        'full_name_display',
        'current_class',
        'status',
    ]

    list_filter = [
        'status',
        'current_class',
    ]

    search_fields = [
        'first_name',
        'last_name',
        'admission_number',
    ]

    readonly_fields = [
        'created_at',
        'updated_at',
    ]

    def full_name_display(self, obj):
        return obj.full_name
    full_name_display.short_description = 'Full Name'


# ===== PROMOTION ADMIN =====
@admin.register(StudentPromotion)
class StudentPromotionAdmin(admin.ModelAdmin):
    list_display = [
        'student',
        'from_academic_year',
        'to_academic_year',
        'from_class',
        'to_class',
        'promotion_type_badge',
        'promoted_by',
        'promotion_date',
    ]
    list_filter = ['promotion_type', 'to_academic_year', 'promotion_date']
    search_fields = ['student__first_name', 'student__last_name', 'student__admission_number', 'reason']
    raw_id_fields = ['student', 'batch']
    date_hierarchy = 'promotion_date'

    def promotion_type_badge(self, obj):
        colors = {
            'promoted': 'green',
            'repeated': 'orange',
            'dropout': 'red',
        }
        return format_html(
            '<span style="background: {}; color: white; padding: 2px 8px; border-radius: 10px;">{}</span>',
            colors.get(obj.promotion_type, 'gray'), obj.get_promotion_type_display()
        )
    promotion_type_badge.short_description = 'Type'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related(
            'student', 'from_academic_year', 'to_academic_year', 'from_class', 'to_class'
        )


@admin.register(PromotionBatch)
class PromotionBatchAdmin(admin.ModelAdmin):
    list_display = ['id', 'target_academic_year', 'promoted_by', 'idempotency_key', 'created_at']
    list_filter = ['target_academic_year']
    readonly_fields = ['idempotency_key', 'result', 'created_at']


@admin.register(PromotionAudit)
class PromotionAuditAdmin(admin.ModelAdmin):
    list_display = [
        'from_academic_year', 'to_academic_year', 'promoted', 'payments',
        'waivers', 'carried_forward', 'blocked', 'performed_by', 'created_at',
    ]
    list_filter = ['to_academic_year']
    readonly_fields = ['errors', 'created_at']

    def has_change_permission(self, request, obj=None):
        return False
