# core/admin.py
from django.contrib import admin, messages

from .exceptions import SchoolManagementException
from .models import AcademicYear, Class
from .services import AcademicYearService


@admin.register(AcademicYear)
class AcademicYearAdmin(admin.ModelAdmin):
    list_display = ['name', 'start_date', 'end_date', 'is_current']
    list_filter = ['is_current']
    search_fields = ['name']
    readonly_fields = ['is_current', 'created_at', 'updated_at']
    ordering = ['-start_date']
    actions = ['make_current']

    @admin.action(description="Set selected year as current")
    def make_current(self, request, queryset):
        if queryset.count() != 1:
            self.message_user(request, "Select exactly one academic year.", level=messages.ERROR)
            return
        try:
            year = AcademicYearService.set_current_year(queryset.first().pk)
        except SchoolManagementException as e:
            self.message_user(request, e.message, level=messages.ERROR)
            return
        self.message_user(request, f"{year.name} is now the current academic year.")


@admin.register(Class)
class ClassAdmin(admin.ModelAdmin):
    list_display = ['name', 'section', 'is_active']
    list_filter = ['is_active', 'section']
    search_fields = ['name', 'section']
    list_editable = ['is_active']
