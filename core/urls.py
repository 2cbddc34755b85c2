# core/urls.py
from django.urls import path
from . import views

app_name = 'academics'

urlpatterns = [
    # ============ ACADEMIC YEARS ============
    path('years/', views.academic_year_list_view, name='academic_year_list'),
    path('years/<int:year_id>/', views.academic_year_detail_view, name='academic_year_detail'),
    path('years/<int:year_id>/set-current/', views.set_current_year_view, name='set_current_year'),
]
