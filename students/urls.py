# students/urls.py
from django.urls import path
from . import views

app_name = 'promotions'

urlpatterns = [
    # ============ READINESS ============
    path('readiness/', views.promotion_readiness_view, name='readiness'),

    # ============ DUES RESOLUTION WORKFLOW ============
    path('workflow/start/', views.workflow_start_view, name='workflow_start'),
    path('workflow/outstanding/', views.workflow_outstanding_view, name='workflow_outstanding'),
    path('workflow/actions/', views.workflow_action_view, name='workflow_actions'),
    path('workflow/confirm/', views.workflow_confirm_view, name='workflow_confirm'),
    path('workflow/back/', views.workflow_back_view, name='workflow_back'),
    path('workflow/execute/', views.workflow_execute_view, name='workflow_execute'),

    # ============ INDIVIDUAL PROMOTION ============
    path('individual/', views.individual_promotion_view, name='individual'),
]
