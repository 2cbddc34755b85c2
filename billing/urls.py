from django.urls import path
from . import views

app_name = 'billing'

urlpatterns = [
    # Previous-year dues
    path('dues/', views.outstanding_dues_view, name='outstanding_dues'),
    path('dues/<int:student_id>/', views.student_dues_view, name='student_dues'),
    path('dues/<int:student_id>/blockage/', views.payment_blockage_view, name='payment_blockage'),
]
