# config/urls.py

from django.contrib import admin
from django.urls import path, include

from . import views

# -------------------------------------------------------------------
# URL CONFIGURATION
# -------------------------------------------------------------------

urlpatterns = [
    # ----------------------------------------------------------------
    # Health & diagnostics
    # ----------------------------------------------------------------
    path("health/", views.health_check_view, name="health_check"),

    # ----------------------------------------------------------------
    # Authentication (django-allauth)
    # ----------------------------------------------------------------
    path("accounts/", include("allauth.urls")),

    # ----------------------------------------------------------------
    # API namespaces
    # ----------------------------------------------------------------
    path("api/academics/", include(("core.urls", "academics"), namespace="academics")),
    path("api/promotions/", include(("students.urls", "promotions"), namespace="promotions")),
    path("api/billing/", include(("billing.urls", "billing"), namespace="billing")),

    # ----------------------------------------------------------------
    # Admin
    # ----------------------------------------------------------------
    path("admin/", admin.site.urls),
]

# -------------------------------------------------------------------
# Error handlers
# -------------------------------------------------------------------

handler404 = "config.views.handler404"
handler500 = "config.views.handler500"
