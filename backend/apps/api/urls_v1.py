# apps/api/urls_v1.py

from django.urls import path, include

urlpatterns = [
    path("intake/", include("apps.intake.urls")),
    path("engagement/", include("apps.engagement.urls")),
]
