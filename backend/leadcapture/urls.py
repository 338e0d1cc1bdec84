# leadcapture/urls.py

from django.urls import path, include

urlpatterns = [
    path("api/v1/", include("apps.api.urls_v1")),
]
