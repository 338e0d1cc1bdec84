# apps/intake/urls.py

from django.urls import path
from .views import LeadDraftView, LeadSubmitView

urlpatterns = [
    path("draft/", LeadDraftView.as_view(), name="lead-draft"),
    path("submit/", LeadSubmitView.as_view(), name="lead-submit"),
]
