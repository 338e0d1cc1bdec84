# apps/engagement/urls.py

from django.urls import path
from .views import DismissView, PopupView

urlpatterns = [
    path("popup/", PopupView.as_view(), name="engagement-popup"),
    path("dismiss/", DismissView.as_view(), name="engagement-dismiss"),
]
