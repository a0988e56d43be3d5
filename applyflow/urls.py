"""
URL configuration for the applyflow project.

Only the form engine's JSON API is routed; rendering happens in the client.
"""
from django.urls import include, path

urlpatterns = [
    path("forms/", include("apps.formengine.urls")),
]
