from django.urls import path

from .views import FormDetailView, FormListView, FormResolveView, FormSubmitView, StepValidateView

app_name = "formengine"

urlpatterns = [
    path("", FormListView.as_view(), name="list"),
    path("<slug:form_id>/", FormDetailView.as_view(), name="detail"),
    path("<slug:form_id>/resolve/", FormResolveView.as_view(), name="resolve"),
    path("<slug:form_id>/steps/<int:position>/validate/", StepValidateView.as_view(), name="validate-step"),
    path("<slug:form_id>/submit/", FormSubmitView.as_view(), name="submit"),
]
