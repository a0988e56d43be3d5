# apps/formengine/views.py
from __future__ import annotations

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.formengine.engine.errors import FormNotFound
from apps.formengine.services import get_service

log = logging.getLogger("formengine.api")

_FORM_CONTENT_TYPES = {"multipart/form-data", "application/x-www-form-urlencoded"}


class BadPayload(ValueError):
    pass


def _read_values(request) -> dict:
    """Body is {"values": {...}}; an empty body means no values."""
    if not request.body:
        return {}
    # a bare POST from a form or test client arrives as an empty multipart body
    if request.content_type in _FORM_CONTENT_TYPES:
        if request.POST:
            raise BadPayload("Form-encoded values are not supported, send a JSON body")
        return {}
    try:
        body = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BadPayload(f"Malformed JSON body: {e}") from e
    if not isinstance(body, dict):
        raise BadPayload("JSON body must be an object")
    values = body.get("values", {})
    if not isinstance(values, dict):
        raise BadPayload("'values' must be an object")
    return values


def _not_found(form_id: str) -> JsonResponse:
    return JsonResponse({"success": False, "error": f"Form configuration not found: {form_id}"}, status=404)


def _bad_request(exc: Exception) -> JsonResponse:
    return JsonResponse({"success": False, "error": str(exc)}, status=400)


class FormListView(View):
    def get(self, request, *args, **kwargs):
        forms = get_service().list_forms()
        return JsonResponse({"success": True, "data": forms, "total": len(forms)}, status=200)


class FormDetailView(View):
    def get(self, request, form_id: str, *args, **kwargs):
        try:
            config = get_service().get_config(form_id)
        except FormNotFound:
            return _not_found(form_id)
        return JsonResponse({"success": True, "data": config.to_json()}, status=200)


@method_decorator(csrf_exempt, name="dispatch")
class FormResolveView(View):
    """POST /forms/<id>/resolve/ -> visible steps with their display fields."""

    def post(self, request, form_id: str, *args, **kwargs):
        try:
            values = _read_values(request)
            data = get_service().resolve(form_id, values)
        except BadPayload as e:
            return _bad_request(e)
        except FormNotFound:
            return _not_found(form_id)
        return JsonResponse({"success": True, "data": data}, status=200)


@method_decorator(csrf_exempt, name="dispatch")
class StepValidateView(View):
    def post(self, request, form_id: str, position: int, *args, **kwargs):
        try:
            values = _read_values(request)
            result = get_service().validate_step(form_id, position, values)
        except BadPayload as e:
            return _bad_request(e)
        except FormNotFound:
            return _not_found(form_id)
        except IndexError as e:
            return JsonResponse({"success": False, "error": str(e)}, status=404)
        if not result.ok:
            return JsonResponse(
                {"success": False, "error": "Validation failed", "validationErrors": result.errors},
                status=400,
            )
        return JsonResponse({"success": True, "data": result.data}, status=200)


@method_decorator(csrf_exempt, name="dispatch")
class FormSubmitView(View):
    """
    POST /forms/<id>/submit/
      200 {"success": true, "data": {...}, "payload": {...}}
      400 {"success": false, "error": "Validation failed", "validationErrors": {...}}
      404 unknown form, 500 anything unexpected
    """

    def post(self, request, form_id: str, *args, **kwargs):
        try:
            values = _read_values(request)
            result = get_service().submit(form_id, values)
        except BadPayload as e:
            return _bad_request(e)
        except FormNotFound:
            return _not_found(form_id)
        except Exception:
            log.exception("Submission of %s failed", form_id)
            return JsonResponse({"success": False, "error": "Internal server error"}, status=500)

        if not result.ok:
            return JsonResponse(
                {"success": False, "error": "Validation failed", "validationErrors": result.errors},
                status=400,
            )
        return JsonResponse({"success": True, "data": result.data, "payload": result.payload}, status=200)
