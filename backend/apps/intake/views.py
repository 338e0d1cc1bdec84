# apps/intake/views.py

import logging

from asgiref.sync import async_to_sync
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.enums import ErrorKind, FormSource
from apps.common.exceptions import FieldLocked, FormAlreadySubmitted, UnknownField, ValidationFailed
from .controller import FormStateController
from .services import build_controller
from .telemetry import browser_info

logger = logging.getLogger(__name__)


ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE: status.HTTP_409_CONFLICT,
    ErrorKind.SUBMISSION: status.HTTP_502_BAD_GATEWAY,
}


def _source_from(request) -> str:
    source = request.query_params.get("source") or request.data.get("source")
    if source in FormSource.values:
        return source
    return FormSource.HERO_FORM


def _form_state(controller: FormStateController) -> dict:
    visibility = controller.visibility
    return {
        "values": controller.values.to_dict(),
        "visibility": {
            "site_visit": visibility.site_visit,
            "pickup_drop": visibility.pickup_drop,
            "drop_location": visibility.drop_location,
            "meal": visibility.meal,
        },
        "status": controller.status,
        "was_submitted": controller.was_submitted,
    }


class LeadDraftView(APIView):
    """
    The visitor's in-progress lead form.

    get:     GET    /api/v1/intake/draft/
    patch:   PATCH  /api/v1/intake/draft/
    delete:  DELETE /api/v1/intake/draft/
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        """Mount the form: restore the draft and resolve tracking data."""
        controller = build_controller(request, source=_source_from(request))
        controller.mount(request.query_params, start_telemetry=False)

        # Bounded by the telemetry timeout; the result is cached for the session
        tracking = async_to_sync(controller.telemetry.acquire)()

        data = _form_state(controller)
        data["tracking"] = {
            **tracking.to_dict(),
            "status": controller.telemetry.status,
            "browser": browser_info(tracking.user_agent),
        }
        return Response(data)

    def patch(self, request):
        """Apply field edits and save the draft immediately."""
        controller = build_controller(request, source=_source_from(request))
        controller.mount(start_telemetry=False)

        try:
            for name, value in request.data.items():
                if name == "source":
                    continue
                controller.set_field(name, value, persist=False)
        except UnknownField as e:
            return Response({"error": f"Unknown field: {e}"}, status=status.HTTP_400_BAD_REQUEST)
        except FieldLocked as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except ValidationFailed as e:
            return Response({"error": str(e), "errors": e.errors}, status=status.HTTP_400_BAD_REQUEST)

        controller.drafts.save(controller.values)
        return Response(_form_state(controller))

    def delete(self, request):
        controller = build_controller(request)
        controller.mount(start_telemetry=False)
        controller.reset()
        return Response(status=status.HTTP_204_NO_CONTENT)


class LeadSubmitView(APIView):
    """
    Submit the visitor's lead.

    create:  POST /api/v1/intake/submit/
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        controller = build_controller(request, source=_source_from(request))
        controller.mount(request.query_params, start_telemetry=False)
        controller.telemetry.load_cached()

        try:
            controller.prefill(request.data)
        except ValidationFailed as e:
            return Response(
                {
                    "success": False,
                    "error": "Please correct the highlighted fields.",
                    "error_kind": ErrorKind.VALIDATION,
                    "retryable": False,
                    "errors": e.errors,
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            result = async_to_sync(controller.submit)()
        except FormAlreadySubmitted as e:
            return Response({"success": False, "error": str(e)}, status=status.HTTP_409_CONFLICT)

        if result.success:
            return Response(
                {"success": True, "data": result.data},
                status=status.HTTP_201_CREATED,
            )
        if result.skipped:
            return Response(
                {"success": False, "error": "A submission is already in progress", "retryable": True},
                status=status.HTTP_409_CONFLICT,
            )

        body = {
            "success": False,
            "error": result.error,
            "error_kind": result.error_kind,
            "retryable": result.retryable,
        }
        if result.timed_out:
            body["timed_out"] = True
        if result.field_errors:
            body["errors"] = result.field_errors
        return Response(body, status=ERROR_STATUS.get(result.error_kind, status.HTTP_400_BAD_REQUEST))
