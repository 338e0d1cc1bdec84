# apps/engagement/views.py

from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import DismissSerializer, PopupRequestSerializer
from .services import build_throttle


class PopupView(APIView):
    """
    Ask whether a capture popup may be shown.

    create:  POST /api/v1/engagement/popup/
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = PopupRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        throttle = build_throttle(request)
        popup = throttle.open(
            params["trigger"],
            force=params["force"],
            title=params.get("title") or None,
        )

        return Response({
            "allowed": popup is not None,
            "popup": popup.to_dict() if popup else None,
            "state": throttle.state.to_dict(),
        })


class DismissView(APIView):
    """
    Close the popup, optionally for the rest of the session.

    create:  POST /api/v1/engagement/dismiss/
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = DismissSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        throttle = build_throttle(request)
        throttle.dismiss(permanent=serializer.validated_data["permanent"])
        return Response(throttle.state.to_dict())
