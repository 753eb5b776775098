from rest_framework import status as http_status
from rest_framework.response import Response


def envelope(data=None, message=None, status=http_status.HTTP_200_OK, **extra):
    """Success response in the API envelope: {success, data?, message?, ...extra}."""
    payload = {"success": True}
    if data is not None:
        payload["data"] = data
    if message:
        payload["message"] = message
    payload.update(extra)
    return Response(payload, status=status)
