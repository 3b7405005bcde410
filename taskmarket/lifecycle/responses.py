from rest_framework import status
from rest_framework.response import Response

from .dispatch import dispatch
from .results import ErrorKind

ERROR_STATUS = {
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SIGNATURE_INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
}


def http_status_for(result, success_status=status.HTTP_200_OK):
    if result.ok:
        return status.HTTP_200_OK if result.is_replay else success_status
    return ERROR_STATUS.get(result.error_kind, status.HTTP_400_BAD_REQUEST)


def result_response(result, success_status=status.HTTP_200_OK):
    """Render an OperationResult and deliver its events."""
    if result.ok and result.changed:
        dispatch(result)
    return Response(result.to_dict(), status=http_status_for(result, success_status))
