"""
Domain errors shared by the election, voter and voting apps, and the REST
framework exception handler that turns them into JSON error bodies.
"""
import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ElectionServiceError(Exception):
    """Base class for every business-rule failure raised by a service."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request could not be processed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ElectionServiceError):
    default_message = 'Invalid input'


class ConflictError(ElectionServiceError):
    default_message = 'Request conflicts with the current state'


class NotFoundError(ElectionServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class InvalidStateError(ElectionServiceError):
    default_message = 'Action is not valid for the current election state'


class NotClosedError(InvalidStateError):
    default_message = 'Election is not closed yet'


class NoActiveElectionError(InvalidStateError):
    default_message = 'No active election'


class InvalidKeyCodeError(ValidationError):
    default_message = 'Invalid key code'


class InvalidCandidateError(ValidationError):
    default_message = 'Invalid candidate'


class AlreadyVotedError(ConflictError):
    default_message = 'You have already voted in this election'


class DuplicateKeyCodeError(ConflictError):
    default_message = 'Key code already exists'


class UnauthorizedError(exceptions.APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Unauthorized: Invalid admin key'
    default_code = 'unauthorized'


def _first_message(detail):
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
    if isinstance(detail, (list, tuple)) and detail:
        return _first_message(detail[0])
    return str(detail)


def api_exception_handler(exc, context):
    """
    Render every failure as ``{"error": ...}``.

    Views that act on a target (close, delete) may set
    ``not_found_status = 400`` so a missing target is reported as a bad
    request rather than a failed lookup.
    """
    if isinstance(exc, ElectionServiceError):
        status_code = exc.status_code
        if isinstance(exc, NotFoundError):
            view = context.get('view')
            status_code = getattr(view, 'not_found_status', status_code)
        return Response({'error': exc.message}, status=status_code)

    if isinstance(exc, exceptions.ValidationError):
        return Response({
            'error': _first_message(exc.detail),
            'details': exc.detail,
        }, status=status.HTTP_400_BAD_REQUEST)

    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data.get('detail') if isinstance(response.data, dict) else response.data
        response.data = {'error': str(detail)}
        return response

    view = context.get('view')
    logger.exception(
        'Unhandled error in %s', view.__class__.__name__ if view is not None else 'view'
    )
    return Response(
        {'error': 'Internal server error'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
