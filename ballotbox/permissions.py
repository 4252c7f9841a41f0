import hmac
import logging

from django.conf import settings
from rest_framework import permissions

from .errors import UnauthorizedError

logger = logging.getLogger(__name__)


class HasAdminKey(permissions.BasePermission):
    """
    Allows access when the request carries the shared admin key, either in the
    ``X-Admin-Key`` header or the ``adminKey`` query parameter.
    """

    def has_permission(self, request, view):
        supplied = (
            request.headers.get(settings.ADMIN_KEY_HEADER)
            or request.query_params.get(settings.ADMIN_KEY_QUERY_PARAM)
        )
        if supplied and hmac.compare_digest(
            supplied.encode('utf-8'), str(settings.ADMIN_KEY).encode('utf-8')
        ):
            return True

        logger.warning('Rejected admin request to %s: missing or invalid admin key', request.path)
        raise UnauthorizedError()
