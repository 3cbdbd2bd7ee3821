"""
Custom middleware for accounts app.

Includes:
- Disabled account middleware (logs out disabled users)
- Coordinator status middleware (applies coordinator expiry per request)

The coordinator sweep only runs every few hours, so a coordinator whose
grant lapses in between is demoted on their next request instead.
"""

import logging

from django.contrib.auth import logout
from django.db import DatabaseError
from django.http import JsonResponse
from django.utils import timezone

from .coordinators import REVOKED, apply_coordinator_status

logger = logging.getLogger(__name__)


class DisabledAccountMiddleware:
    """
    Middleware to end the session of users whose account is disabled.

    Returns 403 with JSON so API clients can show the reason.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            if getattr(user, 'status', None) == 'disabled':
                logout(request)
                return JsonResponse(
                    {'success': False, 'message': 'Your account has been disabled'},
                    status=403,
                )

        return self.get_response(request)


class CoordinatorStatusMiddleware:
    """
    Middleware to re-resolve an authenticated coordinator's grant.

    Writes only when the resolved status differs from the stored one.
    A database error here is logged and the request continues; the next
    sweep will retry the transition.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated and user.is_coordinator():
            try:
                outcome = apply_coordinator_status(user, timezone.now())
            except DatabaseError:
                logger.exception('Could not refresh coordinator status for %s', user.email)
            else:
                if outcome == REVOKED:
                    logger.info('Coordinator %s demoted on request to %s', user.email, request.path)

        return self.get_response(request)
