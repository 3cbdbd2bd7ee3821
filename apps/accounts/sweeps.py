"""
Coordinator expiry sweep.

Runs every COORDINATOR_SWEEP_INTERVAL_HOURS (6 by default) and once at
start. Demotes coordinators whose grant and grace period have passed and
refreshes the cached status of the rest.
"""

from datetime import timedelta

from django.conf import settings

from apps.notifications.scheduler import Sweep

from .coordinators import apply_coordinator_status
from .models import User


class CoordinatorSweep(Sweep):
    name = 'Coordinator sweep'

    @property
    def default_interval(self):
        return timedelta(hours=getattr(settings, 'COORDINATOR_SWEEP_INTERVAL_HOURS', 6))

    def get_queryset(self, now):
        return (
            User.objects
            .filter(role=User.Role.COORDINATOR)
            .select_related('coordinator')
            .order_by('pk')
        )

    def process(self, user, now):
        return apply_coordinator_status(user, now)
