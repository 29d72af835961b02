"""Status state machine - maps probe outcomes to site status and decides when to notify.

Notifications fire only on transition edges: a site failing on every
check produces a single alert when it goes down and a single recovery
when it comes back.
"""
from enum import Enum
from typing import Optional

from ..models import SiteStatus, CheckOutcome


class NotificationKind(str, Enum):
    ALERT = "alert"
    RECOVERY = "recovery"
    REPORT = "report"


OUTCOME_STATUS = {
    CheckOutcome.SUCCESS: SiteStatus.UP,
    CheckOutcome.FAILURE: SiteStatus.DOWN,
    CheckOutcome.TIMEOUT: SiteStatus.DEGRADED,
    CheckOutcome.ERROR: SiteStatus.UNKNOWN,
}

FAILING_STATUSES = frozenset({SiteStatus.DOWN, SiteStatus.DEGRADED})


def resolve_status(outcome: CheckOutcome) -> SiteStatus:
    """Site status implied by a probe outcome."""
    return OUTCOME_STATUS.get(outcome, SiteStatus.UNKNOWN)


def notification_for(previous: Optional[SiteStatus], new: SiteStatus) -> Optional[NotificationKind]:
    """Notification to send for a status change, or None for a silent update."""
    if previous == new:
        return None
    if new == SiteStatus.UP and previous in FAILING_STATUSES:
        return NotificationKind.RECOVERY
    if new in FAILING_STATUSES:
        return NotificationKind.ALERT
    return None
