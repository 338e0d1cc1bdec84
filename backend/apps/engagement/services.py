# apps/engagement/services.py

from apps.common.storage import BrowsingSession
from apps.intake.conf import intake_settings
from apps.intake.services import get_session_store
from .throttle import EngagementThrottle


def build_throttle(request) -> EngagementThrottle:
    """Engagement throttle bound to the visitor's session."""
    config = intake_settings()
    session = BrowsingSession(get_session_store(request, config), prefix=config.STORAGE_PREFIX)
    session.init()
    return EngagementThrottle(
        session,
        cap=config.POPUP_CAP,
        one_shot_triggers=config.ONE_SHOT_TRIGGERS,
    )
