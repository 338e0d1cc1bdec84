# apps/engagement/throttle.py

import logging
from dataclasses import dataclass, field

from apps.common.enums import PopupTrigger
from apps.common.storage import BrowsingSession

logger = logging.getLogger(__name__)


POPUP_SHOWN_COUNT_KEY = "popup_shown_count"
POPUP_DISMISSED_KEY = "popup_dismissed"
ONE_SHOT_USED_KEY = "popup_one_shot_used"
POPUP_LAST_TRIGGER_KEY = "popup_last_trigger"

DEFAULT_POPUP_CAP = 3
DEFAULT_ONE_SHOT_TRIGGERS = frozenset({PopupTrigger.EXIT_INTENT.value})


@dataclass
class EngagementSession:
    """Snapshot of popup engagement for one browsing session."""
    shown_count: int = 0
    used_one_shots: set[str] = field(default_factory=set)
    dismissed: bool = False
    last_trigger: str | None = None

    def to_dict(self) -> dict:
        return {
            "shown_count": self.shown_count,
            "used_one_shots": sorted(self.used_one_shots),
            "dismissed": self.dismissed,
            "last_trigger": self.last_trigger,
        }


@dataclass(frozen=True)
class PopupState:
    trigger: str
    title: str
    show_site_visit: bool = False

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "title": self.title,
            "show_site_visit": self.show_site_visit,
        }


def popup_title(trigger: str) -> str:
    if trigger in PopupTrigger.values:
        return PopupTrigger(trigger).label
    return PopupTrigger.DEFAULT.label


class EngagementThrottle:
    """
    Limits how often a secondary capture popup can appear in a session.

    Non-forced requests are refused once the visitor dismissed popups for
    good, once the session cap is reached, or when a one-shot trigger
    (exit intent) has already fired. ``force`` bypasses all three.
    """

    def __init__(
        self,
        session: BrowsingSession,
        cap: int = DEFAULT_POPUP_CAP,
        one_shot_triggers: frozenset[str] | set[str] | tuple[str, ...] = DEFAULT_ONE_SHOT_TRIGGERS,
    ):
        self.session = session
        self.cap = cap
        self.one_shot_triggers = frozenset(one_shot_triggers)

    @property
    def state(self) -> EngagementSession:
        used = self.session.get(ONE_SHOT_USED_KEY, [])
        return EngagementSession(
            shown_count=int(self.session.get(POPUP_SHOWN_COUNT_KEY, 0) or 0),
            used_one_shots=set(used) if isinstance(used, list) else set(),
            dismissed=bool(self.session.get(POPUP_DISMISSED_KEY, False)),
            last_trigger=self.session.get(POPUP_LAST_TRIGGER_KEY),
        )

    def request_show(self, trigger: str = PopupTrigger.DEFAULT, force: bool = False) -> bool:
        """Decide whether a popup may be shown, and count it if so."""
        state = self.state

        if not force:
            if state.dismissed:
                logger.debug(f"Popup '{trigger}' refused: dismissed for session")
                return False
            if state.shown_count >= self.cap:
                logger.debug(f"Popup '{trigger}' refused: cap of {self.cap} reached")
                return False
            if trigger in self.one_shot_triggers and trigger in state.used_one_shots:
                logger.debug(f"Popup '{trigger}' refused: one-shot trigger already used")
                return False

        self.session.set(POPUP_SHOWN_COUNT_KEY, state.shown_count + 1)
        self.session.set(POPUP_LAST_TRIGGER_KEY, str(trigger))
        if trigger in self.one_shot_triggers and trigger not in state.used_one_shots:
            self.session.set(ONE_SHOT_USED_KEY, sorted(state.used_one_shots | {str(trigger)}))

        return True

    def open(self, trigger: str = PopupTrigger.DEFAULT, force: bool = False, title: str | None = None) -> PopupState | None:
        """Like ``request_show`` but returns what to display, or None."""
        if not self.request_show(trigger, force=force):
            return None
        return PopupState(
            trigger=str(trigger),
            title=title or popup_title(trigger),
            show_site_visit=trigger == PopupTrigger.SITE_VISIT,
        )

    def dismiss(self, permanent: bool = False) -> None:
        if permanent:
            self.session.set(POPUP_DISMISSED_KEY, True)
            logger.info("Popups dismissed for the rest of the session")
