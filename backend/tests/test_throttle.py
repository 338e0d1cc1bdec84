import pytest

from apps.common.enums import PopupTrigger
from apps.engagement.throttle import EngagementThrottle, popup_title


@pytest.fixture
def throttle(session):
    return EngagementThrottle(session)


class TestEngagementThrottle:
    def test_cap_limits_general_triggers(self, throttle):
        results = [throttle.request_show("timer") for _ in range(4)]
        assert results == [True, True, True, False]

    def test_force_bypasses_cap(self, throttle):
        for _ in range(3):
            throttle.request_show("timer")

        assert throttle.request_show("brochure", force=True)
        assert throttle.state.shown_count == 4

    def test_exit_intent_fires_once(self, throttle):
        assert throttle.request_show("exit_intent") is True
        assert throttle.request_show("exit_intent") is False
        assert throttle.state.shown_count == 1
        assert throttle.request_show("timer") is True

    def test_exit_intent_counts_toward_cap(self, throttle):
        throttle.request_show("timer")
        throttle.request_show("timer")
        throttle.request_show("timer")
        assert throttle.request_show("exit_intent") is False

    def test_permanent_dismiss_blocks_everything_but_force(self, throttle):
        throttle.dismiss(permanent=True)

        assert throttle.request_show("timer") is False
        assert throttle.request_show("exit_intent") is False
        assert throttle.request_show("site_visit", force=True) is True

    def test_plain_dismiss_keeps_popups_available(self, throttle):
        throttle.dismiss()
        assert throttle.request_show("timer") is True

    def test_state_survives_new_throttle(self, session, throttle):
        throttle.request_show("exit_intent")

        state = EngagementThrottle(session).state

        assert state.shown_count == 1
        assert state.used_one_shots == {"exit_intent"}
        assert state.last_trigger == "exit_intent"

    def test_configurable_cap(self, session):
        throttle = EngagementThrottle(session, cap=1, one_shot_triggers=())
        assert throttle.request_show("exit_intent") is True
        assert throttle.request_show("timer") is False

    def test_session_teardown_resets_counters(self, session, throttle):
        throttle.request_show("timer")
        session.teardown()
        assert throttle.state.shown_count == 0


class TestPopupContent:
    def test_open_returns_title(self, throttle):
        popup = throttle.open("price")
        assert popup.title == PopupTrigger.PRICE.label
        assert popup.show_site_visit is False

    def test_site_visit_popup(self, throttle):
        popup = throttle.open("site_visit", title="Book your visit")
        assert popup.title == "Book your visit"
        assert popup.show_site_visit is True

    def test_open_refused(self, throttle):
        throttle.dismiss(permanent=True)
        assert throttle.open("timer") is None

    def test_unknown_trigger_gets_default_title(self):
        assert popup_title("scroll") == PopupTrigger.DEFAULT.label
