from apps.common.enums import DeviceClass, LeadPriority, LeadStatus
from apps.intake.payload import build_lead_record, capture_utm_params, get_utm_params
from apps.intake.schema import LeadDraft
from apps.intake.telemetry import Location, TrackingContext

VISIT_FIELDS = (
    "site_visit_date", "site_visit_time", "pickup_location",
    "drop_location", "meal_preference",
)


def stale_draft(**overrides) -> LeadDraft:
    """A draft where every nested field was typed into at some point."""
    values = dict(
        name=" Rahul ", mobile="+91 98765 43210", email="Rahul@X.com",
        wants_site_visit=True, visit_date="2025-03-01", visit_time="10:00 AM",
        wants_pickup_drop=True, pickup_location="Koregaon Park", drop_location="Baner Road",
        wants_meal=True, meal_preference="lunch",
    )
    values.update(overrides)
    return LeadDraft(**values)


class TestBuildLeadRecord:
    def test_visit_fields_null_when_site_visit_off(self):
        draft = stale_draft(wants_site_visit=False)
        tracking = TrackingContext.fallback()

        first = build_lead_record(draft, tracking)
        second = build_lead_record(draft, tracking)

        for record in (first, second):
            for name in VISIT_FIELDS:
                assert getattr(record, name) is None
            assert record.wants_pickup_drop is False
            assert record.wants_meal is False
        assert first == second

    def test_pickup_fields_null_when_pickup_off(self):
        record = build_lead_record(stale_draft(wants_pickup_drop=False), TrackingContext.fallback())
        assert record.site_visit_date == "2025-03-01"
        assert record.pickup_location is None
        assert record.drop_location is None
        assert record.meal_preference == "lunch"

    def test_drop_mirrors_pickup(self):
        record = build_lead_record(stale_draft(same_as_pickup=True), TrackingContext.fallback())
        assert record.drop_location == "Koregaon Park"

    def test_priority_and_status(self):
        with_visit = build_lead_record(stale_draft(), TrackingContext.fallback())
        without_visit = build_lead_record(stale_draft(wants_site_visit=False), TrackingContext.fallback())

        assert with_visit.status == LeadStatus.NEW
        assert with_visit.priority == LeadPriority.HIGH
        assert without_visit.priority == LeadPriority.MEDIUM

    def test_contact_is_normalized(self):
        record = build_lead_record(stale_draft(), TrackingContext.fallback())
        assert record.name == "Rahul"
        assert record.mobile == "9876543210"
        assert record.email == "rahul@x.com"

    def test_payload_uses_backend_keys(self):
        tracking = TrackingContext(
            ip_address="203.0.113.7",
            location=Location(city="Pune", state="Maharashtra", country="India"),
            user_agent="ua",
            device_class=DeviceClass.MOBILE,
        )
        payload = build_lead_record(
            stale_draft(source="popup_form"), tracking, utm={"utm_source": "google"},
        ).to_payload()

        assert payload["siteVisitDate"] == "2025-03-01"
        assert payload["ipAddress"] == "203.0.113.7"
        assert payload["location"] == {"city": "Pune", "state": "Maharashtra", "country": "India"}
        assert payload["deviceType"] == "mobile"
        assert payload["utmSource"] == "google"
        assert payload["utmMedium"] is None
        assert payload["source"] == "popup_form"
        assert payload["status"] == "new"
        assert payload["priority"] == "high"

    def test_fallback_tracking_values(self):
        payload = build_lead_record(stale_draft(), TrackingContext.fallback()).to_payload()
        assert payload["ipAddress"] == "Unknown"
        assert payload["location"]["city"] == "Unknown"
        assert payload["userAgent"] == "Unknown"
        assert payload["deviceType"] == "unknown"


class TestUtmParams:
    def test_capture_and_read(self, session):
        captured = capture_utm_params(session, {"utm_source": "fb", "utm_campaign": "launch", "page": "2"})
        assert captured == {"utm_source": "fb", "utm_campaign": "launch"}
        assert get_utm_params(session) == captured

    def test_landing_without_utm_keeps_stored_values(self, session):
        capture_utm_params(session, {"utm_source": "fb"})
        capture_utm_params(session, {"page": "2"})
        assert get_utm_params(session) == {"utm_source": "fb"}
