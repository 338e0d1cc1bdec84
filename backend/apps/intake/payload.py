# apps/intake/payload.py

from dataclasses import dataclass, field
from typing import Any, Mapping

from apps.common.enums import LeadPriority, LeadStatus
from apps.common.storage import BrowsingSession
from .dedupe import normalize_email, normalize_mobile
from .schema import LeadDraft
from .telemetry import TrackingContext


UTM_PARAMS_KEY = "utm_params"
UTM_KEYS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")


def capture_utm_params(session: BrowsingSession, query_params: Mapping[str, Any] | None) -> dict:
    """Store UTM values from the landing URL. Absent params leave stored ones alone."""
    if not query_params:
        return {}
    params = {key: query_params[key] for key in UTM_KEYS if query_params.get(key)}
    if params:
        session.set(UTM_PARAMS_KEY, params)
    return params


def get_utm_params(session: BrowsingSession) -> dict:
    params = session.get(UTM_PARAMS_KEY, {})
    return params if isinstance(params, dict) else {}


@dataclass(frozen=True)
class LeadRecord:
    """
    The payload sent to the backend. Built once, never mutated.
    Visit sub-fields are None whenever their owning flag is off.
    """
    name: str
    email: str
    mobile: str
    message: str
    source: str

    wants_site_visit: bool
    site_visit_date: str | None
    site_visit_time: str | None
    wants_pickup_drop: bool
    pickup_location: str | None
    drop_location: str | None
    wants_meal: bool
    meal_preference: str | None

    ip_address: str
    location: dict = field(default_factory=dict)
    user_agent: str = ""
    device_type: str = ""

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None

    status: str = LeadStatus.NEW
    priority: str = LeadPriority.MEDIUM

    def to_payload(self) -> dict:
        """Serialize with the backend's camelCase keys."""
        return {
            "name": self.name,
            "email": self.email,
            "mobile": self.mobile,
            "message": self.message,
            "source": self.source,
            "wantsSiteVisit": self.wants_site_visit,
            "siteVisitDate": self.site_visit_date,
            "siteVisitTime": self.site_visit_time,
            "wantsPickupDrop": self.wants_pickup_drop,
            "pickupLocation": self.pickup_location,
            "dropLocation": self.drop_location,
            "wantsMeal": self.wants_meal,
            "mealPreference": self.meal_preference,
            "ipAddress": self.ip_address,
            "location": dict(self.location),
            "userAgent": self.user_agent,
            "deviceType": self.device_type,
            "utmSource": self.utm_source,
            "utmMedium": self.utm_medium,
            "utmCampaign": self.utm_campaign,
            "utmTerm": self.utm_term,
            "utmContent": self.utm_content,
            "status": self.status,
            "priority": self.priority,
        }


def build_lead_record(
    draft: LeadDraft,
    tracking: TrackingContext,
    utm: Mapping[str, Any] | None = None,
    source: str | None = None,
) -> LeadRecord:
    """Flatten a draft into a LeadRecord. The draft's flags decide what is kept."""
    utm = utm or {}
    site_visit = bool(draft.wants_site_visit)
    pickup_drop = site_visit and bool(draft.wants_pickup_drop)
    meal = site_visit and bool(draft.wants_meal)

    drop_location = None
    if pickup_drop:
        drop_location = draft.pickup_location if draft.same_as_pickup else draft.drop_location

    return LeadRecord(
        name=(draft.name or "").strip(),
        email=normalize_email(draft.email),
        mobile=normalize_mobile(draft.mobile),
        message=(draft.message or "").strip(),
        source=source or draft.source,
        wants_site_visit=site_visit,
        site_visit_date=draft.visit_date if site_visit else None,
        site_visit_time=draft.visit_time if site_visit else None,
        wants_pickup_drop=pickup_drop,
        pickup_location=draft.pickup_location if pickup_drop else None,
        drop_location=drop_location,
        wants_meal=meal,
        meal_preference=draft.meal_preference if meal else None,
        ip_address=tracking.ip_address,
        location={
            "city": tracking.location.city,
            "state": tracking.location.state,
            "country": tracking.location.country,
        },
        user_agent=tracking.user_agent,
        device_type=tracking.device_class,
        utm_source=utm.get("utm_source") or None,
        utm_medium=utm.get("utm_medium") or None,
        utm_campaign=utm.get("utm_campaign") or None,
        utm_term=utm.get("utm_term") or None,
        utm_content=utm.get("utm_content") or None,
        status=LeadStatus.NEW,
        priority=LeadPriority.HIGH if site_visit else LeadPriority.MEDIUM,
    )
