# apps/intake/schema.py

from dataclasses import dataclass, asdict, fields
from typing import Any, Mapping

from apps.common.enums import FormSource


SITE_VISIT_TIME_SLOTS = [
    "9:00 AM",
    "10:00 AM",
    "11:00 AM",
    "12:00 PM",
    "2:00 PM",
    "3:00 PM",
    "4:00 PM",
    "5:00 PM",
]


@dataclass
class LeadDraft:
    """
    In-progress lead form values.
    Nested visit fields are kept even when their flag is off; the payload
    builder decides what is sent.
    """
    name: str = ""
    email: str = ""
    mobile: str = ""
    message: str = ""

    wants_site_visit: bool = False
    visit_date: str | None = None  # ISO date
    visit_time: str = ""

    wants_pickup_drop: bool = False
    pickup_location: str = ""
    drop_location: str = ""
    same_as_pickup: bool = False

    wants_meal: bool = False
    meal_preference: str = ""

    source: str = FormSource.HERO_FORM

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LeadDraft":
        """Build a draft from known keys only; the rest keep defaults."""
        return cls(**{k: v for k, v in data.items() if k in FIELD_NAMES})


FIELD_NAMES: frozenset[str] = frozenset(f.name for f in fields(LeadDraft))

# Fields the visitor edits; ``source`` is provenance set by the page.
EDITABLE_FIELDS: frozenset[str] = FIELD_NAMES - {"source"}


@dataclass(frozen=True)
class Visibility:
    site_visit: bool
    pickup_drop: bool
    drop_location: bool
    meal: bool


def derive_visibility(draft: LeadDraft) -> Visibility:
    """Which conditional field groups are shown for this draft."""
    site_visit = bool(draft.wants_site_visit)
    pickup_drop = site_visit and bool(draft.wants_pickup_drop)
    return Visibility(
        site_visit=site_visit,
        pickup_drop=pickup_drop,
        drop_location=pickup_drop and not draft.same_as_pickup,
        meal=site_visit and bool(draft.wants_meal),
    )
