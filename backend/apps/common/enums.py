# apps/common/enums.py

from django.db import models


class FormSource(models.TextChoices):
    """UI surfaces a lead form can be opened from."""
    HERO_FORM = "hero_form", "Hero Form"
    POPUP_FORM = "popup_form", "Popup Form"
    CTA_FORM = "cta_form", "CTA Form"


class FormStatus(models.TextChoices):
    """Lifecycle states of a lead form instance."""
    IDLE = "idle", "Idle"
    VALIDATING = "validating", "Validating"
    SUBMITTING = "submitting", "Submitting"
    SUCCEEDED = "succeeded", "Succeeded"


class ErrorKind(models.TextChoices):
    """Classification of a failed submission attempt."""
    VALIDATION = "validation", "Validation"
    DUPLICATE = "duplicate", "Duplicate"
    SUBMISSION = "submission", "Submission"


class LeadStatus(models.TextChoices):
    NEW = "new", "New"


class LeadPriority(models.TextChoices):
    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"


class DeviceClass(models.TextChoices):
    MOBILE = "mobile", "Mobile"
    TABLET = "tablet", "Tablet"
    DESKTOP = "desktop", "Desktop"
    UNKNOWN = "unknown", "Unknown"


class TelemetryStatus(models.TextChoices):
    """Whether tracking context is still loading, real, or a fallback."""
    PENDING = "pending", "Pending"
    RESOLVED = "resolved", "Resolved"
    FALLBACK = "fallback", "Fallback"


class DuplicateSource(models.TextChoices):
    """Which tier of the duplicate guard produced a result."""
    LOCAL = "local", "Local"
    REMOTE = "remote", "Remote"
    UNAVAILABLE = "unavailable", "Unavailable"


class MealPreference(models.TextChoices):
    BREAKFAST = "breakfast", "Breakfast"
    LUNCH = "lunch", "Lunch"
    COFFEE = "coffee", "Coffee/Snacks"


class PopupTrigger(models.TextChoices):
    """Reasons a secondary capture popup may be requested."""
    BROCHURE = "brochure", "Get Brochure & Price List"
    PRICE = "price", "Get Exclusive Pricing Details"
    SITE_VISIT = "site_visit", "Schedule Your Site Visit"
    EXIT_INTENT = "exit_intent", "Wait! Get Special Offers"
    TIMER = "timer", "Register Your Interest"
    DEFAULT = "default", "Register Your Interest"
