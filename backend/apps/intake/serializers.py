# apps/intake/serializers.py

import re
from datetime import date, timedelta

from django.core.validators import RegexValidator
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import serializers

from apps.common.enums import MealPreference
from apps.common.exceptions import ValidationFailed
from .dedupe import normalize_mobile
from .schema import LeadDraft, SITE_VISIT_TIME_SLOTS


INDIAN_MOBILE_REGEX = re.compile(r"^[6-9]\d{9}$")
NAME_REGEX = r"^[a-zA-Z\s'.,-]+$"

SITE_VISIT_MIN_DAYS = 1
SITE_VISIT_MAX_DAYS = 30
MIN_ADDRESS_LENGTH = 5


class LeadDraftSerializer(serializers.Serializer):
    """
    Validates a lead draft before submission.

    Conditional fields are plain strings here and only checked in
    ``validate()`` when their owning flag is on, so stale values behind a
    disabled flag never fail validation.
    """

    name = serializers.CharField(
        min_length=2,
        max_length=50,
        validators=[RegexValidator(NAME_REGEX, "Please enter a valid name")],
        error_messages={
            "required": "Name is required",
            "blank": "Name is required",
            "min_length": "Name must be at least 2 characters",
            "max_length": "Name must be less than 50 characters",
        },
    )
    mobile = serializers.CharField(
        error_messages={
            "required": "Mobile number is required",
            "blank": "Mobile number is required",
        },
    )
    email = serializers.EmailField(
        error_messages={
            "required": "Email is required",
            "blank": "Email is required",
            "invalid": "Please enter a valid email address",
        },
    )
    message = serializers.CharField(
        max_length=500,
        required=False,
        allow_blank=True,
        allow_null=True,
        error_messages={"max_length": "Message must be less than 500 characters"},
    )

    wants_site_visit = serializers.BooleanField(default=False)
    visit_date = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    visit_time = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    wants_pickup_drop = serializers.BooleanField(default=False)
    pickup_location = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    drop_location = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    same_as_pickup = serializers.BooleanField(default=False)

    wants_meal = serializers.BooleanField(default=False)
    meal_preference = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    source = serializers.CharField(required=False, allow_blank=True)

    def validate_mobile(self, value):
        if not INDIAN_MOBILE_REGEX.match(normalize_mobile(value)):
            raise serializers.ValidationError("Please enter a valid 10-digit mobile number")
        return value

    def _today(self) -> date:
        return self.context.get("today") or timezone.localdate()

    def validate(self, attrs):
        errors = {}

        if attrs.get("wants_site_visit"):
            date_error = self._check_visit_date(attrs.get("visit_date"))
            if date_error:
                errors["visit_date"] = date_error

            if not attrs.get("visit_time"):
                errors["visit_time"] = "Please select a time slot"
            elif attrs["visit_time"] not in SITE_VISIT_TIME_SLOTS:
                errors["visit_time"] = "Invalid time slot"

            if attrs.get("wants_pickup_drop"):
                pickup = (attrs.get("pickup_location") or "").strip()
                if not pickup:
                    errors["pickup_location"] = "Please enter pickup location"
                elif len(pickup) < MIN_ADDRESS_LENGTH:
                    errors["pickup_location"] = "Please enter a valid address"

            if attrs.get("wants_meal"):
                meal = attrs.get("meal_preference")
                if not meal:
                    errors["meal_preference"] = "Please select meal preference"
                elif meal not in MealPreference.values:
                    errors["meal_preference"] = "Invalid meal preference"

        if errors:
            raise serializers.ValidationError(errors)
        return attrs

    def _check_visit_date(self, value: str | None) -> str | None:
        if not value:
            return "Please select a site visit date"

        try:
            visit_date = parse_date(value)
        except ValueError:
            visit_date = None
        if visit_date is None:
            return "Please enter a valid date"

        today = self._today()
        if visit_date <= today:
            return "Date must be in the future"

        earliest = today + timedelta(days=SITE_VISIT_MIN_DAYS)
        latest = today + timedelta(days=SITE_VISIT_MAX_DAYS)
        if not earliest <= visit_date <= latest:
            return f"Date must be within {SITE_VISIT_MAX_DAYS} days"
        return None


def validate_draft(draft: LeadDraft, today: date | None = None) -> dict[str, str]:
    """Validate a draft. Returns field -> first error message (empty if valid)."""
    context = {"today": today} if today else {}
    serializer = LeadDraftSerializer(data=draft.to_dict(), context=context)
    if serializer.is_valid():
        return {}

    errors = {}
    for field_name, messages in serializer.errors.items():
        if isinstance(messages, (list, tuple)):
            errors[field_name] = str(messages[0]) if messages else ""
        else:
            errors[field_name] = str(messages)
    return errors


def coerce_field(name: str, value):
    """
    Convert a raw form value to the draft's type for ``name``.
    Flags accept the same spellings as validation ("false", "no", 0...).
    Raises ValidationFailed when the value cannot be converted.
    """
    field = LeadDraftSerializer().fields[name]
    if value is None:
        return None if field.allow_null else LeadDraft.__dataclass_fields__[name].default

    try:
        return field.to_internal_value(value)
    except serializers.ValidationError as e:
        detail = e.detail[0] if isinstance(e.detail, list) and e.detail else e.detail
        raise ValidationFailed({name: str(detail)})
