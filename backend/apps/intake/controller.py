# apps/intake/controller.py

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Mapping

from apps.common.enums import ErrorKind, FormSource, FormStatus
from apps.common.exceptions import (
    DuplicateSubmission,
    FieldLocked,
    FormAlreadySubmitted,
    SubmissionFailed,
    UnknownField,
    ValidationFailed,
)
from apps.common.storage import BrowsingSession
from .dedupe import DuplicateGuard, Fingerprint
from .drafts import DraftPersistence
from .http_client import BackendClient
from .payload import build_lead_record, capture_utm_params, get_utm_params
from .schema import EDITABLE_FIELDS, LeadDraft, Visibility, derive_visibility
from .serializers import coerce_field, validate_draft
from .telemetry import TelemetryAcquisition

logger = logging.getLogger(__name__)


FORM_SUBMITTED_KEY = "form_submitted"
SUBMIT_IN_FLIGHT_KEY = "submit_in_flight"

DEFAULT_SUBMIT_ERROR = "Failed to submit form. Please try again."


@dataclass
class SubmitResult:
    """Outcome of one ``submit()`` call."""
    success: bool
    data: Any = None
    error: str | None = None
    error_kind: str | None = None
    field_errors: dict[str, str] = field(default_factory=dict)
    retryable: bool = False
    skipped: bool = False
    duplicate_source: str | None = None
    timed_out: bool = False


class FormStateController:
    """
    Single owner of one lead form instance: values, errors, visibility and
    submission status.

    idle -> validating -> submitting -> succeeded | failed -> idle

    A failed submit returns the form to idle; ``error`` and ``error_kind``
    stay set until the next edit or ``clear_error()``.
    A succeeded form is spent; create a new controller for a new lead.
    While one controller is submitting, others on the same browsing session
    skip their submits until it finishes or the lock expires.
    """

    IN_FLIGHT = (FormStatus.VALIDATING, FormStatus.SUBMITTING)

    def __init__(
        self,
        session: BrowsingSession,
        client: BackendClient,
        guard: DuplicateGuard,
        drafts: DraftPersistence,
        telemetry: TelemetryAcquisition,
        source: str = FormSource.HERO_FORM,
        today: date | None = None,
        submit_lock_seconds: float = 60,
    ):
        self.session = session
        self.client = client
        self.guard = guard
        self.drafts = drafts
        self.telemetry = telemetry
        self.today = today
        self.submit_lock_seconds = submit_lock_seconds

        self.values = LeadDraft(source=source)
        self.errors: dict[str, str] = {}
        self.status: str = FormStatus.IDLE
        self.error: str | None = None
        self.error_kind: str | None = None
        self.submission_data: Any = None
        self.was_submitted = False

    # Lifecycle

    def mount(self, query_params: Mapping[str, Any] | None = None, start_telemetry: bool = True) -> None:
        """Capture UTM params, restore any draft and start telemetry."""
        self.session.init()
        capture_utm_params(self.session, query_params)
        self.was_submitted = bool(self.session.get(FORM_SUBMITTED_KEY, False))

        restored = self.drafts.restore()
        self.values = replace(restored, source=self.values.source)
        self._sync_drop_location()

        if start_telemetry:
            self.telemetry.start()

    def unmount(self) -> None:
        self.telemetry.close()
        if self.status != FormStatus.SUCCEEDED:
            self.drafts.flush()

    # Field bindings

    @property
    def source(self) -> str:
        return self.values.source

    def set_source(self, tag: str) -> None:
        if tag == self.values.source:
            return
        self.values = replace(self.values, source=tag)

    @property
    def visibility(self) -> Visibility:
        return derive_visibility(self.values)

    def get_field(self, name: str) -> Any:
        if name not in EDITABLE_FIELDS:
            raise UnknownField(name)
        return getattr(self.values, name)

    def set_field(self, name: str, value: Any, persist: bool = True) -> None:
        self._ensure_not_spent()
        if name not in EDITABLE_FIELDS:
            raise UnknownField(name)
        if name == "drop_location" and self.values.same_as_pickup:
            raise FieldLocked("drop_location mirrors pickup_location while same_as_pickup is set")

        self.values = replace(self.values, **{name: coerce_field(name, value)})
        if name in ("pickup_location", "same_as_pickup"):
            self._sync_drop_location()

        self.errors.pop(name, None)
        if self.error is not None:
            self.clear_error()

        if persist:
            self.drafts.schedule(self.values)

    def prefill(self, data: Mapping[str, Any]) -> None:
        """
        Set several fields at once; unknown keys are ignored.
        Raises ValidationFailed for values that cannot be converted.
        """
        for name, value in data.items():
            if name not in EDITABLE_FIELDS:
                continue
            if name == "drop_location" and self.values.same_as_pickup:
                continue
            self.set_field(name, value, persist=False)
        self.drafts.schedule(self.values)

    def _sync_drop_location(self) -> None:
        if self.values.same_as_pickup:
            self.values = replace(self.values, drop_location=self.values.pickup_location)

    def clear_error(self) -> None:
        self.error = None
        self.error_kind = None

    def reset(self) -> None:
        """Clear values, errors and the stored draft."""
        self._ensure_not_spent()
        self.values = LeadDraft(source=self.values.source)
        self.errors = {}
        self.drafts.clear()
        self.clear_error()

    def _ensure_not_spent(self) -> None:
        if self.status == FormStatus.SUCCEEDED:
            raise FormAlreadySubmitted("This form has already been submitted")

    # Submission

    async def submit(self) -> SubmitResult:
        if self.status in self.IN_FLIGHT:
            logger.debug("Submit ignored, a submission is already in progress")
            return SubmitResult(success=False, skipped=True)
        self._ensure_not_spent()
        if self.session.get(SUBMIT_IN_FLIGHT_KEY):
            logger.debug("Submit ignored, another form in this session is submitting")
            return SubmitResult(success=False, skipped=True)

        self.status = FormStatus.VALIDATING
        self.error = None
        self.error_kind = None

        try:
            self._validate()
        except ValidationFailed as e:
            self.errors = dict(e.errors)
            return self._fail(ErrorKind.VALIDATION, "Please correct the highlighted fields.",
                              field_errors=e.errors)

        self.errors = {}
        self.status = FormStatus.SUBMITTING
        self.session.set(SUBMIT_IN_FLIGHT_KEY, True, expires_in=self.submit_lock_seconds)
        self.drafts.flush()
        fingerprint = Fingerprint.from_contact(self.values.mobile, self.values.email)

        try:
            await self._check_duplicate(fingerprint)
            data = await self._create_lead()
        except DuplicateSubmission as e:
            return self._fail(ErrorKind.DUPLICATE, e.message, duplicate_source=e.source)
        except SubmissionFailed as e:
            if e.timed_out:
                logger.error(f"Lead submission timed out: {e}")
            else:
                logger.error(f"Lead submission failed: {e}")
            return self._fail(ErrorKind.SUBMISSION, DEFAULT_SUBMIT_ERROR, retryable=True,
                              timed_out=e.timed_out)
        finally:
            self.session.remove(SUBMIT_IN_FLIGHT_KEY)

        self._succeed(fingerprint, data)
        return SubmitResult(success=True, data=data)

    def _validate(self) -> None:
        errors = validate_draft(self.values, today=self.today)
        if errors:
            raise ValidationFailed(errors)

    async def _check_duplicate(self, fingerprint: Fingerprint) -> None:
        result = await self.guard.check(fingerprint)
        if result.exists:
            raise DuplicateSubmission(
                result.message,
                mobile_exists=result.mobile_exists,
                email_exists=result.email_exists,
                source=result.source,
            )

    async def _create_lead(self) -> Any:
        # Whatever telemetry is known right now; never awaited
        record = build_lead_record(
            self.values,
            self.telemetry.current,
            utm=get_utm_params(self.session),
        )
        response = await self.client.create_lead(record.to_payload())
        if not response.success:
            raise SubmissionFailed(
                response.error or DEFAULT_SUBMIT_ERROR,
                response.status_code,
                timed_out=response.timed_out,
            )
        return response.data

    def _succeed(self, fingerprint: Fingerprint, data: Any) -> None:
        self.status = FormStatus.SUCCEEDED
        self.submission_data = data
        self.errors = {}

        self.drafts.clear()
        self.session.set(FORM_SUBMITTED_KEY, True)
        self.was_submitted = True
        self.values = LeadDraft(source=self.values.source)

        self.guard.record(fingerprint)
        logger.info(f"Lead submitted from {self.values.source}")

    def _fail(self, kind: str, message: str, **extra) -> SubmitResult:
        self.status = FormStatus.IDLE
        self.error = message
        self.error_kind = kind
        logger.info(f"Submission failed ({kind}): {message}")
        return SubmitResult(success=False, error=message, error_kind=kind, **extra)
