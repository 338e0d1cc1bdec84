# apps/common/exceptions.py


class LeadIntakeError(Exception):
    """Base class for lead intake pipeline errors."""


class ValidationFailed(LeadIntakeError):
    """Draft failed schema validation. Never reaches the network."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__(f"Validation failed for: {', '.join(sorted(errors))}")


class DuplicateSubmission(LeadIntakeError):
    """The visitor already submitted with this mobile or email."""

    def __init__(
        self,
        message: str,
        mobile_exists: bool = False,
        email_exists: bool = False,
        source: str = "",
    ):
        self.message = message
        self.mobile_exists = mobile_exists
        self.email_exists = email_exists
        self.source = source
        super().__init__(message)


class TelemetryFailure(LeadIntakeError):
    """A tracking lookup failed. Always recovered with fallback values."""


class DuplicateCheckUnavailable(LeadIntakeError):
    """The remote duplicate check could not be completed."""


class SubmissionFailed(LeadIntakeError):
    """The backend did not confirm lead creation."""

    retryable = True

    def __init__(self, message: str, status_code: int | None = None, timed_out: bool = False):
        self.status_code = status_code
        self.timed_out = timed_out
        super().__init__(message)


class FormAlreadySubmitted(LeadIntakeError):
    """A form instance was used after a successful submission."""


class UnknownField(LeadIntakeError):
    """A field name outside the draft schema was used."""


class FieldLocked(LeadIntakeError):
    """A field cannot be edited in the current form state."""
