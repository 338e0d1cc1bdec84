# apps/intake/tasks.py

import logging

from asgiref.sync import async_to_sync
from celery import shared_task

from apps.common.exceptions import LeadIntakeError

logger = logging.getLogger(__name__)


class ContactRegistrationFailed(LeadIntakeError):
    pass


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=30,
    autoretry_for=(ContactRegistrationFailed,),
    retry_backoff=True,
)
def publish_submitted_contact(self, mobile: str, email: str, submitted_at: str) -> dict:
    """
    Register a submitted contact with the backend so duplicate checks from
    other devices and sessions can see it.

    Args:
        mobile: Normalized mobile number
        email: Normalized email address
        submitted_at: ISO timestamp of the confirmed submission
    """
    from .services import build_backend_client

    client = build_backend_client()
    response = async_to_sync(client.register_contact)(mobile, email, submitted_at)

    if not response.success:
        logger.warning(f"Contact registration failed (attempt {self.request.retries + 1}): {response.error}")
        raise ContactRegistrationFailed(response.error or "Registration failed")

    logger.info("Registered submitted contact")
    return {"registered": True, "status_code": response.status_code}
