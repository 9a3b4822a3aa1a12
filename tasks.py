import logging

from kombu.exceptions import OperationalError

import mailer
from celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.send_email")
def send_email(to_email: str, subject: str, text: str, html: str | None = None) -> bool:
    return mailer.send_email(to_email, subject, text, html)


def queue_email(to_email: str, subject: str, text: str, html: str | None = None) -> None:
    try:
        send_email.delay(to_email, subject, text, html)
    except OperationalError as exc:
        # Broker down: the caller's request still succeeds, the email is lost
        logger.error(f"Could not queue email '{subject}' for {to_email}: {exc}")
