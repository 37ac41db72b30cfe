"""
Outbound mail

Mailer talks SMTP over SSL. Notifier is the fire-and-forget side channel
used by the transactional routes: delivery runs after the response has
been sent and a failure is recorded in the notification_failure
collection instead of being surfaced to the client.
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import Iterable, Union

from fastapi import Request

from database import utcnow

logger = logging.getLogger(__name__)

DEAD_LETTER_COLLECTION = "notification_failure"


def _recipients(to: Union[str, Iterable[str]]):
    if isinstance(to, str):
        return [to]
    return [t for t in to if t]


class Mailer:
    def __init__(self, host, port, user=None, password=None, sender=None, timeout=10):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout = timeout

    def _connect(self):
        server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        if self.user and self.password:
            server.login(self.user, self.password)
        return server

    def verify(self) -> bool:
        try:
            with self._connect() as server:
                server.noop()
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP connection error: %s", exc)
            return False
        logger.info("SMTP server is ready to take our messages")
        return True

    def send(self, to, subject: str, html: str):
        recipients = _recipients(to)
        logger.info('Attempting to send mail to %s with subject "%s"', recipients, subject)
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")
        with self._connect() as server:
            server.send_message(msg)
        logger.info('Successfully sent mail to %s with subject "%s"', recipients, subject)


class Notifier:
    def __init__(self, mailer, db=None):
        self.mailer = mailer
        self.db = db

    def dispatch(self, background_tasks, to, subject: str, html: str):
        background_tasks.add_task(self.deliver, _recipients(to), subject, html)

    def deliver(self, to, subject: str, html: str) -> bool:
        try:
            self.mailer.send(to, subject, html)
        except Exception as exc:
            logger.error('Failed to send mail to %s with subject "%s": %s', to, subject, exc)
            self._record_failure(to, subject, exc)
            return False
        return True

    def _record_failure(self, to, subject, exc):
        if self.db is None:
            return
        try:
            self.db[DEAD_LETTER_COLLECTION].insert_one(
                {"to": list(to), "subject": subject, "error": str(exc), "createdAt": utcnow()}
            )
        except Exception:
            logger.exception("Could not record failed notification")


def get_notifier(request: Request):
    return request.app.state.notifier
