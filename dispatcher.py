# dispatcher.py
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

import config
from database import Notification
from exceptions import MailError, NotificationStoreError, PushError
from live import NotificationHub, topic_for
from money import Money, format_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    id: int
    email: Optional[str]


@dataclass(frozen=True)
class DispatchResult:
    notified: bool
    emailed: bool


def alert_message(category: str, spent: Money, limit: Money, exceeded: bool) -> Tuple[str, str]:
    """Title and body of the in-app notification for a budget alert."""
    amounts = f"spent {format_money(spent)} / {format_money(limit)}"
    if exceeded:
        return (
            f"Budget exceeded: {category}",
            f"You exceeded the budget for {category}: {amounts}",
        )
    return (
        f"Budget nearing limit: {category}",
        f"You're nearing your budget for {category}: {amounts}",
    )


def budget_alert_email(category: str, spent: Money, limit: Money, exceeded: bool) -> Tuple[str, str]:
    amounts = f"Spent: {format_money(spent)} / Limit: {format_money(limit)}"
    if exceeded:
        subject = f"Budget Exceeded: {category}"
        body = (
            f"Hi!\n\nYou have exceeded your budget for {category}.\n"
            f"{amounts}\n\n"
            "Please review your expenses to get back on track.\n"
        )
    else:
        subject = f"Budget Nearing Limit: {category}"
        body = (
            f"Hi!\n\nYou're nearing your budget for {category}.\n"
            f"{amounts}\n\n"
            "Keep an eye on your expenses to avoid overspending.\n"
        )
    return subject, body


def notification_payload(notification: Notification, user_email: Optional[str]) -> dict:
    created_at = notification.created_at
    return {
        "id": notification.id,
        "title": notification.title,
        "body": notification.body,
        "createdAt": created_at.isoformat() if created_at is not None else None,
        "userEmail": user_email,
    }


class NotificationService:
    def __init__(self, session_factory: Callable[[], Session], hub: NotificationHub):
        self.session_factory = session_factory
        self.hub = hub

    def create_notification(
        self,
        user_id: int,
        user_email: Optional[str],
        title: str,
        body: str,
        category: Optional[str] = None,
    ) -> Notification:
        """Persist a notification, then push it to the user's live topic.

        The push is best effort: a failure there is logged and the saved
        notification is still returned.
        """
        try:
            with self.session_factory() as db:
                notification = Notification(user_id=user_id, title=title, body=body)
                db.add(notification)
                db.commit()
                db.refresh(notification)
                db.expunge(notification)
        except Exception as e:
            raise NotificationStoreError(user_id, category, str(e)) from e

        try:
            self.push(user_id, notification_payload(notification, user_email), category)
        except Exception as e:
            logger.error("Failed to push notification %s: %s", notification.id, e)
        return notification

    def push(self, user_id: int, payload: dict, category: Optional[str] = None) -> int:
        topic = topic_for(user_id)
        try:
            delivered = self.hub.publish(topic, payload)
        except Exception as e:
            raise PushError(user_id, category, str(e)) from e
        logger.info("Sent live notification to %s (%d subscriber(s))", topic, delivered)
        return delivered


class EmailService:
    def __init__(
        self,
        host: str = config.MAIL_HOST,
        port: int = config.MAIL_PORT,
        sender: str = config.MAIL_SENDER,
        username: Optional[str] = config.MAIL_USERNAME,
        password: Optional[str] = config.MAIL_PASSWORD,
        use_tls: bool = config.MAIL_USE_TLS,
        timeout: float = config.MAIL_TIMEOUT_SECONDS,
        smtp_factory=smtplib.SMTP,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.smtp_factory = smtp_factory

    def send_mail(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with self.smtp_factory(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)
        logger.info("Email sent to %s: %s", to, subject)


class AlertDispatcher:
    """Fans one budget alert out to the notification and email channels.

    Each channel is attempted independently and failures never reach the
    caller.
    """

    def __init__(self, notifications: NotificationService, mailer: EmailService):
        self.notifications = notifications
        self.mailer = mailer

    def dispatch(
        self, user: Recipient, category: str, spent: Money, limit: Money, exceeded: bool
    ) -> DispatchResult:
        notified = self._notify(user, category, spent, limit, exceeded)
        emailed = self._email(user, category, spent, limit, exceeded)
        return DispatchResult(notified=notified, emailed=emailed)

    def _notify(self, user, category, spent, limit, exceeded) -> bool:
        title, body = alert_message(category, spent, limit, exceeded)
        try:
            self.notifications.create_notification(user.id, user.email, title, body, category)
        except Exception as e:
            logger.error(
                "Notification channel failed for user=%s category=%s: %s", user.id, category, e
            )
            return False
        return True

    def _email(self, user, category, spent, limit, exceeded) -> bool:
        if not user.email:
            logger.warning("User %s has no email address, skipping budget alert email", user.id)
            return False
        subject, body = budget_alert_email(category, spent, limit, exceeded)
        try:
            self.mailer.send_mail(user.email, subject, body)
        except Exception as e:
            error = MailError(user.id, category, str(e))
            logger.error("%s", error)
            return False
        return True
