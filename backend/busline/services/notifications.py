"""
Booking and cancellation notifications.

FileNotificationDispatcher appends one line per recipient to email.txt or
sms.txt in the data directory, in the form
'<recipient>, <channel> - <category> - <ticket>'.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List

from ..exceptions import PersistenceError
from ..models.booking import UserIdentity
from ..models.enums import NotificationCategory, NotificationChannel
from ..models.notification import EmailRecipient, NotificationModel, PhoneRecipient

logger = logging.getLogger(__name__)


def recipients_for(user: UserIdentity) -> List:
    """Every recipient the user can be reached at."""
    recipients = []
    if user.email:
        recipients.append(EmailRecipient(address=user.email))
    if user.phone:
        recipients.append(PhoneRecipient(number=user.phone))
    return recipients


class NotificationDispatcher:
    """Sends notifications about tickets."""

    def notify(self, user: UserIdentity, ticket_id: int, category: NotificationCategory) -> List[NotificationModel]:
        raise NotImplementedError


class FileNotificationDispatcher(NotificationDispatcher):
    """Appends notification lines to per-channel outbox files."""

    OUTBOX_FILES: Dict[str, str] = {
        NotificationChannel.EMAIL.value: "email.txt",
        NotificationChannel.SMS.value: "sms.txt",
    }

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def outbox(self, channel: str) -> Path:
        return self.data_dir / self.OUTBOX_FILES[channel]

    def notify(self, user: UserIdentity, ticket_id: int, category: NotificationCategory) -> List[NotificationModel]:
        """
        Write one notification per recipient of user.

        Raises:
            PersistenceError: If an outbox file cannot be appended to
        """
        sent = []
        for recipient in recipients_for(user):
            notification = NotificationModel(recipient=recipient, category=category, ticket_id=ticket_id)
            path = self.outbox(recipient.channel)
            try:
                self.data_dir.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as handle:
                    handle.write(notification.to_line() + "\n")
                    handle.flush()
                    os.fsync(handle.fileno())
            except OSError as e:
                raise PersistenceError(f"Could not append to {path}: {e}") from e
            sent.append(notification)

        if not sent:
            logger.warning(f"User {user.username} has no contact details; ticket {ticket_id} not notified")
        else:
            logger.info(f"{category.value} for ticket {ticket_id} sent to {len(sent)} recipient(s)")
        return sent
