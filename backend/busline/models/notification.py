"""
Notification models.

A recipient is either an email address or a phone number; the variant
carries its own channel discriminant.
"""

from datetime import datetime
from typing import Annotated, Literal, Union
from pydantic import BaseModel, Field, ConfigDict

from .enums import NotificationCategory, NotificationChannel


class EmailRecipient(BaseModel):
    model_config = ConfigDict(frozen=True)

    channel: Literal["email"] = NotificationChannel.EMAIL.value
    address: str = Field(..., min_length=3, description="Email address")

    @property
    def target(self) -> str:
        return self.address


class PhoneRecipient(BaseModel):
    model_config = ConfigDict(frozen=True)

    channel: Literal["sms"] = NotificationChannel.SMS.value
    number: str = Field(..., min_length=3, description="Phone number")

    @property
    def target(self) -> str:
        return self.number


Recipient = Annotated[Union[EmailRecipient, PhoneRecipient], Field(discriminator="channel")]


class NotificationModel(BaseModel):
    """Notification about one ticket sent to one recipient."""
    model_config = ConfigDict(from_attributes=True)

    recipient: Recipient
    category: NotificationCategory
    ticket_id: int = Field(..., description="Ticket the notification is about")
    created_at: datetime = Field(default_factory=datetime.now)

    def to_line(self) -> str:
        """Render as '<recipient>, <channel> - <category> - <ticket>'."""
        return (
            f"{self.recipient.target}, {self.recipient.channel} - "
            f"{self.category.value} - {self.ticket_id}"
        )
