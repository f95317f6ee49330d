"""
WebSocket notification payloads.

Every server -> client message carries a ``type`` discriminator. Use
``to_message()`` to get the JSON-ready dict handed to the session registry.
"""
from pydantic import BaseModel
from typing import Literal

from constants import NotificationType


class Notification(BaseModel):
    """Base class for WebSocket notifications"""

    type: str

    def to_message(self) -> dict:
        return self.model_dump(mode="json")


class ConnectionAck(Notification):
    """Sent once, right after the WebSocket is accepted"""
    type: Literal[NotificationType.CONNECTION_ACK] = NotificationType.CONNECTION_ACK
    session_id: str


class StatusNotification(Notification):
    """Sent once per job when it enters the preparing state"""
    type: Literal[NotificationType.STATUS] = NotificationType.STATUS
    message: str


class ProgressNotification(Notification):
    """Download progress, 0-100"""
    type: Literal[NotificationType.PROGRESS] = NotificationType.PROGRESS
    progress: float


class CompletedData(BaseModel):
    downloadUrl: str
    filename: str


class CompletedNotification(Notification):
    """Terminal success notification"""
    type: Literal[NotificationType.COMPLETED] = NotificationType.COMPLETED
    data: CompletedData


class FailedNotification(Notification):
    """Terminal failure notification"""
    type: Literal[NotificationType.FAILED] = NotificationType.FAILED
    message: str
