"""Notification intents and their asynchronous delivery."""

from .dispatcher import NotificationDispatcher, NotificationIntentEmitter, NotificationSender
from .models import NotificationEvent, NotificationIntent
from .senders import LoggingNotificationSender, NotificationDeliveryError, WebhookNotificationSender

__all__ = [
    "LoggingNotificationSender",
    "NotificationDeliveryError",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationIntent",
    "NotificationIntentEmitter",
    "NotificationSender",
    "WebhookNotificationSender",
]
