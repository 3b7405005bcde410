"""
Delivery of the events an operation returns.

Services never talk to the outside world. They put ``Notification`` and
``Broadcast`` objects on their result; the caller hands the result to
:func:`dispatch` once the transaction has committed. Delivery is best effort:
a failing emitter is logged and never undoes the committed state change.
"""
import logging
from abc import ABC, abstractmethod

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class NotificationEmitter(ABC):

    @abstractmethod
    def emit(self, notification):
        pass


class BroadcastPublisher(ABC):

    @abstractmethod
    def publish(self, channel, event_type, payload):
        pass


class EmailNotificationEmitter(NotificationEmitter):
    """Sends each notification as a plain-text e-mail to its target user."""

    def emit(self, notification):
        user = get_user_model().objects.filter(pk=notification.target_user_id).first()
        if user is None or not user.email:
            logger.warning(f"No e-mail address for user {notification.target_user_id}, dropping '{notification.kind}'")
            return

        link = f"\n    {settings.FRONTEND_DOMAIN}{notification.link}\n" if notification.link else ""
        message = f"""
    Hello {user.get_full_name() or user.email},

    {notification.message}
    {link}
    — The {settings.SITE_NAME} Team
    """
        send_mail(
            subject=notification.title,
            message=message.strip(),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
            fail_silently=False,
        )


class LoggingBroadcastPublisher(BroadcastPublisher):
    """Publisher used when no realtime service is configured."""

    def publish(self, channel, event_type, payload):
        logger.info(f"Broadcast {event_type} on {channel}: {payload}")


def get_notification_emitter():
    return import_string(settings.NOTIFICATION_EMITTER)()


def get_broadcast_publisher():
    return import_string(settings.REALTIME_PUBLISHER)()


def dispatch(result, emitter=None, publisher=None):
    """
    Deliver the notifications and broadcasts carried by ``result``.

    Returns the number of deliveries that failed.
    """
    if not result.notifications and not result.broadcasts:
        return 0

    emitter = emitter or get_notification_emitter()
    publisher = publisher or get_broadcast_publisher()
    failures = 0

    for notification in result.notifications:
        try:
            emitter.emit(notification)
        except Exception:
            failures += 1
            logger.exception(f"Failed to deliver '{notification.kind}' to user {notification.target_user_id}")

    for broadcast in result.broadcasts:
        try:
            publisher.publish(broadcast.channel, broadcast.event_type, broadcast.payload)
        except Exception:
            failures += 1
            logger.exception(f"Failed to publish {broadcast.event_type} on {broadcast.channel}")

    return failures
