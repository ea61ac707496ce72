from __future__ import annotations

import logging
from typing import NamedTuple

import requests
from django.conf import settings as django_settings
from django.core.mail import send_mail
from django.template.loader import render_to_string

from site_attendance.models import (
    AttendanceEvent,
    AttendanceNotification,
    AttendanceSettings,
    SitePhotoAttendance,
)

logger = logging.getLogger(__name__)


class DeliveryResult(NamedTuple):
    delivered: bool
    error: str = ""


def _notification_config() -> dict:
    return getattr(django_settings, "ATTENDANCE_NOTIFICATIONS", {})


def _spa_link(event: AttendanceEvent) -> str:
    template = _notification_config().get("SPA_DEEP_LINK", "/attendance/spa/new?siteId={site_id}")
    return template.format(site_id=event.site_id)


class WebhookChannel:
    notification_type = ""
    url_setting = ""

    def __init__(self, timeout: int | None = None):
        config = _notification_config()
        self.url = config.get(self.url_setting, "")
        self.token = config.get("WEBHOOK_TOKEN", "")
        self.timeout = timeout or config.get("TIMEOUT", 10)

    def payload(self, event: AttendanceEvent, settings: AttendanceSettings) -> dict | None:
        raise NotImplementedError

    def send(self, event: AttendanceEvent, settings: AttendanceSettings) -> DeliveryResult:
        if not self.url:
            return DeliveryResult(False, f"{self.notification_type} provider not configured")

        payload = self.payload(event, settings)
        if payload is None:
            return DeliveryResult(False, f"No {self.notification_type.lower()} contact configured for employee")

        headers = {"X-ATTENDANCE-TOKEN": self.token} if self.token else {}
        response = requests.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        return DeliveryResult(True)


class PushChannel(WebhookChannel):
    notification_type = AttendanceNotification.TYPE_PUSH
    url_setting = "PUSH_WEBHOOK_URL"

    def payload(self, event, settings):
        return {
            "employee_id": event.employee_id,
            "title": settings.notification_title,
            "message": settings.notification_message,
            "deep_link": _spa_link(event),
        }


class SmsChannel(WebhookChannel):
    notification_type = AttendanceNotification.TYPE_SMS
    url_setting = "SMS_WEBHOOK_URL"

    def payload(self, event, settings):
        if not event.employee.phone:
            return None
        return {"to": event.employee.phone, "message": settings.notification_message}


class EmailChannel:
    notification_type = AttendanceNotification.TYPE_EMAIL

    def send(self, event: AttendanceEvent, settings: AttendanceSettings) -> DeliveryResult:
        employee = event.employee
        if not employee.email:
            return DeliveryResult(False, "No email address configured for employee")

        context = {
            "employee_name": employee.full_name or "Team Member",
            "site_name": event.site.site_name or "Site",
            "arrived_at": event.timestamp,
            "grace_minutes": settings.spa_grace_period_minutes,
            "message": settings.notification_message,
            "link": _spa_link(event),
        }
        sent = send_mail(
            settings.notification_title,
            render_to_string("site_attendance/spa_reminder_email.txt", context),
            django_settings.DEFAULT_FROM_EMAIL,
            [employee.email],
            html_message=render_to_string("site_attendance/spa_reminder_email.html", context),
        )
        if not sent:
            return DeliveryResult(False, "Email backend did not accept the message")
        return DeliveryResult(True)


def _enabled_channels(settings: AttendanceSettings) -> list:
    channels = []
    if settings.enable_push_notifications:
        channels.append(PushChannel())
    if settings.enable_email_notifications:
        channels.append(EmailChannel())
    if settings.enable_sms_notifications:
        channels.append(SmsChannel())
    return channels


def _dispatch(channel, notification: AttendanceNotification, event: AttendanceEvent, settings) -> None:
    try:
        result = channel.send(event, settings)
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Failed to send missing SPA notification",
            extra={"channel": channel.notification_type, "employee_id": event.employee_id},
        )
        notification.mark_failed(str(exc))
        return

    if result.delivered:
        notification.mark_delivered()
    else:
        logger.warning(
            "Missing SPA notification not delivered: %s",
            result.error,
            extra={"channel": channel.notification_type, "employee_id": event.employee_id},
        )
        notification.mark_failed(result.error)


def check_and_notify_missing_spa(event: AttendanceEvent) -> list[AttendanceNotification]:
    """Remind the employee to submit a compliance photo after an Enter event.

    One notification row is recorded per channel and every channel is
    attempted regardless of how the others fared.
    """
    if event.event_type != AttendanceEvent.TYPE_ENTER:
        return []

    settings = AttendanceSettings.objects.filter(tenant_id=event.tenant_id).first()
    if settings is None:
        return []

    if SitePhotoAttendance.exists_for(event.tenant, event.employee_id, event.site_id, event.event_date):
        return []

    notifications = []
    push_notification = AttendanceNotification.objects.create(
        tenant_id=event.tenant_id,
        employee_id=event.employee_id,
        notification_type=AttendanceNotification.TYPE_PUSH,
        reason=AttendanceNotification.REASON_MISSING_SPA,
        message=settings.notification_message,
        related_event=event,
    )
    notifications.append(push_notification)
    if not settings.enable_push_notifications:
        push_notification.mark_failed("Push notifications disabled")

    for channel in _enabled_channels(settings):
        if channel.notification_type == AttendanceNotification.TYPE_PUSH:
            notification = push_notification
        else:
            notification = AttendanceNotification.objects.create(
                tenant_id=event.tenant_id,
                employee_id=event.employee_id,
                notification_type=channel.notification_type,
                reason=AttendanceNotification.REASON_MISSING_SPA,
                message=settings.notification_message,
                related_event=event,
            )
            notifications.append(notification)
        _dispatch(channel, notification, event, settings)

    return notifications
