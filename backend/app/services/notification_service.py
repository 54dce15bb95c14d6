"""Email, SMS, and in-app notifications for bookings and visitor passes."""

from __future__ import annotations

import logging
import smtplib
import uuid
from email.message import EmailMessage
from typing import Iterable

from fastapi import BackgroundTasks

from app.core.config import get_settings
from app.models.amenity import AmenityBooking
from app.models.visitor_pass import VisitorPass
from app.security.redact import mask_phone
from app.services.visitor_pass_lifecycle import CheckInSuccess

logger = logging.getLogger(__name__)


def schedule_email(
    background_tasks: BackgroundTasks,
    *,
    recipients: Iterable[str],
    subject: str,
    body: str,
) -> None:
    """Queue an email to be delivered asynchronously."""
    recipients_list = [addr for addr in recipients if addr]
    if not recipients_list:
        logger.debug("No recipients provided for email; skipping")
        return
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_port:
        logger.debug("SMTP disabled; skipping email to %s", recipients_list)
        return
    background_tasks.add_task(_send_email, recipients_list, subject, body)


def schedule_sms(
    background_tasks: BackgroundTasks,
    *,
    phone_numbers: Iterable[str],
    message: str,
) -> None:
    """Queue an SMS notification (stub implementation)."""
    numbers = [number for number in phone_numbers if number]
    if not numbers:
        logger.debug("No phone numbers provided for SMS; skipping")
        return
    for number in numbers:
        background_tasks.add_task(_log_sms_stub, number, message)


def schedule_resident_notice(
    background_tasks: BackgroundTasks,
    *,
    resident_user_id: uuid.UUID,
    subject: str,
    body: str,
    email: str | None = None,
) -> None:
    """Hand a resident-facing message to the in-app channel, and email when known."""
    background_tasks.add_task(_log_push_stub, resident_user_id, subject, body)
    if email:
        schedule_email(background_tasks, recipients=[email], subject=subject, body=body)


def build_booking_confirmation(
    *, amenity_name: str, booking_date: str, start_time: str, end_time: str
) -> tuple[str, str]:
    subject = f"{amenity_name} booking confirmed"
    body = (
        f"Hello,\n\nYour booking for {amenity_name} on {booking_date} "
        f"from {start_time} to {end_time} is confirmed.\n\n"
        "If your plans change, please cancel so your neighbours can use the slot."
    )
    return subject, body


def build_booking_cancellation(
    *, amenity_name: str, booking_date: str, reason: str | None
) -> tuple[str, str]:
    subject = f"{amenity_name} booking cancelled"
    lines = [
        "Hello,",
        "",
        f"Your booking for {amenity_name} on {booking_date} has been cancelled.",
    ]
    if reason:
        lines.append(f"Reason: {reason}")
    return subject, "\n".join(lines)


def build_visitor_arrival(
    *, visitor_name: str, unit_number: str, compound_name: str, entry_time: str
) -> tuple[str, str]:
    subject = f"{visitor_name} has arrived"
    body = (
        f"Hi there,\n\n{visitor_name} checked in at the {compound_name} gate "
        f"for unit {unit_number} at {entry_time}.\n"
    )
    return subject, body


def build_pass_closed(*, visitor_name: str, status: str) -> tuple[str, str]:
    subject = f"Visitor pass for {visitor_name} {status}"
    body = (
        f"Hello,\n\nThe visitor pass you issued for {visitor_name} is now {status} "
        "and can no longer be used at the gate.\n"
    )
    return subject, body


def build_visitor_invitation_sms(
    *, visitor_name: str, compound_name: str, unit_number: str, arrival: str
) -> str:
    return (
        f"Hi {visitor_name}, you are expected at {compound_name} (unit {unit_number}) "
        f"on {arrival}. Show your pass QR code at the gate."
    )


def notify_booking_confirmed(
    booking: AmenityBooking,
    background_tasks: BackgroundTasks,
    *,
    email: str | None = None,
) -> None:
    subject, body = build_booking_confirmation(
        amenity_name=getattr(booking.amenity, "name", "Amenity"),
        booking_date=booking.booking_date.isoformat(),
        start_time=booking.start_time.strftime("%H:%M"),
        end_time=booking.end_time.strftime("%H:%M"),
    )
    schedule_resident_notice(
        background_tasks,
        resident_user_id=booking.resident_user_id,
        subject=subject,
        body=body,
        email=email,
    )


def notify_booking_cancelled(
    booking: AmenityBooking, background_tasks: BackgroundTasks
) -> None:
    subject, body = build_booking_cancellation(
        amenity_name=getattr(booking.amenity, "name", "Amenity"),
        booking_date=booking.booking_date.isoformat(),
        reason=booking.cancellation_reason,
    )
    schedule_resident_notice(
        background_tasks,
        resident_user_id=booking.resident_user_id,
        subject=subject,
        body=body,
    )


def notify_pass_issued(pass_: VisitorPass, background_tasks: BackgroundTasks) -> None:
    unit = pass_.unit
    schedule_sms(
        background_tasks,
        phone_numbers=[pass_.visitor_phone],
        message=build_visitor_invitation_sms(
            visitor_name=pass_.visitor_name,
            compound_name=unit.compound.name,
            unit_number=unit.unit_number,
            arrival=pass_.expected_arrival.strftime("%Y-%m-%d %H:%M"),
        ),
    )


def notify_visitor_checked_in(
    outcome: CheckInSuccess, background_tasks: BackgroundTasks
) -> None:
    subject, body = build_visitor_arrival(
        visitor_name=outcome.visitor_name,
        unit_number=outcome.unit_number,
        compound_name=outcome.compound_name,
        entry_time=outcome.entry_time.strftime("%H:%M"),
    )
    schedule_resident_notice(
        background_tasks,
        resident_user_id=outcome.resident_user_id,
        subject=subject,
        body=body,
    )


def notify_pass_closed(pass_: VisitorPass, background_tasks: BackgroundTasks) -> None:
    """Tell the issuing resident a pass was cancelled or expired."""
    subject, body = build_pass_closed(
        visitor_name=pass_.visitor_name, status=pass_.status.value
    )
    schedule_resident_notice(
        background_tasks,
        resident_user_id=pass_.resident_user_id,
        subject=subject,
        body=body,
    )


def _send_email(recipients: list[str], subject: str, body: str) -> None:
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_port:
        logger.info("SMTP settings missing; skipping email delivery to %s", recipients)
        return

    message = EmailMessage()
    message["Subject"] = subject
    message["To"] = ", ".join(recipients)
    message["From"] = settings.smtp_from or settings.smtp_username or "no-reply@compound.local"
    message.set_content(body)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as smtp:
            if settings.smtp_username and settings.smtp_password:
                smtp.starttls()
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)
        logger.info("Email sent to %s", recipients)
    except Exception as exc:  # pragma: no cover - logging side-effect only
        logger.exception("Failed to send email to %s: %s", recipients, exc)


def _log_sms_stub(phone_number: str, message: str) -> None:
    settings = get_settings()
    if settings.dev_sms_echo:
        logger.info("SMS to %s: %s", phone_number, message)
    else:
        logger.info("SMS queued for %s", mask_phone(phone_number))


def _log_push_stub(resident_user_id: uuid.UUID, subject: str, body: str) -> None:
    logger.info("In-app notice for user %s: %s", resident_user_id, subject)
    logger.debug("Notice body for user %s: %s", resident_user_id, body)
