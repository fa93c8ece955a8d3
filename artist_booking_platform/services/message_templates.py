"""
Localized booking status messages.

Statuses without a template (``declined``) produce no message, and callers skip
notification for them.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from ..models.booking import Booking, BookingStatus

DEFAULT_LOCALE = "ko"

BOOKING_SYSTEM_MESSAGES: Dict[str, Dict[BookingStatus, str]] = {
    "ko": {
        BookingStatus.PENDING: "예약이 생성되었습니다. 예약 번호: {booking_number}, 일정: {scheduled_date}",
        BookingStatus.CONFIRMED: "예약이 확정되었습니다. 예약 번호: {booking_number}, 일정: {scheduled_date}",
        BookingStatus.IN_PROGRESS: "서비스가 시작되었습니다. 예약 번호: {booking_number}",
        BookingStatus.COMPLETED: "서비스가 완료되었습니다. 예약 번호: {booking_number}",
        BookingStatus.CANCELLED: "예약이 취소되었습니다. 예약 번호: {booking_number}",
    },
    "en": {
        BookingStatus.PENDING: "Booking has been created. Booking number: {booking_number}, Schedule: {scheduled_date}",
        BookingStatus.CONFIRMED: "Booking has been confirmed. Booking number: {booking_number}, Schedule: {scheduled_date}",
        BookingStatus.IN_PROGRESS: "Service has started. Booking number: {booking_number}",
        BookingStatus.COMPLETED: "Service has been completed. Booking number: {booking_number}",
        BookingStatus.CANCELLED: "Booking has been cancelled. Booking number: {booking_number}",
    },
}

# Push titles; pending notifies the artist of a new request
BOOKING_NOTIFICATION_TITLES: Dict[str, Dict[BookingStatus, str]] = {
    "ko": {
        BookingStatus.PENDING: "새 예약 요청",
        BookingStatus.CONFIRMED: "예약이 확정되었습니다",
        BookingStatus.DECLINED: "예약이 거절되었습니다",
        BookingStatus.IN_PROGRESS: "서비스가 시작되었습니다",
        BookingStatus.COMPLETED: "서비스가 완료되었습니다",
        BookingStatus.CANCELLED: "예약이 취소되었습니다",
    },
    "en": {
        BookingStatus.PENDING: "New booking request",
        BookingStatus.CONFIRMED: "Booking confirmed",
        BookingStatus.DECLINED: "Booking declined",
        BookingStatus.IN_PROGRESS: "Service started",
        BookingStatus.COMPLETED: "Service completed",
        BookingStatus.CANCELLED: "Booking cancelled",
    },
}

_KO_WEEKDAYS = ("월요일", "화요일", "수요일", "목요일", "금요일", "토요일", "일요일")
_EN_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_EN_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def resolve_locale(locale: Optional[str]) -> str:
    """Map ``ko-KR``/``en_US`` style tags onto a supported locale."""
    if not locale:
        return DEFAULT_LOCALE
    language = locale.replace("_", "-").split("-")[0].lower()
    return language if language in BOOKING_SYSTEM_MESSAGES else DEFAULT_LOCALE


def format_scheduled_date(moment: datetime, locale: Optional[str] = None) -> str:
    """
    Format a date the way each locale writes it in full.

    >>> format_scheduled_date(datetime(2026, 10, 18), "ko")
    '2026년 10월 18일 일요일'
    >>> format_scheduled_date(datetime(2026, 10, 18), "en")
    'Sunday, October 18, 2026'
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)

    weekday = moment.weekday()
    if resolve_locale(locale) == "en":
        return f"{_EN_WEEKDAYS[weekday]}, {_EN_MONTHS[moment.month - 1]} {moment.day}, {moment.year}"
    return f"{moment.year}년 {moment.month}월 {moment.day}일 {_KO_WEEKDAYS[weekday]}"


def message_for(booking: Booking, status: BookingStatus, locale: Optional[str] = None) -> Optional[str]:
    """Message body for ``status``, or None when the status has no template."""
    resolved = resolve_locale(locale)
    template = BOOKING_SYSTEM_MESSAGES[resolved].get(status)
    if template is None:
        return None

    return template.format(
        booking_number=booking.booking_number,
        scheduled_date=format_scheduled_date(booking.scheduled_date, resolved),
    )


def title_for(status: BookingStatus, locale: Optional[str] = None) -> str:
    return BOOKING_NOTIFICATION_TITLES[resolve_locale(locale)][status]
