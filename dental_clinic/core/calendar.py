"""Clinic calendar: daily slots, clinics and the bookable-date rule.

Every other module reads slots and clinics from here so that the set of valid
values cannot drift between the resolver, the validator and the schemas.
"""

import re
from datetime import date, datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from dental_clinic.config import settings

# Ordered; availability results keep this order.
TIME_SLOTS: tuple[str, ...] = (
    "08:00",
    "09:00",
    "10:00",
    "11:00",
    "13:00",
    "14:00",
    "15:00",
)


class Clinic(str, Enum):
    """Clinic identifiers."""

    SANTA_TECLA = "santa-tecla"
    SOYAPANGO = "soyapango"
    SAN_MARTIN = "san-martin"
    ESCALON = "escalon"
    USULUTAN = "usulutan"


CLINIC_LABELS: dict[str, str] = {
    Clinic.SANTA_TECLA.value: "Santa Tecla",
    Clinic.SOYAPANGO.value: "Soyapango",
    Clinic.SAN_MARTIN.value: "San Martín",
    Clinic.ESCALON.value: "Escalón",
    Clinic.USULUTAN.value: "Usulután",
}

VISIT_REASONS: tuple[str, ...] = (
    "Control de rutina",
    "Dolor de muelas",
    "Limpieza dental",
    "Extracción",
    "Ortodoncia",
    "Emergencia",
    "Otro",
)


class DateProblem(str, Enum):
    """Why a date cannot be booked."""

    PAST = "past"
    TODAY = "today"
    SUNDAY = "sunday"


_SLOT_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])?\s*$")


def clinic_tz() -> ZoneInfo:
    """Timezone the clinics operate in."""
    return ZoneInfo(settings.clinic_timezone)


def clinic_today() -> date:
    """Current calendar date in clinic time."""
    return datetime.now(clinic_tz()).date()


def is_valid_clinic(value: str | None) -> bool:
    return bool(value) and value in CLINIC_LABELS


def clinic_label(value: str | None) -> str:
    """Display label for a clinic identifier, falling back to the raw value."""
    if not value:
        return ""
    return CLINIC_LABELS.get(value, value)


def normalize_slot_label(value: str | None) -> str | None:
    """
    Map a time label onto its canonical ``HH:MM`` slot.

    Accepts ``08:00``, ``8:00``, ``8:00 AM`` and ``2:00 pm`` style input.

    Returns:
        The canonical slot label, or None when the value is not a clinic slot
    """
    if not value:
        return None

    match = _SLOT_PATTERN.match(value)
    if not match:
        return None

    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3)
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        meridiem = meridiem.upper()
        if meridiem == "PM" and hour != 12:
            hour += 12
        elif meridiem == "AM" and hour == 12:
            hour = 0

    label = f"{hour:02d}:{minute:02d}"
    return label if label in TIME_SLOTS else None


def slot_display(label: str) -> str:
    """Render a canonical slot label with the AM/PM convention (``13:00`` -> ``1:00 PM``)."""
    slot_time = parse_slot_time(label)
    suffix = "AM" if slot_time.hour < 12 else "PM"
    hour = slot_time.hour % 12 or 12
    return f"{hour}:{slot_time.minute:02d} {suffix}"


def parse_slot_time(label: str) -> time:
    """
    Parse a slot label into a time of day.

    Raises:
        ValueError: If the label is not one of the clinic slots
    """
    canonical = normalize_slot_label(label)
    if canonical is None:
        raise ValueError(f"Unknown time slot: {label!r}")
    hour, minute = canonical.split(":")
    return time(int(hour), int(minute))


def slot_start(day: date, label: str, tz: ZoneInfo | None = None) -> datetime:
    """Aware datetime at which the slot starts, in clinic time."""
    return datetime.combine(day, parse_slot_time(label), tzinfo=tz or clinic_tz())


def date_problem(day: date, today: date | None = None) -> DateProblem | None:
    """
    Explain why a date is not bookable.

    Sunday takes precedence over past/today, matching the order in which the
    booking forms report it.
    """
    today = today or clinic_today()
    if day.weekday() == 6:
        return DateProblem.SUNDAY
    if day < today:
        return DateProblem.PAST
    if day == today:
        return DateProblem.TODAY
    return None


def is_bookable(day: date, today: date | None = None) -> bool:
    """True for any non-Sunday date strictly after today."""
    return date_problem(day, today) is None


def next_bookable_date(after: date | None = None) -> date:
    """First bookable date after ``after`` (defaults to today)."""
    candidate = (after or clinic_today()) + timedelta(days=1)
    while candidate.weekday() == 6:
        candidate += timedelta(days=1)
    return candidate
