"""Appointment scheduling: offerable dates, slot conflicts, booking and status changes.

Slot times are clinic-local wall-clock times ("HH:MM"). A slot is taken when
a pending or confirmed appointment starts at exactly that minute on the same
day; durations are not compared, so back-to-back starts never conflict even
when they would overlap.

Reads that fail degrade to "nothing occupied" instead of blocking the form.
Writes that fail abort.
"""
from __future__ import annotations
import logging
from datetime import date, datetime, time, timedelta
from . import client, config
from .errors import NotFound, SlotConflict, StoreUnavailable, ValidationError
from .models import (
    Appointment,
    BookingRequest,
    DaySlot,
    SlotCheck,
    TreatmentStatus,
    TreatmentType,
)

_logger = logging.getLogger(__name__)

TIME_SLOTS = (
    "08:00", "08:30", "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "14:00", "14:30", "15:00", "15:30", "16:00", "16:30", "17:00", "17:30",
)
BOOKING_HORIZON_DAYS = 60
MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 240

# Only consulted when STRICT_STATUS_TRANSITIONS is on; by default any status may follow any other.
ALLOWED_TRANSITIONS = {
    TreatmentStatus.PENDIENTE: {TreatmentStatus.CONFIRMADO, TreatmentStatus.CANCELADO, TreatmentStatus.POSPUESTO},
    TreatmentStatus.CONFIRMADO: {TreatmentStatus.COMPLETADO, TreatmentStatus.CANCELADO, TreatmentStatus.POSPUESTO},
    TreatmentStatus.POSPUESTO: {TreatmentStatus.PENDIENTE, TreatmentStatus.CONFIRMADO, TreatmentStatus.CANCELADO},
    TreatmentStatus.COMPLETADO: set(),
    TreatmentStatus.CANCELADO: set(),
}


def clinic_now() -> datetime:
    return datetime.now(config.CLINIC_TZ)


def clinic_today() -> date:
    return clinic_now().date()


def is_date_offerable(day: date, today: date | None = None) -> bool:
    """True for weekdays after today and no more than BOOKING_HORIZON_DAYS ahead."""
    today = today or clinic_today()
    return today < day <= today + timedelta(days=BOOKING_HORIZON_DAYS) and day.weekday() < 5


def offerable_dates(today: date | None = None) -> list[date]:
    today = today or clinic_today()
    days = (today + timedelta(days=offset) for offset in range(1, BOOKING_HORIZON_DAYS + 1))
    return [day for day in days if day.weekday() < 5]


def slot_datetime(day: date, hhmm: str) -> datetime:
    hour, minute = (int(part) for part in hhmm.split(":"))
    return datetime.combine(day, time(hour, minute), tzinfo=config.CLINIC_TZ)


def local_hhmm(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=config.CLINIC_TZ)
    return moment.astimezone(config.CLINIC_TZ).strftime("%H:%M")


def occupied_times(appointments: list[Appointment]) -> set[str]:
    """Start times ("HH:MM") held by active appointments."""
    return {local_hhmm(appt.fecha_agendada) for appt in appointments if appt.is_active}


def _validate_slot(day: date | None, hhmm: str | None, today: date) -> None:
    if day is None:
        raise ValidationError("fecha", "a date is required")
    if not hhmm:
        raise ValidationError("hora", "a time is required")
    if hhmm not in TIME_SLOTS:
        raise ValidationError("hora", f"{hhmm} is not a bookable time")
    if not is_date_offerable(day, today):
        raise ValidationError("fecha", f"{day.isoformat()} is not an offerable date")


async def _occupied_on(day: date) -> tuple[set[str], bool]:
    """Occupied times for the day plus a flag telling whether the store was unreachable."""
    start = datetime.combine(day, time.min, tzinfo=config.CLINIC_TZ)
    end = datetime.combine(day, time.max, tzinfo=config.CLINIC_TZ)
    try:
        appointments = await client.fetch_active_appointments(start, end)
    except StoreUnavailable as exc:
        _logger.warning("Could not load occupied slots for %s, assuming none: %s", day, exc)
        return set(), True
    return occupied_times(appointments), False


async def check_slot_availability(day: date | None, hhmm: str | None, today: date | None = None) -> SlotCheck:
    today = today or clinic_today()
    _validate_slot(day, hhmm, today)
    occupied, degraded = await _occupied_on(day)
    return SlotCheck(fecha=day, hora=hhmm, available=hhmm not in occupied, store_degraded=degraded)


async def day_slots(day: date, today: date | None = None) -> tuple[list[DaySlot], bool]:
    """The whole time catalogue for a day, each slot marked free or taken."""
    today = today or clinic_today()
    if not is_date_offerable(day, today):
        raise ValidationError("fecha", f"{day.isoformat()} is not an offerable date")
    occupied, degraded = await _occupied_on(day)
    return [DaySlot(hora=hhmm, available=hhmm not in occupied) for hhmm in TIME_SLOTS], degraded


async def schedule_appointment(request: BookingRequest, now: datetime | None = None) -> Appointment:
    """Validate a booking, re-check its slot once and write it as pending.

    There is no lock between the re-check and the insert: two clients booking
    the same slot at the same moment can both succeed.
    """
    now = now or clinic_now()
    today = now.astimezone(config.CLINIC_TZ).date()

    try:
        tipo = TreatmentType(request.tipo)
    except ValueError:
        raise ValidationError("tipo", f"unknown treatment type {request.tipo!r}") from None
    if not MIN_DURATION_MINUTES <= request.duracion_minutos <= MAX_DURATION_MINUTES:
        raise ValidationError(
            "duracion_minutos",
            f"duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes",
        )
    _validate_slot(request.fecha, request.hora, today)
    scheduled = slot_datetime(request.fecha, request.hora)
    if scheduled <= now:
        raise ValidationError("hora", "the appointment must be in the future")

    if await client.fetch_patient(request.paciente_id) is None:
        raise ValidationError("paciente_id", f"unknown patient {request.paciente_id}")

    occupied, _ = await _occupied_on(request.fecha)
    if request.hora in occupied:
        raise SlotConflict(request.fecha.isoformat(), request.hora)

    appointment = await client.insert_appointment({
        "paciente_id": request.paciente_id,
        "tipo": tipo.value,
        "descripcion": request.descripcion or None,
        "fecha_agendada": scheduled,
        "estado": TreatmentStatus.PENDIENTE.value,
        "pieza_dental": request.pieza_dental or None,
        "duracion_minutos": request.duracion_minutos,
        "fecha_creacion": now,
        "fecha_actualizacion": now,
    })
    _logger.info("Booked %s for patient %s at %s", tipo.value, request.paciente_id, scheduled.isoformat())
    return appointment


async def update_status(
    appointment_id: str,
    new_status: TreatmentStatus | str,
    now: datetime | None = None,
    strict: bool | None = None,
) -> Appointment:
    now = now or clinic_now()
    strict = config.STRICT_STATUS_TRANSITIONS if strict is None else strict
    try:
        new_status = TreatmentStatus(new_status)
    except ValueError:
        raise ValidationError("estado", f"unknown status {new_status!r}") from None

    if strict:
        current = await client.fetch_appointment(appointment_id)
        if current is None:
            raise NotFound("appointment", appointment_id)
        if new_status not in ALLOWED_TRANSITIONS[current.estado]:
            raise ValidationError("estado", f"cannot move from {current.estado.value} to {new_status.value}")

    fields = {"estado": new_status.value, "fecha_actualizacion": now}
    if new_status == TreatmentStatus.COMPLETADO:
        fields["fecha_completado"] = now

    updated = await client.update_appointment(appointment_id, fields)
    if updated is None:
        raise NotFound("appointment", appointment_id)
    _logger.info("Appointment %s is now %s", appointment_id, new_status.value)
    return updated


async def list_appointments(start: date, end: date) -> tuple[list[Appointment], bool]:
    """Calendar feed for [start, end]; an unreachable store yields an empty feed."""
    if end < start:
        raise ValidationError("end", "end date is before start date")
    try:
        appointments = await client.fetch_appointments(
            datetime.combine(start, time.min, tzinfo=config.CLINIC_TZ),
            datetime.combine(end, time.max, tzinfo=config.CLINIC_TZ),
        )
    except StoreUnavailable as exc:
        _logger.warning("Could not load appointments %s..%s: %s", start, end, exc)
        return [], True
    return appointments, False
