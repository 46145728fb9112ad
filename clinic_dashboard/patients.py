"""Patient records."""
from __future__ import annotations
import logging
from datetime import date, datetime
from . import client, config
from .errors import DuplicateRecord, NotFound, StoreUnavailable, ValidationError
from .models import Patient, PatientIn

_logger = logging.getLogger(__name__)


def calculate_age(birth: date, today: date) -> int:
    """Whole years between ``birth`` and ``today``."""
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


def _with_age(patient: Patient, today: date) -> Patient:
    return patient.model_copy(update={"edad": calculate_age(patient.fecha_nacimiento, today)})


def _today() -> date:
    return datetime.now(config.CLINIC_TZ).date()


async def list_patients(today: date | None = None) -> tuple[list[Patient], bool]:
    """Newest patients first. An unreachable store gives an empty list."""
    today = today or _today()
    try:
        patients = await client.fetch_patients()
    except StoreUnavailable as exc:
        _logger.warning("Could not load patients: %s", exc)
        return [], True
    return [_with_age(patient, today) for patient in patients], False


async def get_patient(patient_id: str, today: date | None = None) -> Patient:
    patient = await client.fetch_patient(patient_id)
    if patient is None:
        raise NotFound("patient", patient_id)
    return _with_age(patient, today or _today())


async def create_patient(payload: PatientIn) -> Patient:
    now = datetime.now(config.CLINIC_TZ)
    fields = payload.model_dump()
    fields.update(fecha_creacion=now, fecha_actualizacion=now)
    try:
        patient = await client.insert_patient(fields)
    except DuplicateRecord:
        raise ValidationError(
            "numero_historia", "a patient with this history number or phone already exists"
        ) from None
    _logger.info("Created patient %s (%s)", patient.id, patient.numero_historia)
    return _with_age(patient, now.date())


async def update_patient(patient_id: str, payload: PatientIn) -> Patient:
    now = datetime.now(config.CLINIC_TZ)
    fields = payload.model_dump()
    fields["fecha_actualizacion"] = now
    try:
        patient = await client.update_patient(patient_id, fields)
    except DuplicateRecord:
        raise ValidationError(
            "numero_historia", "a patient with this history number or phone already exists"
        ) from None
    if patient is None:
        raise NotFound("patient", patient_id)
    _logger.info("Updated patient %s", patient_id)
    return _with_age(patient, now.date())
