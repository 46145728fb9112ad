from __future__ import annotations
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field, computed_field, field_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class TreatmentType(str, Enum):
    """Procedure categories, in the order the goals panel lists them."""
    PROFILAXIS = "profilaxis"
    RESTAURACION = "restauracion"
    CORONA = "corona"
    PUENTE = "puente"
    BLANQUEAMIENTO = "blanqueamiento"
    ENDODONCIA = "endodoncia"
    PPR = "PPR"
    OTRO = "otro"


class TreatmentStatus(str, Enum):
    PENDIENTE = "pendiente"
    CONFIRMADO = "confirmado"
    COMPLETADO = "completado"
    CANCELADO = "cancelado"
    POSPUESTO = "pospuesto"


ACTIVE_STATUSES = (TreatmentStatus.PENDIENTE, TreatmentStatus.CONFIRMADO)


def _split_list(value):
    # the patient form sends "Penicilina, Látex"; the store sends a list or null
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Patient(BaseModel):
    id: str
    numero_historia: str
    nombres: str
    apellidos: str
    fecha_nacimiento: date
    celular: str
    email: str | None = None
    alergias: list[str] = []
    enfermedades_sistemicas: list[str] = []
    religion: str | None = None
    fecha_creacion: datetime | None = None
    fecha_actualizacion: datetime | None = None
    edad: int | None = None  # derived at read time, never stored

    @field_validator("alergias", "enfermedades_sistemicas", mode="before")
    @classmethod
    def _split_lists(cls, value):
        return _split_list(value)


class PatientIn(BaseModel):
    """Create/update payload coming from the patient form."""
    model_config = {"str_strip_whitespace": True}

    numero_historia: str = Field(min_length=1)
    nombres: str = Field(min_length=1)
    apellidos: str = Field(min_length=1)
    fecha_nacimiento: date
    celular: str = Field(min_length=1)
    email: str | None = None
    alergias: list[str] = []
    enfermedades_sistemicas: list[str] = []
    religion: str | None = None

    @field_validator("alergias", "enfermedades_sistemicas", mode="before")
    @classmethod
    def _split_lists(cls, value):
        return _split_list(value)

    @field_validator("email", "religion", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("email")
    @classmethod
    def _check_email(cls, value):
        if value is not None and not _EMAIL_RE.match(value):
            raise ValueError("invalid email address")
        return value


class Appointment(BaseModel):
    id: str
    paciente_id: str
    tipo: TreatmentType
    descripcion: str | None = None
    fecha_agendada: datetime
    estado: TreatmentStatus
    pieza_dental: str | None = None
    boleta_codigo: str | None = None
    fecha_completado: datetime | None = None
    costo: Decimal | None = None
    duracion_minutos: int = 60
    fecha_creacion: datetime | None = None
    fecha_actualizacion: datetime | None = None
    numero_historia: str | None = None  # joined from Paciente for the calendar

    @property
    def is_active(self) -> bool:
        return self.estado in ACTIVE_STATUSES

    @property
    def is_pending_bill(self) -> bool:
        return self.estado == TreatmentStatus.COMPLETADO and not (self.boleta_codigo or "").strip()


class BookingRequest(BaseModel):
    """Booking form payload. Business rules are checked by the scheduler, not here."""
    paciente_id: str
    tipo: str
    fecha: date
    hora: str
    duracion_minutos: int = 60
    pieza_dental: str | None = None
    descripcion: str | None = None


class StatusUpdate(BaseModel):
    estado: TreatmentStatus


class BillResolution(BaseModel):
    boleta_codigo: str


class SlotCheck(BaseModel):
    fecha: date
    hora: str
    available: bool
    store_degraded: bool = False


class DaySlot(BaseModel):
    hora: str
    available: bool


class TreatmentGoal(BaseModel):
    tipo: TreatmentType
    meta_cantidad: int
    completados: int
    porcentaje: int

    @computed_field
    @property
    def met(self) -> bool:
        return self.porcentaje >= 100


class GoalsReport(BaseModel):
    period_start: date
    period_end: date
    goals: list[TreatmentGoal]
    store_degraded: bool = False

    @computed_field
    @property
    def met_count(self) -> int:
        return sum(1 for goal in self.goals if goal.met)

    @computed_field
    @property
    def total(self) -> int:
        return len(self.goals)
