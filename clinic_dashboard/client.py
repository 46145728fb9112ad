"""Async record-store client for the clinic's Supabase (PostgREST) project.

Columns travel in lower-case, underscore-free form (``fechaagendada``); the rest
of the package uses the snake-case field names of ``models``. Translation
happens here and nowhere else.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Iterable, TypeVar
import httpx
from pydantic import BaseModel
from pydantic import ValidationError as RowError
from pydantic_core import to_jsonable_python
from . import config
from .errors import DuplicateRecord, StoreUnavailable
from .models import ACTIVE_STATUSES, Appointment, Patient, TreatmentStatus

_logger = logging.getLogger(__name__)

PATIENTS = "Paciente"
APPOINTMENTS = "Tratamiento"

M = TypeVar("M", bound=BaseModel)


def to_wire(fields: dict[str, Any]) -> dict[str, Any]:
    """Snake-case field names -> store column names, values JSON-ready."""
    return {key.replace("_", ""): to_jsonable_python(value) for key, value in fields.items()}


def from_wire(row: dict[str, Any], model: type[M]) -> M:
    columns = {name.replace("_", ""): name for name in model.model_fields}
    data = {columns[key.lower()]: value for key, value in row.items() if key.lower() in columns}
    return model.model_validate(data)


def _valid_rows(rows: list[dict[str, Any]], model: type[M]) -> list[M]:
    """Rows that fit ``model``; rows that don't are logged and skipped."""
    items = []
    for row in rows:
        try:
            items.append(from_wire(row, model))
        except RowError as exc:
            _logger.warning("Skipping %s row %s: %s", model.__name__, row.get("id"), exc)
    return items


def _headers(write: bool = False) -> dict[str, str]:
    headers = {
        "apikey": config.SUPABASE_KEY,
        "Authorization": f"Bearer {config.SUPABASE_KEY}",
        "Accept": "application/json",
    }
    if write:
        headers["Content-Type"] = "application/json"
        headers["Prefer"] = "return=representation"
    return headers


async def _request(method: str, table: str, **kwargs) -> list[dict[str, Any]]:
    try:
        async with httpx.AsyncClient(http2=True, timeout=15) as client:
            resp = await client.request(method, f"{config.REST_URL}/{table}", **kwargs)
    except httpx.HTTPError as exc:
        raise StoreUnavailable(f"{method} {table} failed: {exc}") from exc

    if resp.is_error:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or resp.text or resp.reason_phrase
        if body.get("code") == "23505":
            raise DuplicateRecord(message, status_code=resp.status_code)
        raise StoreUnavailable(f"{method} {table}: {message}", status_code=resp.status_code)

    if not resp.content:
        return []
    return resp.json()


async def select_rows(table: str, params: Iterable[tuple[str, str]]) -> list[dict[str, Any]]:
    return await _request("GET", table, params=list(params), headers=_headers())


async def insert_row(table: str, fields: dict[str, Any]) -> dict[str, Any]:
    rows = await _request("POST", table, json=to_wire(fields), headers=_headers(write=True))
    if not rows:
        raise StoreUnavailable(f"insert into {table} returned no row")
    return rows[0]


async def update_rows(table: str, filters: Iterable[tuple[str, str]], fields: dict[str, Any]) -> list[dict[str, Any]]:
    return await _request(
        "PATCH", table, params=list(filters), json=to_wire(fields), headers=_headers(write=True)
    )


def _in(values: Iterable[TreatmentStatus]) -> str:
    return "in.(" + ",".join(status.value for status in values) + ")"


def _ts(value: datetime) -> str:
    return value.isoformat()


# Patients ------------------------------------------------------------------

async def fetch_patients() -> list[Patient]:
    rows = await select_rows(PATIENTS, [("select", "*"), ("order", "fechacreacion.desc")])
    return _valid_rows(rows, Patient)


async def fetch_patient(patient_id: str) -> Patient | None:
    rows = await select_rows(PATIENTS, [("select", "*"), ("id", f"eq.{patient_id}")])
    return from_wire(rows[0], Patient) if rows else None


async def insert_patient(fields: dict[str, Any]) -> Patient:
    return from_wire(await insert_row(PATIENTS, fields), Patient)


async def update_patient(patient_id: str, fields: dict[str, Any]) -> Patient | None:
    rows = await update_rows(PATIENTS, [("id", f"eq.{patient_id}")], fields)
    return from_wire(rows[0], Patient) if rows else None


# Appointments --------------------------------------------------------------

async def fetch_active_appointments(start: datetime, end: datetime) -> list[Appointment]:
    """Pending/confirmed appointments whose start falls inside [start, end]."""
    rows = await select_rows(APPOINTMENTS, [
        ("select", "*"),
        ("fechaagendada", f"gte.{_ts(start)}"),
        ("fechaagendada", f"lte.{_ts(end)}"),
        ("estado", _in(ACTIVE_STATUSES)),
    ])
    return _valid_rows(rows, Appointment)


async def fetch_appointments(start: datetime, end: datetime) -> list[Appointment]:
    """Every appointment in [start, end] with the patient's history number joined in."""
    rows = await select_rows(APPOINTMENTS, [
        ("select", f"*,{PATIENTS}(numerohistoria)"),
        ("fechaagendada", f"gte.{_ts(start)}"),
        ("fechaagendada", f"lte.{_ts(end)}"),
        ("order", "fechaagendada.asc"),
    ])
    for row in rows:
        patient = row.pop(PATIENTS, None) or {}
        row["numerohistoria"] = patient.get("numerohistoria")
    return _valid_rows(rows, Appointment)


async def fetch_appointment(appointment_id: str) -> Appointment | None:
    rows = await select_rows(APPOINTMENTS, [("select", "*"), ("id", f"eq.{appointment_id}")])
    return from_wire(rows[0], Appointment) if rows else None


async def insert_appointment(fields: dict[str, Any]) -> Appointment:
    return from_wire(await insert_row(APPOINTMENTS, fields), Appointment)


async def update_appointment(appointment_id: str, fields: dict[str, Any]) -> Appointment | None:
    rows = await update_rows(APPOINTMENTS, [("id", f"eq.{appointment_id}")], fields)
    return from_wire(rows[0], Appointment) if rows else None


async def fetch_completed_since(since: datetime) -> list[Appointment]:
    rows = await select_rows(APPOINTMENTS, [
        ("select", "*"),
        ("estado", f"eq.{TreatmentStatus.COMPLETADO.value}"),
        ("fechacompletado", f"gte.{_ts(since)}"),
    ])
    return _valid_rows(rows, Appointment)


async def fetch_completed() -> list[Appointment]:
    rows = await select_rows(APPOINTMENTS, [
        ("select", "*"),
        ("estado", f"eq.{TreatmentStatus.COMPLETADO.value}"),
        ("order", "fechacompletado.desc"),
    ])
    return _valid_rows(rows, Appointment)
