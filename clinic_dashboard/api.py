import logging
from contextlib import asynccontextmanager
from datetime import date, timedelta
from typing import Optional
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from . import billing, config, goals, patients, scheduling
from .errors import DashboardError, NotFound, SlotConflict, StoreUnavailable, ValidationError
from .models import (
    Appointment,
    BillResolution,
    BookingRequest,
    DaySlot,
    GoalsReport,
    Patient,
    PatientIn,
    SlotCheck,
    StatusUpdate,
)

_logger = logging.getLogger(__name__)

STORE_NOTICE = "The record store is unreachable; showing what could be loaded."


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    yield


app = FastAPI(title="Clinic Dashboard Service", lifespan=lifespan)


class PatientList(BaseModel):
    items: list[Patient]
    notice: Optional[str] = None


class AppointmentList(BaseModel):
    items: list[Appointment]
    notice: Optional[str] = None


class DaySlotList(BaseModel):
    fecha: date
    slots: list[DaySlot]
    notice: Optional[str] = None


def _notice(degraded: bool) -> Optional[str]:
    return STORE_NOTICE if degraded else None


# Error mapping -------------------------------------------------------------

_STATUS_CODES = {
    ValidationError: 422,
    SlotConflict: 409,
    NotFound: 404,
    StoreUnavailable: 503,
}


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError):
    status_code = next((code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)), 500)
    body = {"detail": str(exc)}
    if isinstance(exc, ValidationError):
        body.update(field=exc.field, detail=exc.message)
    if status_code >= 500:
        _logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=body)


@app.get("/health")
async def health():
    return {"status": "ok"}


# Patients ------------------------------------------------------------------

@app.get("/patients", response_model=PatientList)
async def list_patients():
    items, degraded = await patients.list_patients()
    return PatientList(items=items, notice=_notice(degraded))


@app.get("/patients/{patient_id}", response_model=Patient)
async def get_patient(patient_id: str):
    return await patients.get_patient(patient_id)


@app.post("/patients", response_model=Patient, status_code=201)
async def create_patient(payload: PatientIn):
    return await patients.create_patient(payload)


@app.put("/patients/{patient_id}", response_model=Patient)
async def update_patient(patient_id: str, payload: PatientIn):
    return await patients.update_patient(patient_id, payload)


# Scheduling ----------------------------------------------------------------

@app.get("/schedule/dates", response_model=list[date])
async def schedule_dates():
    """Weekdays a booking can be made for, from tomorrow up to the horizon."""
    return scheduling.offerable_dates()


@app.get("/schedule/slots", response_model=DaySlotList)
async def schedule_slots(fecha: date = Query(..., alias="date", description="YYYY-MM-DD")):
    slots, degraded = await scheduling.day_slots(fecha)
    return DaySlotList(fecha=fecha, slots=slots, notice=_notice(degraded))


@app.get("/schedule/check", response_model=SlotCheck)
async def schedule_check(
    fecha: date = Query(..., alias="date", description="YYYY-MM-DD"),
    hora: str = Query(..., alias="time", description="HH:MM slot start"),
):
    return await scheduling.check_slot_availability(fecha, hora)


@app.get("/appointments", response_model=AppointmentList)
async def list_appointments(
    start: Optional[date] = Query(None, description="first day, defaults to today"),
    end: Optional[date] = Query(None, description="last day, defaults to start + 30 days"),
):
    start = start or scheduling.clinic_today()
    end = end or start + timedelta(days=30)
    items, degraded = await scheduling.list_appointments(start, end)
    return AppointmentList(items=items, notice=_notice(degraded))


@app.post("/appointments", response_model=Appointment, status_code=201)
async def book_appointment(req: BookingRequest):
    return await scheduling.schedule_appointment(req)


@app.patch("/appointments/{appointment_id}/status", response_model=Appointment)
async def change_status(appointment_id: str, req: StatusUpdate):
    return await scheduling.update_status(appointment_id, req.estado)


# Dashboard panels ----------------------------------------------------------

@app.get("/goals", response_model=GoalsReport)
async def treatment_goals():
    return await goals.goals_report(scheduling.clinic_today())


@app.get("/bills/pending", response_model=AppointmentList)
async def pending_bills():
    items, degraded = await billing.fetch_pending_bills()
    return AppointmentList(items=items, notice=_notice(degraded))


@app.post("/bills/{bill_id}/resolve", response_model=Appointment)
async def resolve_bill(bill_id: str, req: BillResolution):
    return await billing.assign_billing_code(bill_id, req.boleta_codigo)
