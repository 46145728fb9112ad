"""Pending bills: completed treatments that have no billing code yet."""
from __future__ import annotations
import logging
from datetime import datetime
from . import client, config
from .errors import NotFound, StoreUnavailable, ValidationError
from .models import Appointment

_logger = logging.getLogger(__name__)


def select_pending_bills(appointments: list[Appointment]) -> list[Appointment]:
    return [appt for appt in appointments if appt.is_pending_bill]


async def fetch_pending_bills() -> tuple[list[Appointment], bool]:
    try:
        completed = await client.fetch_completed()
    except StoreUnavailable as exc:
        _logger.warning("Could not load pending bills: %s", exc)
        return [], True
    return select_pending_bills(completed), False


async def assign_billing_code(bill_id: str, code: str) -> Appointment:
    code = (code or "").strip()
    if not code:
        raise ValidationError("boleta_codigo", "a billing code is required")

    updated = await client.update_appointment(
        bill_id, {"boleta_codigo": code, "fecha_actualizacion": datetime.now(config.CLINIC_TZ)}
    )
    if updated is None:
        raise NotFound("appointment", bill_id)
    _logger.info("Bill %s resolved with code %s", bill_id, code)
    return updated


async def resolve_bill(bills: list[Appointment], bill_id: str, code: str) -> list[Appointment]:
    """Store ``code`` on the bill and return ``bills`` without it.

    The list is filtered locally after the write, it is not re-queried. A
    failed write raises and leaves ``bills`` as it was.
    """
    await assign_billing_code(bill_id, code)
    return [bill for bill in bills if bill.id != bill_id]
