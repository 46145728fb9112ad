"""Half-year treatment goals."""
from __future__ import annotations
import logging
from collections import Counter
from datetime import date, datetime, time
from . import client, config
from .errors import StoreUnavailable
from .models import Appointment, GoalsReport, TreatmentGoal, TreatmentType

_logger = logging.getLogger(__name__)

# Targets per half-year; dict order is the order goals are reported in.
GOAL_TARGETS = {
    TreatmentType.PROFILAXIS: 50,
    TreatmentType.RESTAURACION: 30,
    TreatmentType.CORONA: 15,
    TreatmentType.PUENTE: 10,
    TreatmentType.BLANQUEAMIENTO: 25,
    TreatmentType.ENDODONCIA: 20,
    TreatmentType.PPR: 8,
    TreatmentType.OTRO: 15,
}


def half_year_start(today: date) -> date:
    return date(today.year, 1 if today.month <= 6 else 7, 1)


def half_year_period(today: date) -> tuple[date, date]:
    start = half_year_start(today)
    end = date(today.year, 6, 30) if start.month == 1 else date(today.year, 12, 31)
    return start, end


def percentage(completed: int, target: int) -> int:
    # halves round up: 1 of 8 is 13%
    return int(completed * 100 / target + 0.5)


def aggregate_goals(appointments: list[Appointment]) -> list[TreatmentGoal]:
    counts = Counter(appt.tipo for appt in appointments)
    return [
        TreatmentGoal(
            tipo=tipo,
            meta_cantidad=target,
            completados=counts.get(tipo, 0),
            porcentaje=percentage(counts.get(tipo, 0), target),
        )
        for tipo, target in GOAL_TARGETS.items()
    ]


async def compute_goals(period_start: date) -> tuple[list[TreatmentGoal], bool]:
    """Goals from completed appointments since ``period_start``.

    Returns the goals and whether the store was unreachable, in which case
    every category reports zero completions.
    """
    since = datetime.combine(period_start, time.min, tzinfo=config.CLINIC_TZ)
    try:
        completed = await client.fetch_completed_since(since)
    except StoreUnavailable as exc:
        _logger.warning("Could not load completed treatments since %s: %s", period_start, exc)
        return aggregate_goals([]), True
    return aggregate_goals(completed), False


async def goals_report(today: date) -> GoalsReport:
    start, end = half_year_period(today)
    goals, degraded = await compute_goals(start)
    return GoalsReport(period_start=start, period_end=end, goals=goals, store_degraded=degraded)
