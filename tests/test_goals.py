from datetime import date
import pytest, respx
from clinic_dashboard import goals
from clinic_dashboard.models import TreatmentType

BASE = "https://clinic.supabase.co"


def _completed(tipo, count):
    return [
        {
            "id": f"{tipo}-{n}",
            "pacienteid": "pat-1",
            "tipo": tipo,
            "fechaagendada": "2024-03-01T14:00:00+00:00",
            "estado": "completado",
            "fechacompletado": "2024-03-01T15:00:00+00:00",
            "duracionminutos": 60,
        }
        for n in range(count)
    ]


def _by_type(result):
    return {goal.tipo.value: goal for goal in result}


@pytest.mark.parametrize("today, start, end", [
    (date(2024, 1, 1), date(2024, 1, 1), date(2024, 6, 30)),
    (date(2024, 6, 30), date(2024, 1, 1), date(2024, 6, 30)),
    (date(2024, 7, 1), date(2024, 7, 1), date(2024, 12, 31)),
    (date(2024, 12, 31), date(2024, 7, 1), date(2024, 12, 31)),
])
def test_half_year_period(today, start, end):
    assert goals.half_year_start(today) == start
    assert goals.half_year_period(today) == (start, end)


def test_percentage_rounding():
    assert goals.percentage(28, 30) == 93
    assert goals.percentage(16, 15) == 107
    assert goals.percentage(1, 8) == 13
    assert goals.percentage(0, 50) == 0


@pytest.mark.asyncio
async def test_compute_goals_counts_per_category():
    rows = _completed("restauracion", 28) + _completed("corona", 16) + _completed("PPR", 2)
    with respx.mock(base_url=BASE) as m:
        route = m.get("/rest/v1/Tratamiento").respond(200, json=rows)

        result, degraded = await goals.compute_goals(date(2024, 1, 1))
        assert degraded is False

        params = route.calls.last.request.url.params
        assert params["estado"] == "eq.completado"
        assert params["fechacompletado"] == "gte.2024-01-01T00:00:00-05:00"

    assert [goal.tipo for goal in result] == list(TreatmentType)
    by_type = _by_type(result)
    assert (by_type["restauracion"].porcentaje, by_type["restauracion"].met) == (93, False)
    assert (by_type["corona"].porcentaje, by_type["corona"].met) == (107, True)
    assert by_type["PPR"].completados == 2
    assert by_type["PPR"].porcentaje == 25
    assert by_type["puente"].completados == 0
    assert by_type["puente"].meta_cantidad == 10


@pytest.mark.asyncio
async def test_compute_goals_is_idempotent():
    rows = _completed("profilaxis", 50) + _completed("otro", 3)
    with respx.mock(base_url=BASE) as m:
        m.get("/rest/v1/Tratamiento").respond(200, json=rows)

        first = await goals.compute_goals(date(2024, 7, 1))
        second = await goals.compute_goals(date(2024, 7, 1))
    assert first == second
    assert _by_type(first[0])["profilaxis"].met is True


@pytest.mark.asyncio
async def test_compute_goals_fails_open():
    with respx.mock(base_url=BASE) as m:
        m.get("/rest/v1/Tratamiento").respond(500, json={"message": "boom"})

        result, degraded = await goals.compute_goals(date(2024, 1, 1))
    assert degraded is True
    assert len(result) == 8
    assert all(goal.completados == 0 and goal.porcentaje == 0 for goal in result)


@pytest.mark.asyncio
async def test_goals_report_summary():
    rows = _completed("corona", 15) + _completed("puente", 12)
    with respx.mock(base_url=BASE) as m:
        m.get("/rest/v1/Tratamiento").respond(200, json=rows)

        report = await goals.goals_report(date(2024, 9, 15))
    assert report.period_start == date(2024, 7, 1)
    assert report.period_end == date(2024, 12, 31)
    assert report.met_count == 2
    assert report.total == 8


@pytest.mark.asyncio
async def test_compute_goals_skips_unknown_category():
    rows = _completed("corona", 1) + _completed("implante", 1)
    with respx.mock(base_url=BASE) as m:
        m.get("/rest/v1/Tratamiento").respond(200, json=rows)

        result, degraded = await goals.compute_goals(date(2024, 1, 1))
    assert degraded is False
    assert _by_type(result)["corona"].completados == 1
    assert sum(goal.completados for goal in result) == 1
