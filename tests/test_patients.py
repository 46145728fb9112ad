import json, pathlib
from datetime import date
import pydantic
import pytest, respx
from clinic_dashboard import patients
from clinic_dashboard.errors import NotFound, ValidationError
from clinic_dashboard.models import PatientIn

FIX = pathlib.Path(__file__).parent / "fixtures"
BASE = "https://clinic.supabase.co"


def _rows():
    return json.loads((FIX / "patient_get.json").read_text())


def _payload(**changes):
    fields = dict(
        numero_historia="HC-2024-004",
        nombres="Luis",
        apellidos="Quispe Rojas",
        fecha_nacimiento="1992-11-02",
        celular="+51 987 654 324",
        alergias="Látex, , Ibuprofeno",
        email="",
    )
    fields.update(changes)
    return PatientIn(**fields)


@pytest.mark.parametrize("birth, today, age", [
    (date(1985, 3, 15), date(2024, 3, 14), 38),
    (date(1985, 3, 15), date(2024, 3, 15), 39),
    (date(2000, 2, 29), date(2024, 2, 28), 23),
])
def test_calculate_age(birth, today, age):
    assert patients.calculate_age(birth, today) == age


def test_patient_form_lists_and_blanks():
    payload = _payload()
    assert payload.alergias == ["Látex", "Ibuprofeno"]
    assert payload.enfermedades_sistemicas == []
    assert payload.email is None

    with pytest.raises(pydantic.ValidationError):
        _payload(email="not-an-email")
    with pytest.raises(pydantic.ValidationError):
        _payload(nombres="   ")


@pytest.mark.asyncio
async def test_list_patients_newest_first_with_age():
    with respx.mock(base_url=BASE) as m:
        route = m.get("/rest/v1/Paciente").respond(200, json=_rows())

        items, degraded = await patients.list_patients(today=date(2024, 6, 1))
        assert route.calls.last.request.url.params["order"] == "fechacreacion.desc"
    assert degraded is False
    assert items[0].edad == 39
    assert items[0].alergias == ["Penicilina"]


@pytest.mark.asyncio
async def test_list_patients_fails_open():
    with respx.mock(base_url=BASE) as m:
        m.get("/rest/v1/Paciente").respond(502, text="bad gateway")

        assert await patients.list_patients() == ([], True)


@pytest.mark.asyncio
async def test_get_patient_not_found():
    with respx.mock(base_url=BASE) as m:
        m.get("/rest/v1/Paciente").respond(200, json=[])
        with pytest.raises(NotFound):
            await patients.get_patient("nobody")


@pytest.mark.asyncio
async def test_create_patient_writes_wire_fields():
    created = dict(_rows()[0], id="pat-4", numerohistoria="HC-2024-004", fechanacimiento="1992-11-02")
    with respx.mock(base_url=BASE) as m:
        route = m.post("/rest/v1/Paciente").respond(201, json=[created])

        patient = await patients.create_patient(_payload())
        assert patient.id == "pat-4"
        assert patient.edad is not None

        body = json.loads(route.calls.last.request.content)
        assert body["numerohistoria"] == "HC-2024-004"
        assert body["fechanacimiento"] == "1992-11-02"
        assert body["alergias"] == ["Látex", "Ibuprofeno"]
        assert "fechacreacion" in body and "edad" not in body


@pytest.mark.asyncio
async def test_duplicate_history_number_is_a_validation_error():
    with respx.mock(base_url=BASE) as m:
        m.post("/rest/v1/Paciente").respond(409, json={"code": "23505", "message": "duplicate key"})
        m.patch("/rest/v1/Paciente").respond(409, json={"code": "23505", "message": "duplicate key"})

        with pytest.raises(ValidationError) as info:
            await patients.create_patient(_payload())
        assert info.value.field == "numero_historia"

        with pytest.raises(ValidationError):
            await patients.update_patient("pat-1", _payload())


@pytest.mark.asyncio
async def test_update_unknown_patient():
    with respx.mock(base_url=BASE) as m:
        m.patch("/rest/v1/Paciente").respond(200, json=[])
        with pytest.raises(NotFound):
            await patients.update_patient("nobody", _payload())
