"""
Tests del cierre automático nocturno.
"""

import asyncio
from decimal import Decimal

import pytest

from app.cash import scheduler


@pytest.fixture
def guardados(monkeypatch):
    cierres = []

    async def cargar_snapshot_caja():
        return {"ventas": [], "servicios": [], "transacciones": [], "saldos_iniciales": []}

    async def buscar_cierre_dia(fecha):
        return next((c for c in cierres if c["fecha"] == fecha), None)

    async def guardar_cierre(doc):
        cierres.append(doc)
        return True

    monkeypatch.setattr(scheduler, "cargar_snapshot_caja", cargar_snapshot_caja)
    monkeypatch.setattr(scheduler, "buscar_cierre_dia", buscar_cierre_dia)
    monkeypatch.setattr(scheduler, "guardar_cierre", guardar_cierre)
    return cierres


def test_archiva_cierre_automatico(guardados):
    assert asyncio.run(scheduler.ejecutar_cierre_automatico("America/Mexico_City")) is True

    cierre = guardados[0]
    assert cierre["cierre_id"].startswith("CC-AUTO-")
    assert cierre["estado"] == "cerrado_automatico"
    assert cierre["diferencia"] == 0
    assert cierre["requiere_revision"] is True
    assert Decimal(cierre["arqueo"]["efectivo_contado"]) == Decimal(cierre["reporte"]["saldo_final_esperado"])


def test_no_duplica_si_ya_hay_cierre(guardados):
    asyncio.run(scheduler.ejecutar_cierre_automatico("America/Mexico_City"))
    assert asyncio.run(scheduler.ejecutar_cierre_automatico("America/Mexico_City")) is False
    assert len(guardados) == 1


def test_registra_job_diario():
    scheduler.registrar_cierre_automatico("America/Mexico_City")
    job = scheduler.scheduler.get_job(scheduler.JOB_ID)

    assert job is not None
    assert "hour='23'" in str(job.trigger)
    assert "minute='59'" in str(job.trigger)
    scheduler.scheduler.remove_job(scheduler.JOB_ID)
