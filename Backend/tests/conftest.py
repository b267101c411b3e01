"""
Fixtures compartidas para los tests de caja.

El día de referencia es el 15/03/2024: un saldo inicial de 500, un servicio
entregado pagado con 300 en efectivo y una salida manual de 100.
"""

import os

# La capa de base de datos exige la URI al importarse; el cliente de motor
# no se conecta hasta la primera operación.
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("CAJA_CORTE_AUTOMATICO", "0")

import pytest


DIA = "2024-03-15"


# ===== FIXTURES =====

@pytest.fixture
def saldo_inicial_dia():
    return [{"date": DIA, "amount": 500, "userName": "Ana", "userId": "U1"}]


@pytest.fixture
def servicio_entregado():
    return {
        "id": "SRV1",
        "folio": "S-0001",
        "status": "Entregado",
        "serviceDate": "2024-03-15T09:00:00",
        "deliveryDateTime": "2024-03-15T17:00:00",
        "totalCost": 300,
        "serviceProfit": 120,
        "customerName": "Luis Gómez",
        "serviceAdvisorName": "Marta",
        "payments": [{"method": "Efectivo", "amount": 300}],
    }


@pytest.fixture
def salida_manual():
    return {
        "id": "TX1",
        "date": "2024-03-15T18:00:00",
        "type": "Salida",
        "amount": 100,
        "concept": "Compra de garrafón",
        "userName": "Ana",
    }


@pytest.fixture
def espejo_servicio():
    """Entrada que la app registró en el libro al cobrar SRV1."""
    return {
        "id": "TX2",
        "date": "2024-03-15T17:05:00",
        "type": "Entrada",
        "amount": 300,
        "concept": "Cobro servicio SRV1",
        "relatedType": "Service",
        "relatedId": "SRV1",
        "userName": "Sistema",
    }


@pytest.fixture
def venta_mixta():
    return {
        "id": "VTA1",
        "folio": "V-0001",
        "status": "Completado",
        "saleDate": "2024-03-15T12:30:00",
        "totalAmount": 450,
        "customerName": "",
        "registeredByName": "Pedro",
        "payments": [
            {"method": "efectivo", "amount": 200},
            {"method": "Tarjeta", "amount": 250, "folio": "AUT-889"},
        ],
    }


@pytest.fixture
def snapshot_dia(saldo_inicial_dia, servicio_entregado, salida_manual):
    return {
        "ventas": [],
        "servicios": [servicio_entregado],
        "transacciones": [salida_manual],
        "saldos_iniciales": saldo_inicial_dia,
    }
