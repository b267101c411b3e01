"""
Tests del cierre mensual.
"""

from decimal import Decimal

import pytest

from app.cash.monthly_rollup import (
    calcular_cierre_mensual,
    ganancia_venta_con_inventario,
    total_gastos_fijos,
    total_nomina,
)
from app.cash.normalizer import normalizar_servicios
from app.cash.utils_cash import RangoFechasInvalidoError


# ===== FIXTURES =====

@pytest.fixture
def servicios_anio():
    return [
        {
            "id": "SRV1",
            "status": "Entregado",
            "serviceDate": "2024-03-10T09:00:00",
            "deliveryDateTime": "2024-03-15T17:00:00",
            "totalCost": 1000,
            "serviceProfit": 400,
        },
        {
            "id": "SRV2",
            "status": "Cotizacion",
            "serviceDate": "2024-03-12",
            "totalCost": 5000,
            "serviceProfit": 2000,
        },
        {
            "id": "SRV3",
            "status": "Entregado",
            "serviceDate": "2023-12-20",
            "totalCost": 700,
            "serviceProfit": 100,
        },
    ]


@pytest.fixture
def ventas_anio():
    return [
        {
            "id": "VTA1",
            "status": "Completado",
            "saleDate": "2024-03-20T11:00:00",
            "totalAmount": 500,
            "cardCommission": 10,
            "items": [
                {"inventoryItemId": "P1", "quantity": 2, "unitPrice": 150},
                {"inventoryItemId": "X", "quantity": 1, "unitPrice": 50},
            ],
        },
        {
            "id": "VTA2",
            "status": "Cancelado",
            "saleDate": "2024-03-21",
            "totalAmount": 900,
        },
    ]


@pytest.fixture
def gastos_fijos():
    return [{"name": "Renta", "amount": 100}, {"name": "Internet viejo", "amount": 50, "isActive": False}]


@pytest.fixture
def personal():
    return [{"name": "Marta", "monthlySalary": 200}, {"name": "Ex", "monthlySalary": 999, "isArchived": True}]


# ===== TESTS =====

class TestCierreMensual:

    def test_doce_meses_diciembre_primero(self, servicios_anio, ventas_anio):
        filas = calcular_cierre_mensual(2024, ventas=ventas_anio, servicios=servicios_anio)

        assert len(filas) == 12
        assert [f.mes for f in filas] == list(range(12, 0, -1))
        assert filas[0].etiqueta == "Diciembre"
        assert filas[-1].etiqueta == "Enero"

    def test_mes_con_actividad(self, servicios_anio, ventas_anio, gastos_fijos, personal):
        filas = calcular_cierre_mensual(
            2024,
            ventas=ventas_anio,
            servicios=servicios_anio,
            gastos_fijos=gastos_fijos,
            personal=personal,
            ganancia_venta=ganancia_venta_con_inventario([{"id": "P1", "unitPrice": 100}]),
        )
        marzo = next(f for f in filas if f.mes == 3)

        assert marzo.ingresos_servicios == Decimal("1000.00")
        assert marzo.ingresos_pdv == Decimal("500.00")
        assert marzo.ingresos_totales == Decimal("1500.00")
        # 400 del servicio + (500 - 2*100 - 1*50 - 10) de la venta
        assert marzo.ganancia_total == Decimal("640.00")
        assert marzo.gastos_fijos == Decimal("100.00")
        assert marzo.nomina == Decimal("200.00")
        assert marzo.gastos_totales == Decimal("300.00")
        assert marzo.utilidad_neta == Decimal("340.00")

    def test_meses_sin_actividad_en_cero(self, servicios_anio, ventas_anio, gastos_fijos, personal):
        filas = calcular_cierre_mensual(
            2024, ventas=ventas_anio, servicios=servicios_anio,
            gastos_fijos=gastos_fijos, personal=personal,
        )
        for fila in filas:
            if fila.mes == 3:
                continue
            assert fila.ingresos_totales == Decimal("0.00")
            assert fila.gastos_totales == Decimal("0.00")
            assert fila.utilidad_neta == Decimal("0.00")

    def test_ganancia_de_venta_por_defecto(self, ventas_anio):
        ventas_anio[0]["profit"] = 75
        filas = calcular_cierre_mensual(2024, ventas=ventas_anio)
        assert next(f for f in filas if f.mes == 3).ganancia_total == Decimal("75.00")

    def test_otro_anio(self, servicios_anio):
        filas = calcular_cierre_mensual("2023", servicios=servicios_anio)
        diciembre = filas[0]
        assert diciembre.anio == 2023
        assert diciembre.ingresos_servicios == Decimal("700.00")
        assert diciembre.ganancia_total == Decimal("100.00")

    def test_sin_datos(self):
        filas = calcular_cierre_mensual(2024)
        assert len(filas) == 12
        assert all(f.utilidad_neta == Decimal("0.00") for f in filas)

    def test_mismo_mes_que_el_corte(self):
        """Entrega en UTC que en hora local cae el mes anterior"""
        servicio = {
            "id": "SRV4",
            "status": "Entregado",
            "serviceDate": "2024-03-28",
            "deliveryDateTime": "2024-04-01T03:00:00Z",
            "totalCost": 300,
            "payments": [{"method": "Efectivo", "amount": 300}],
        }
        mov = normalizar_servicios([servicio], zona_horaria="America/Mexico_City")[0]
        filas = calcular_cierre_mensual(2024, servicios=[servicio], zona_horaria="America/Mexico_City")

        assert mov.fecha.month == 3
        assert next(f for f in filas if f.mes == 3).ingresos_servicios == Decimal("300.00")
        assert next(f for f in filas if f.mes == 4).ingresos_servicios == Decimal("0.00")

    @pytest.mark.parametrize("anio", ["dos mil", None, True, 10000])
    def test_anio_invalido(self, anio):
        with pytest.raises(RangoFechasInvalidoError):
            calcular_cierre_mensual(anio)


class TestColaboradores:

    def test_ganancia_venta_sin_items(self):
        assert ganancia_venta_con_inventario([])({"totalAmount": 100}) == Decimal("0.00")

    def test_gastos_y_nomina(self, gastos_fijos, personal):
        assert total_gastos_fijos(gastos_fijos) == Decimal("100.00")
        assert total_nomina(personal) == Decimal("200.00")
        assert total_gastos_fijos([]) == Decimal("0.00")
