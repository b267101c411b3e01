"""
Tests de la fusión pagos + libro de caja (sin doble conteo).
"""

from decimal import Decimal

from app.cash.classifier import es_movimiento_manual, fusionar_movimientos
from app.cash.models_cash import Direccion
from app.cash.normalizer import (
    normalizar_servicios,
    normalizar_transacciones,
    normalizar_ventas,
)
from app.cash.utils_cash import sumar


def _entradas_efectivo(movimientos):
    return sumar(
        m.monto for m in movimientos
        if m.direccion == Direccion.ENTRADA and m.es_efectivo
    )


class TestFusionSinDobleConteo:
    """Un peso que se movió cuenta una sola vez"""

    def test_espejo_de_servicio_se_excluye(self, servicio_entregado, espejo_servicio, salida_manual):
        fusion = fusionar_movimientos(
            normalizar_servicios([servicio_entregado]),
            normalizar_transacciones([espejo_servicio, salida_manual]),
        )

        ids = [m.movimiento_id for m in fusion.movimientos]
        assert ids == ["SRV1-servicio-pago-0", "TX1-libro"]
        assert [m.movimiento_id for m in fusion.espejos_excluidos] == ["TX2-libro"]
        assert _entradas_efectivo(fusion.movimientos) == Decimal("300.00")

    def test_espejo_con_alias_en_espanol(self, venta_mixta):
        espejo = {
            "id": "TX9",
            "date": "2024-03-15T12:31:00",
            "type": "Entrada",
            "amount": 200,
            "relatedType": "Venta",
            "relatedId": "VTA1",
        }
        fusion = fusionar_movimientos(normalizar_ventas([venta_mixta]), normalizar_transacciones([espejo]))

        assert len(fusion.espejos_excluidos) == 1
        assert all(m.origen_id == "VTA1" for m in fusion.movimientos)

    def test_espejo_sin_registro_origen_se_conserva(self, espejo_servicio):
        """Si el servicio no está en el snapshot, el libro es la única fuente"""
        fusion = fusionar_movimientos([], normalizar_transacciones([espejo_servicio]))

        assert [m.movimiento_id for m in fusion.movimientos] == ["TX2-libro"]
        assert fusion.espejos_excluidos == []
        assert _entradas_efectivo(fusion.movimientos) == Decimal("300.00")

    def test_espejo_de_servicio_cancelado_se_conserva(self, servicio_entregado, espejo_servicio):
        servicio_entregado["status"] = "Cancelado"
        fusion = fusionar_movimientos(
            normalizar_servicios([servicio_entregado]),
            normalizar_transacciones([espejo_servicio]),
        )
        assert [m.movimiento_id for m in fusion.movimientos] == ["TX2-libro"]

    def test_tipo_cruzado_no_es_espejo(self, servicio_entregado, espejo_servicio):
        """Una entrada ligada a una venta con el mismo id que un servicio no se excluye"""
        espejo_servicio["relatedType"] = "Sale"
        fusion = fusionar_movimientos(
            normalizar_servicios([servicio_entregado]),
            normalizar_transacciones([espejo_servicio]),
        )
        assert fusion.espejos_excluidos == []
        assert len(fusion.movimientos) == 2

    def test_compra_nunca_es_espejo(self, servicio_entregado, salida_manual):
        """Aunque relatedId coincida con un registro cobrado, la compra cuenta"""
        salida_manual["relatedType"] = "Compra"
        salida_manual["relatedId"] = "SRV1"
        fusion = fusionar_movimientos(
            normalizar_servicios([servicio_entregado]),
            normalizar_transacciones([salida_manual]),
        )
        assert fusion.espejos_excluidos == []
        assert [m.movimiento_id for m in fusion.movimientos] == ["SRV1-servicio-pago-0", "TX1-libro"]

    def test_manual_se_fusiona_siempre(self, servicio_entregado, salida_manual):
        fusion = fusionar_movimientos(
            normalizar_servicios([servicio_entregado]),
            normalizar_transacciones([salida_manual]),
        )
        assert len(fusion.movimientos) == 2
        assert fusion.espejos_excluidos == []


class TestEsMovimientoManual:

    def test_manual_sin_tipo(self, salida_manual):
        assert es_movimiento_manual(normalizar_transacciones([salida_manual])[0])

    def test_manual_explicito(self, salida_manual):
        salida_manual["relatedType"] = "Manual"
        assert es_movimiento_manual(normalizar_transacciones([salida_manual])[0])

    def test_compra_no_es_manual(self, salida_manual):
        salida_manual["relatedType"] = "Compra"
        salida_manual["relatedId"] = "OC-1"
        assert not es_movimiento_manual(normalizar_transacciones([salida_manual])[0])

    def test_pago_de_servicio_no_es_manual(self, servicio_entregado):
        assert not es_movimiento_manual(normalizar_servicios([servicio_entregado])[0])
