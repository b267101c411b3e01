# ============================================================
# aggregator.py - Filtro por rango y sumas agrupadas
# ============================================================

from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from .models_cash import Direccion, MovimientoMonetario, ResumenAgregado
from .utils_cash import CERO, obtener_rango_fecha, redondear_centavos, sumar


def filtrar_por_rango(
    movimientos: Iterable[MovimientoMonetario],
    fecha_inicio: Any,
    fecha_fin: Any,
) -> List[MovimientoMonetario]:
    """
    Movimientos cuya fecha cae entre el inicio de 'fecha_inicio' y el
    final de 'fecha_fin' (ambos días completos). Sin fecha → fuera.
    """
    inicio, fin = obtener_rango_fecha(fecha_inicio, fecha_fin)
    return [
        mov for mov in movimientos
        if mov.fecha is not None and inicio <= mov.fecha < fin
    ]


def ordenar_para_mostrar(movimientos: Iterable[MovimientoMonetario]) -> List[MovimientoMonetario]:
    """Más reciente primero; empates conservan el orden de entrada."""
    fechados = [mov for mov in movimientos if mov.fecha is not None]
    return sorted(fechados, key=lambda mov: mov.fecha, reverse=True)


def _con_signo(mov: MovimientoMonetario) -> Decimal:
    return mov.monto if mov.direccion == Direccion.ENTRADA else -mov.monto


def agregar_movimientos(movimientos: Iterable[MovimientoMonetario]) -> ResumenAgregado:
    validos = [mov for mov in movimientos if mov.fecha is not None]

    entradas = [mov for mov in validos if mov.direccion == Direccion.ENTRADA]
    salidas = [mov for mov in validos if mov.direccion == Direccion.SALIDA]

    por_metodo: Dict[str, Decimal] = defaultdict(lambda: CERO)
    por_fuente: Dict[str, Decimal] = defaultdict(lambda: CERO)
    for mov in validos:
        por_metodo[mov.metodo_pago] += _con_signo(mov)
        por_fuente[mov.fuente.value] += _con_signo(mov)

    return ResumenAgregado(
        total_entradas=sumar(mov.monto for mov in entradas),
        total_salidas=sumar(mov.monto for mov in salidas),
        entradas_efectivo=sumar(mov.monto for mov in entradas if mov.es_efectivo),
        salidas_efectivo=sumar(mov.monto for mov in salidas if mov.es_efectivo),
        por_metodo_pago={metodo: redondear_centavos(total) for metodo, total in por_metodo.items()},
        por_fuente={fuente: redondear_centavos(total) for fuente, total in por_fuente.items()},
        cantidad_movimientos=len(validos),
    )
