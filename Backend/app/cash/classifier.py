# ============================================================
# classifier.py
# Une movimientos de pagos (ventas/servicios) con el libro de caja
# sin contar dos veces el mismo dinero.
#
# REGLA ÚNICA:
#   Una transacción del libro con relatedType Sale/Service
#   cuyo relatedId ya aportó movimientos de pago es un ESPEJO y se
#   excluye. Los pagos del registro original son la fuente de verdad.
#   Compras y flotilla no traen pagos propios: su transacción del libro
#   es el único registro de ese dinero y siempre entra.
# ============================================================

import logging
from typing import Iterable, Set, Tuple

from .models_cash import (
    FuenteMovimiento,
    MovimientoMonetario,
    ResultadoFusion,
    TipoRelacionado,
)

logger = logging.getLogger(__name__)

TIPOS_ESPEJO = {
    TipoRelacionado.VENTA,
    TipoRelacionado.SERVICIO,
}

FUENTE_A_TIPO = {
    FuenteMovimiento.VENTA: TipoRelacionado.VENTA,
    FuenteMovimiento.SERVICIO: TipoRelacionado.SERVICIO,
}


def es_movimiento_manual(movimiento: MovimientoMonetario) -> bool:
    """Captura directa del personal: ni espejo ni compra ni flotilla."""
    return (
        movimiento.fuente == FuenteMovimiento.LIBRO_MANUAL
        and movimiento.tipo_relacionado in (None, TipoRelacionado.MANUAL)
    )


def _origenes_cubiertos(eventos_pago: Iterable[MovimientoMonetario]) -> Set[Tuple[TipoRelacionado, str]]:
    return {
        (FUENTE_A_TIPO[mov.fuente], mov.origen_id)
        for mov in eventos_pago
        if mov.fuente in FUENTE_A_TIPO
    }


def es_espejo(movimiento: MovimientoMonetario, cubiertos: Set[Tuple[TipoRelacionado, str]]) -> bool:
    return (
        movimiento.tipo_relacionado in TIPOS_ESPEJO
        and movimiento.relacionado_id is not None
        and (movimiento.tipo_relacionado, movimiento.relacionado_id) in cubiertos
    )


def fusionar_movimientos(
    eventos_pago: Iterable[MovimientoMonetario],
    eventos_libro: Iterable[MovimientoMonetario],
) -> ResultadoFusion:
    """
    Devuelve los pagos seguidos de las transacciones del libro que no son
    espejo de un pago ya incluido. Las excluidas se reportan aparte.
    """
    pagos = list(eventos_pago)
    cubiertos = _origenes_cubiertos(pagos)

    libro = []
    excluidos = []
    for movimiento in eventos_libro:
        if es_espejo(movimiento, cubiertos):
            excluidos.append(movimiento)
        else:
            libro.append(movimiento)

    if excluidos:
        logger.debug(f"{len(excluidos)} transacciones espejo excluidas de la fusión")

    return ResultadoFusion(movimientos=pagos + libro, espejos_excluidos=excluidos)
