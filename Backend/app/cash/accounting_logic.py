# ============================================================
# accounting_logic.py
# Saldo esperado en caja y corte de caja / conciliación de periodo.
#
# FÓRMULA DEL CAJÓN (solo método Efectivo):
#   saldo_esperado = saldo_inicial
#                  + ventas_efectivo             (entradas de Sale + Service)
#                  + entradas_manuales_efectivo  (entradas ManualLedger)
#                  - salidas_manuales_efectivo   (salidas ManualLedger)
#
# ManualLedger es todo el libro de caja que no es espejo: capturas del
# personal, pagos a proveedores, retiros y gastos de flotilla.
#
# Todo aquí es puro: recibe el snapshot completo de colecciones y
# devuelve el reporte. Guardar el corte es trabajo de quien llama.
# ============================================================

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .aggregator import agregar_movimientos, filtrar_por_rango, ordenar_para_mostrar
from .classifier import es_movimiento_manual, fusionar_movimientos
from .models_cash import (
    CalculoSaldo,
    Direccion,
    EstadoArqueo,
    FuenteMovimiento,
    MovimientoMonetario,
    ReporteConciliacion,
    ResultadoArqueo,
    ResultadoFusion,
    SaldoInicialCaja,
    TipoRelacionado,
)
from .normalizer import (
    normalizar_saldos_iniciales,
    normalizar_servicios,
    normalizar_transacciones,
    normalizar_ventas,
)
from .utils_cash import (
    CENTAVO,
    CERO,
    TOLERANCIA_ARQUEO,
    ZONA_HORARIA_DEFAULT,
    MontoInvalidoError,
    a_decimal,
    calcular_diferencia,
    calcular_total_desglose,
    obtener_rango_fecha,
    parsear_dia,
    redondear_centavos,
    sumar,
    validar_diferencia_aceptable,
)

logger = logging.getLogger(__name__)

FUENTES_VENTA = {FuenteMovimiento.VENTA, FuenteMovimiento.SERVICIO}

ETIQUETAS_FUENTE = {
    FuenteMovimiento.VENTA       : "Venta",
    FuenteMovimiento.SERVICIO    : "Servicio",
    FuenteMovimiento.LIBRO_MANUAL: "Manual",
    FuenteMovimiento.COMPRA      : "Compra",
    FuenteMovimiento.FLOTILLA    : "Flotilla",
}

# El libro es todo ManualLedger; la etiqueta sale del relatedType
ETIQUETAS_TIPO_RELACIONADO = {
    TipoRelacionado.VENTA   : "Venta",
    TipoRelacionado.SERVICIO: "Servicio",
    TipoRelacionado.COMPRA  : "Compra",
    TipoRelacionado.FLOTILLA: "Flotilla",
}

# ============================================================
# LIBRO UNIFICADO
# ============================================================

def construir_libro_movimientos(
    ventas: Iterable[Dict] = (),
    servicios: Iterable[Dict] = (),
    transacciones: Iterable[Dict] = (),
    zona_horaria: str = ZONA_HORARIA_DEFAULT,
    permitir_tipo_desconocido: bool = False,
) -> ResultadoFusion:
    """Normaliza las tres colecciones y las fusiona sin doble conteo."""
    eventos_pago = (
        normalizar_ventas(ventas, zona_horaria)
        + normalizar_servicios(servicios, zona_horaria)
    )
    eventos_libro = normalizar_transacciones(
        transacciones,
        zona_horaria=zona_horaria,
        permitir_tipo_desconocido=permitir_tipo_desconocido,
    )
    return fusionar_movimientos(eventos_pago, eventos_libro)

# ============================================================
# SALDO INICIAL Y SALDO ESPERADO
# ============================================================

def seleccionar_saldo_inicial(
    saldos: Iterable[SaldoInicialCaja],
    fecha_inicio: Any,
    fecha_fin: Any,
) -> Optional[SaldoInicialCaja]:
    """
    El saldo autoritativo de la consulta: el más temprano dentro del rango.
    Sin saldos en el rango → None (el llamador usa 0).
    """
    inicio, fin = obtener_rango_fecha(fecha_inicio, fecha_fin)
    candidatos = [saldo for saldo in saldos if inicio <= saldo.fecha < fin]
    if not candidatos:
        return None
    return min(candidatos, key=lambda saldo: saldo.fecha)


def _suma_efectivo(
    movimientos: List[MovimientoMonetario],
    direccion: Direccion,
    fuentes: set,
) -> Decimal:
    return sumar(
        mov.monto for mov in movimientos
        if mov.direccion == direccion and mov.es_efectivo and mov.fuente in fuentes
    )


def calcular_saldo_esperado(
    saldo_inicial: Any,
    movimientos: Iterable[MovimientoMonetario],
) -> CalculoSaldo:
    inicial = a_decimal(saldo_inicial, "saldo inicial")
    if inicial is None:
        inicial = CERO
    if inicial < 0:
        raise MontoInvalidoError(f"El saldo inicial no puede ser negativo: {inicial}")

    fechados = [mov for mov in movimientos if mov.fecha is not None]

    ventas_efectivo = _suma_efectivo(fechados, Direccion.ENTRADA, FUENTES_VENTA)
    entradas_manuales = _suma_efectivo(fechados, Direccion.ENTRADA, {FuenteMovimiento.LIBRO_MANUAL})
    salidas_manuales = _suma_efectivo(fechados, Direccion.SALIDA, {FuenteMovimiento.LIBRO_MANUAL})

    return CalculoSaldo(
        saldo_inicial=inicial,
        ventas_efectivo=ventas_efectivo,
        entradas_manuales_efectivo=entradas_manuales,
        salidas_manuales_efectivo=salidas_manuales,
        saldo_esperado=redondear_centavos(inicial + ventas_efectivo + entradas_manuales - salidas_manuales),
    )

# ============================================================
# REPORTE DE CONCILIACIÓN / CORTE DE CAJA
# ============================================================

def _como_saldos(registros: Iterable[Any], zona_horaria: str) -> List[SaldoInicialCaja]:
    registros = list(registros or [])
    ya_normalizados = [r for r in registros if isinstance(r, SaldoInicialCaja)]
    crudos = [r for r in registros if not isinstance(r, SaldoInicialCaja)]
    return ya_normalizados + normalizar_saldos_iniciales(crudos, zona_horaria)


def _contar_origenes(movimientos: List[MovimientoMonetario], fuente: FuenteMovimiento) -> int:
    return len({mov.origen_id for mov in movimientos if mov.fuente == fuente})


def construir_reporte_conciliacion(
    fecha_inicio: Any,
    fecha_fin: Any,
    ventas: Iterable[Dict] = (),
    servicios: Iterable[Dict] = (),
    transacciones: Iterable[Dict] = (),
    saldos_iniciales: Iterable[Any] = (),
    zona_horaria: str = ZONA_HORARIA_DEFAULT,
    permitir_tipo_desconocido: bool = False,
) -> ReporteConciliacion:
    """
    Reporte de conciliación para un rango de días completos.

    Un rango sin actividad es válido: todo en cero. Un rango invertido o
    una fecha ilegible es error del llamador (RangoFechasInvalidoError).
    """
    inicio = parsear_dia(fecha_inicio, "fecha_inicio")
    fin = parsear_dia(fecha_fin, "fecha_fin")
    obtener_rango_fecha(inicio, fin)

    fusion = construir_libro_movimientos(
        ventas, servicios, transacciones,
        zona_horaria=zona_horaria,
        permitir_tipo_desconocido=permitir_tipo_desconocido,
    )
    en_rango = filtrar_por_rango(fusion.movimientos, inicio, fin)
    resumen = agregar_movimientos(en_rango)

    saldo = seleccionar_saldo_inicial(_como_saldos(saldos_iniciales, zona_horaria), inicio, fin)
    if saldo is None:
        logger.info(f"Sin saldo inicial entre {inicio} y {fin}, se usa 0")
    calculo = calcular_saldo_esperado(saldo.monto if saldo else CERO, en_rango)

    ordenados = ordenar_para_mostrar(en_rango)

    return ReporteConciliacion(
        fecha_inicio=inicio,
        fecha_fin=fin,
        saldo_inicial=calculo.saldo_inicial,
        entradas_efectivo=redondear_centavos(calculo.ventas_efectivo + calculo.entradas_manuales_efectivo),
        salidas_efectivo=calculo.salidas_manuales_efectivo,
        saldo_final_esperado=calculo.saldo_esperado,
        por_metodo_pago=resumen.por_metodo_pago,
        movimientos=ordenados,
        movimientos_manuales=[mov for mov in ordenados if es_movimiento_manual(mov)],
        calculo=calculo,
        resumen=resumen,
        total_ventas=_contar_origenes(en_rango, FuenteMovimiento.VENTA),
        total_servicios=_contar_origenes(en_rango, FuenteMovimiento.SERVICIO),
    )


def construir_corte_caja(fecha: Any, **snapshot) -> ReporteConciliacion:
    """Corte de caja de un solo día."""
    return construir_reporte_conciliacion(fecha, fecha, **snapshot)

# ============================================================
# ARQUEO (EFECTIVO CONTADO VS ESPERADO)
# ============================================================

def verificar_arqueo(
    reporte: ReporteConciliacion,
    efectivo_contado: Any,
    tolerancia: Decimal = TOLERANCIA_ARQUEO,
    desglose_fisico: Optional[List[Dict]] = None,
) -> ResultadoArqueo:
    contado = a_decimal(efectivo_contado, "efectivo contado")
    if contado is None or contado < 0:
        raise MontoInvalidoError(f"Efectivo contado inválido: {efectivo_contado!r}")

    if desglose_fisico:
        total_desglose = calcular_total_desglose(desglose_fisico)
        if abs(total_desglose - contado) > CENTAVO:
            raise MontoInvalidoError(
                f"El desglose físico ({total_desglose}) no coincide con el efectivo contado ({contado})"
            )

    diferencia = calcular_diferencia(reporte.saldo_final_esperado, contado)
    aceptable, mensaje = validar_diferencia_aceptable(diferencia, tolerancia)

    if diferencia > 0:
        estado = EstadoArqueo.SOBRANTE
    elif diferencia < 0:
        estado = EstadoArqueo.FALTANTE
    else:
        estado = EstadoArqueo.EXACTO

    return ResultadoArqueo(
        efectivo_esperado=reporte.saldo_final_esperado,
        efectivo_contado=contado,
        diferencia=diferencia,
        estado=estado,
        aceptable=aceptable,
        mensaje=mensaje,
    )

# ============================================================
# FILAS PARA EXPORTACIÓN
# ============================================================

def _etiqueta_fuente(mov: MovimientoMonetario) -> str:
    if mov.fuente == FuenteMovimiento.LIBRO_MANUAL and mov.tipo_relacionado in ETIQUETAS_TIPO_RELACIONADO:
        return ETIQUETAS_TIPO_RELACIONADO[mov.tipo_relacionado]
    return ETIQUETAS_FUENTE[mov.fuente]


def filas_exportacion(reporte: ReporteConciliacion) -> List[Dict[str, Any]]:
    """Una fila por movimiento del reporte, en el orden del reporte."""
    return [
        {
            "fecha"         : mov.fecha,
            "tipo"          : "Entrada" if mov.direccion == Direccion.ENTRADA else "Salida",
            "fuente"        : _etiqueta_fuente(mov),
            "concepto"      : mov.descripcion,
            "metodo_pago"   : mov.metodo_pago,
            "monto"         : mov.monto,
            "actor"         : mov.actor,
            "registrado_por": mov.registrado_por or "",
            "nota"          : mov.nota or "",
        }
        for mov in reporte.movimientos
    ]
