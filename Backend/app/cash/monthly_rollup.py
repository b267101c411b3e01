# ============================================================
# monthly_rollup.py - Cierre mensual (ingresos, ganancia, gastos)
#
# Por cada mes del año pedido:
#   ingresos_servicios = Σ totalCost    de servicios Entregado
#   ingresos_pdv       = Σ totalAmount  de ventas no canceladas
#   ganancia_total     = Σ ganancia por servicio + Σ ganancia por venta
#   gastos_totales     = gastos fijos + nómina (solo meses con actividad)
#   utilidad_neta      = ganancia_total - gastos_totales
# ============================================================

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models_cash import FilaCierreMensual
from .normalizer import (
    CAMPOS_FECHA_SERVICIO,
    CAMPOS_FECHA_VENTA,
    ESTADO_CANCELADO,
    ESTADO_ENTREGADO,
    fecha_registro,
)
from .utils_cash import (
    CERO,
    ZONA_HORARIA_DEFAULT,
    RangoFechasInvalidoError,
    a_decimal,
    redondear_centavos,
    sumar,
)

logger = logging.getLogger(__name__)

MESES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]

FuncionGanancia = Callable[[Dict], Any]

# ============================================================
# GANANCIA POR REGISTRO
# ============================================================

def ganancia_servicio_default(servicio: Dict) -> Any:
    return servicio.get("serviceProfit")


def ganancia_venta_default(venta: Dict) -> Any:
    return venta.get("profit")


def ganancia_venta_con_inventario(inventario: Iterable[Dict]) -> FuncionGanancia:
    """
    Ganancia de una venta = total - comisión de tarjeta - costo de lo vendido.
    El costo unitario sale del inventario si el artículo existe ahí; si no,
    del precio unitario de la línea.
    """
    costos = {
        str(item.get("id")): a_decimal(item.get("unitPrice"), "unitPrice") or CERO
        for item in inventario or []
        if item.get("id") is not None
    }

    def _ganancia(venta: Dict) -> Decimal:
        items = venta.get("items") or []
        if not items:
            return CERO

        costo_total = CERO
        for linea in items:
            cantidad = a_decimal(linea.get("quantity"), "quantity") or CERO
            item_id = str(linea.get("inventoryItemId"))
            if item_id in costos:
                costo_unitario = costos[item_id]
            else:
                costo_unitario = a_decimal(linea.get("unitPrice"), "unitPrice") or CERO
            costo_total += costo_unitario * cantidad

        total = a_decimal(venta.get("totalAmount"), "totalAmount") or CERO
        comision = a_decimal(venta.get("cardCommission"), "cardCommission") or CERO
        return redondear_centavos(total - costo_total - comision)

    return _ganancia

# ============================================================
# AUXILIARES
# ============================================================

def _validar_anio(anio: Any) -> int:
    if isinstance(anio, bool):
        raise RangoFechasInvalidoError(f"Año inválido: {anio!r}")
    try:
        anio = int(anio)
    except (TypeError, ValueError):
        raise RangoFechasInvalidoError(f"Año inválido: {anio!r}")
    if not 1900 <= anio <= 9999:
        raise RangoFechasInvalidoError(f"Año fuera de rango: {anio}")
    return anio


def _monto(registro: Dict, campo: str) -> Decimal:
    valor = a_decimal(registro.get(campo), campo)
    if valor is None:
        logger.warning(f"Registro {registro.get('id', 'sin-id')} sin '{campo}' numérico, se toma 0")
        return CERO
    return valor


def _ganancia(funcion: FuncionGanancia, registro: Dict) -> Decimal:
    return a_decimal(funcion(registro), "ganancia") or CERO


def total_gastos_fijos(gastos_fijos: Iterable[Dict]) -> Decimal:
    return sumar(
        a_decimal(gasto.get("amount"), "amount") or CERO
        for gasto in gastos_fijos or []
        if gasto.get("isActive", True) is not False
    )


def total_nomina(personal: Iterable[Dict]) -> Decimal:
    total = []
    for persona in personal or []:
        if persona.get("isArchived"):
            continue
        salario = persona.get("monthlySalary", persona.get("amount"))
        total.append(a_decimal(salario, "monthlySalary") or CERO)
    return sumar(total)

# ============================================================
# CIERRE MENSUAL
# ============================================================

def calcular_cierre_mensual(
    anio: Any,
    ventas: Iterable[Dict] = (),
    servicios: Iterable[Dict] = (),
    gastos_fijos: Iterable[Dict] = (),
    personal: Iterable[Dict] = (),
    ganancia_venta: Optional[FuncionGanancia] = None,
    ganancia_servicio: Optional[FuncionGanancia] = None,
    zona_horaria: str = ZONA_HORARIA_DEFAULT,
) -> List[FilaCierreMensual]:
    """Doce filas del año pedido, diciembre primero."""
    anio = _validar_anio(anio)
    ganancia_venta = ganancia_venta or ganancia_venta_default
    ganancia_servicio = ganancia_servicio or ganancia_servicio_default

    ingresos_servicios: Dict[int, Decimal] = defaultdict(lambda: CERO)
    ingresos_pdv: Dict[int, Decimal] = defaultdict(lambda: CERO)
    ganancias: Dict[int, Decimal] = defaultdict(lambda: CERO)
    con_actividad = set()

    for servicio in servicios or []:
        if servicio.get("status") != ESTADO_ENTREGADO:
            continue
        fecha: Optional[datetime] = fecha_registro(servicio, CAMPOS_FECHA_SERVICIO, zona_horaria)
        if fecha is None or fecha.year != anio:
            continue
        ingresos_servicios[fecha.month] += _monto(servicio, "totalCost")
        ganancias[fecha.month] += _ganancia(ganancia_servicio, servicio)
        con_actividad.add(fecha.month)

    for venta in ventas or []:
        if venta.get("status") == ESTADO_CANCELADO:
            continue
        fecha = fecha_registro(venta, CAMPOS_FECHA_VENTA, zona_horaria)
        if fecha is None or fecha.year != anio:
            continue
        ingresos_pdv[fecha.month] += _monto(venta, "totalAmount")
        ganancias[fecha.month] += _ganancia(ganancia_venta, venta)
        con_actividad.add(fecha.month)

    gastos_mes = total_gastos_fijos(gastos_fijos)
    nomina_mes = total_nomina(personal)

    filas = []
    for mes in range(12, 0, -1):
        if mes not in con_actividad:
            filas.append(FilaCierreMensual(anio=anio, mes=mes, etiqueta=MESES[mes - 1]))
            continue

        ganancia_total = redondear_centavos(ganancias[mes])
        gastos_totales = redondear_centavos(gastos_mes + nomina_mes)
        filas.append(FilaCierreMensual(
            anio=anio,
            mes=mes,
            etiqueta=MESES[mes - 1],
            ingresos_servicios=redondear_centavos(ingresos_servicios[mes]),
            ingresos_pdv=redondear_centavos(ingresos_pdv[mes]),
            ingresos_totales=redondear_centavos(ingresos_servicios[mes] + ingresos_pdv[mes]),
            ganancia_total=ganancia_total,
            gastos_fijos=gastos_mes,
            nomina=nomina_mes,
            gastos_totales=gastos_totales,
            utilidad_neta=redondear_centavos(ganancia_total - gastos_totales),
        ))

    return filas
