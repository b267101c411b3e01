# ============================================================
# normalizer.py
# Convierte ventas, servicios entregados y transacciones de caja
# en MovimientoMonetario.
#
# REGLAS:
#   - Una venta/servicio aporta un movimiento por cada pago en 'payments'.
#     Sin 'payments' → un solo movimiento con el total del registro;
#     con método combinado (Efectivo+Transferencia) se reparte usando
#     amountInCash / amountInCard / amountInTransfer.
#   - Fecha: fecha del pago → entrega → fecha de venta/servicio.
#     Si ninguna se puede leer, el movimiento se descarta (warning).
#   - Montos negativos (devoluciones) se voltean: direccion = out.
#   - Ventas canceladas y servicios no entregados no aportan nada.
#   - Todo el libro de caja es fuente ManualLedger; relatedType conserva
#     si vino de una compra o de flotilla.
# ============================================================

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models_cash import (
    METODO_EFECTIVO,
    Direccion,
    FuenteMovimiento,
    MovimientoMonetario,
    SaldoInicialCaja,
    TipoRelacionado,
)
from .utils_cash import (
    CERO,
    ZONA_HORARIA_DEFAULT,
    MontoInvalidoError,
    TipoMovimientoInvalidoError,
    a_decimal,
    parsear_fecha,
)

logger = logging.getLogger(__name__)

ESTADO_CANCELADO = "Cancelado"
ESTADO_ENTREGADO = "Entregado"

# ============================================================
# MAPEOS
# ============================================================

MAPEO_METODOS_PAGO = {
    "efectivo"      : "Efectivo",
    "cash"          : "Efectivo",
    "tarjeta"       : "Tarjeta",
    "tarjeta msi"   : "Tarjeta MSI",
    "transferencia" : "Transferencia",
}

MAPEO_TIPO_LIBRO = {
    "in"      : Direccion.ENTRADA,
    "entrada" : Direccion.ENTRADA,
    "ingreso" : Direccion.ENTRADA,
    "out"     : Direccion.SALIDA,
    "salida"  : Direccion.SALIDA,
    "egreso"  : Direccion.SALIDA,
}

# Valores guardados por la app (español) y los canónicos (inglés)
MAPEO_TIPO_RELACIONADO = {
    "sale"           : TipoRelacionado.VENTA,
    "venta"          : TipoRelacionado.VENTA,
    "service"        : TipoRelacionado.SERVICIO,
    "servicio"       : TipoRelacionado.SERVICIO,
    "purchase"       : TipoRelacionado.COMPRA,
    "compra"         : TipoRelacionado.COMPRA,
    "cuentaporpagar" : TipoRelacionado.COMPRA,
    "fleet"          : TipoRelacionado.FLOTILLA,
    "flotilla"       : TipoRelacionado.FLOTILLA,
    "retirosocio"    : TipoRelacionado.FLOTILLA,
    "gastovehiculo"  : TipoRelacionado.FLOTILLA,
    "manual"         : TipoRelacionado.MANUAL,
}

# Registros viejos sin 'payments': parte de cada método en su propio campo
CAMPOS_MONTO_METODO = {
    "Efectivo"      : "amountInCash",
    "Tarjeta"       : "amountInCard",
    "Transferencia" : "amountInTransfer",
}

# Fecha propia del registro, en orden de preferencia
CAMPOS_FECHA_VENTA = ("saleDate",)
CAMPOS_FECHA_SERVICIO = ("deliveryDateTime", "serviceDate")


def normalizar_metodo(metodo_raw: Any) -> str:
    """Método de pago canónico; valores desconocidos se conservan tal cual."""
    if metodo_raw is None or not str(metodo_raw).strip():
        logger.warning("Método de pago vacío, se asume Efectivo")
        return METODO_EFECTIVO
    texto = " ".join(str(metodo_raw).split())
    return MAPEO_METODOS_PAGO.get(texto.lower(), texto)


def normalizar_tipo_relacionado(valor: Any) -> Optional[TipoRelacionado]:
    if valor is None or not str(valor).strip():
        return None
    tipo = MAPEO_TIPO_RELACIONADO.get(str(valor).strip().lower())
    if tipo is None:
        logger.warning(f"relatedType desconocido '{valor}', se trata como Manual")
        return TipoRelacionado.MANUAL
    return tipo


def _primer_fecha(candidatos: Iterable[Any], zona_horaria: str) -> Optional[datetime]:
    for valor in candidatos:
        fecha = parsear_fecha(valor, zona_horaria)
        if fecha is not None:
            return fecha
    return None


def fecha_registro(
    registro: Dict,
    campos: Iterable[str],
    zona_horaria: str = ZONA_HORARIA_DEFAULT,
) -> Optional[datetime]:
    """Primera fecha legible del registro entre 'campos'. También la usa el cierre mensual."""
    return _primer_fecha([registro.get(campo) for campo in campos], zona_horaria)


def _texto(valor: Any) -> Optional[str]:
    if valor is None:
        return None
    texto = str(valor).strip()
    return texto or None


def _folio(registro: Dict) -> str:
    return str(registro.get("folio") or str(registro.get("id", ""))[-6:])

# ============================================================
# VENTAS Y SERVICIOS
# ============================================================

def _partidas_combinadas(
    registro: Dict,
    metodo_legado: str,
    campo_total: str,
    base_id: str,
) -> List[Tuple[str, Dict]]:
    """
    Reparte un total con método combinado ('Efectivo+Transferencia').
    Cada método toma su campo amountIn*; el que no lo trae se queda con
    el resto del total. Ids: base-0, base-1... según la posición del método.
    """
    metodos = [normalizar_metodo(parte) for parte in metodo_legado.split("+")]
    explicitos = [
        a_decimal(registro.get(CAMPOS_MONTO_METODO.get(metodo, "")), f"monto en {metodo} de {base_id}")
        for metodo in metodos
    ]

    total = a_decimal(registro.get(campo_total), f"{campo_total} de {base_id}")
    resto = None
    if total is not None:
        resto = total - sum((monto for monto in explicitos if monto is not None), CERO)

    sin_monto = [indice for indice, monto in enumerate(explicitos) if monto is None]
    partidas = []
    for indice, (metodo, monto) in enumerate(zip(metodos, explicitos)):
        if monto is None:
            # Solo el último método sin campo propio recibe el resto
            if indice != sin_monto[-1] or resto is None:
                continue
            if resto < 0:
                logger.warning(f"{base_id}: los montos por método superan el total, se ignora el resto")
                continue
            monto = resto
        if monto == 0:
            continue
        partidas.append((f"{base_id}-{indice}", {"amount": monto, "method": metodo}))
    return partidas


def _movimientos_de_pagos(
    registro: Dict,
    fuente: FuenteMovimiento,
    prefijo: str,
    campo_total: str,
    fechas_base: List[Any],
    actor: str,
    descripcion: str,
    zona_horaria: str,
) -> List[MovimientoMonetario]:
    """
    Desglosa los pagos de una venta o servicio.
    'fechas_base' es la cadena de respaldo cuando el pago no trae fecha.
    """
    origen_id = str(registro["id"])
    registrado_por = _texto(registro.get("registeredByName"))
    pagos = registro.get("payments")

    if isinstance(pagos, list) and pagos:
        partidas = [
            (f"{origen_id}-{prefijo}-pago-{indice}", pago if isinstance(pago, dict) else {})
            for indice, pago in enumerate(pagos)
        ]
    else:
        metodo_legado = registro.get("paymentMethod") or METODO_EFECTIVO
        logger.warning(
            f"{fuente.value} {origen_id} sin arreglo de pagos, se usa {campo_total} "
            f"con método {metodo_legado}"
        )
        base_id = f"{origen_id}-{prefijo}-total"
        if "+" in str(metodo_legado):
            partidas = _partidas_combinadas(registro, str(metodo_legado), campo_total, base_id)
        else:
            partidas = [(base_id, {"amount": registro.get(campo_total), "method": metodo_legado})]

    movimientos = []
    for movimiento_id, pago in partidas:
        monto = a_decimal(pago.get("amount"), f"monto del pago {movimiento_id}")
        if monto is None:
            logger.warning(f"Pago {movimiento_id} sin monto numérico, se descarta")
            continue

        fecha = _primer_fecha(
            [pago.get("date"), pago.get("paidAt"), pago.get("createdAt"), *fechas_base],
            zona_horaria,
        )
        if fecha is None:
            logger.warning(f"Pago {movimiento_id} sin fecha legible, se descarta")
            continue

        movimientos.append(MovimientoMonetario(
            movimiento_id=movimiento_id,
            fecha=fecha,
            direccion=Direccion.SALIDA if monto < 0 else Direccion.ENTRADA,
            fuente=fuente,
            metodo_pago=normalizar_metodo(pago.get("method")),
            monto=abs(monto),
            actor=actor,
            descripcion=descripcion,
            origen_id=origen_id,
            registrado_por=registrado_por,
            nota=_texto(pago.get("folio") or pago.get("note")),
        ))

    return movimientos


def normalizar_ventas(
    ventas: Iterable[Dict],
    zona_horaria: str = ZONA_HORARIA_DEFAULT,
) -> List[MovimientoMonetario]:
    movimientos: List[MovimientoMonetario] = []
    for venta in ventas:
        if venta.get("status") == ESTADO_CANCELADO:
            continue
        if not venta.get("id"):
            logger.warning("Venta sin id, se descarta")
            continue

        movimientos.extend(_movimientos_de_pagos(
            venta,
            fuente=FuenteMovimiento.VENTA,
            prefijo="venta",
            campo_total="totalAmount",
            fechas_base=[venta.get(campo) for campo in CAMPOS_FECHA_VENTA],
            actor=_texto(venta.get("customerName")) or "Cliente Mostrador",
            descripcion=f"Pago Venta #{_folio(venta)}",
            zona_horaria=zona_horaria,
        ))
    return movimientos


def _asesor_servicio(servicio: Dict) -> str:
    return (
        _texto(servicio.get("serviceAdvisorName"))
        or _texto(servicio.get("deliveredByName"))
        or _texto(servicio.get("customerName"))
        or "N/A"
    )


def normalizar_servicios(
    servicios: Iterable[Dict],
    zona_horaria: str = ZONA_HORARIA_DEFAULT,
) -> List[MovimientoMonetario]:
    movimientos: List[MovimientoMonetario] = []
    for servicio in servicios:
        # Cancelados, cotizaciones y servicios en proceso no mueven dinero
        if servicio.get("status") != ESTADO_ENTREGADO:
            continue
        if not servicio.get("id"):
            logger.warning("Servicio sin id, se descarta")
            continue

        movimientos.extend(_movimientos_de_pagos(
            servicio,
            fuente=FuenteMovimiento.SERVICIO,
            prefijo="servicio",
            campo_total="totalCost",
            fechas_base=[servicio.get(campo) for campo in CAMPOS_FECHA_SERVICIO],
            actor=_asesor_servicio(servicio),
            descripcion=f"Pago Servicio #{_folio(servicio)}",
            zona_horaria=zona_horaria,
        ))
    return movimientos

# ============================================================
# TRANSACCIONES DE CAJA (LIBRO)
# ============================================================

def _direccion_libro(transaccion: Dict, permitir_tipo_desconocido: bool) -> Direccion:
    tipo_raw = transaccion.get("type")
    direccion = MAPEO_TIPO_LIBRO.get(str(tipo_raw or "").strip().lower())
    if direccion is not None:
        return direccion

    if not permitir_tipo_desconocido:
        raise TipoMovimientoInvalidoError(
            f"Transacción {transaccion.get('id')}: tipo '{tipo_raw}' no es Entrada ni Salida"
        )
    logger.warning(
        f"Transacción {transaccion.get('id')}: tipo '{tipo_raw}' desconocido, se asume entrada"
    )
    return Direccion.ENTRADA


def normalizar_transacciones(
    transacciones: Iterable[Dict],
    zona_horaria: str = ZONA_HORARIA_DEFAULT,
    permitir_tipo_desconocido: bool = False,
) -> List[MovimientoMonetario]:
    """
    Cada transacción del libro de caja es exactamente un movimiento.
    Un 'type' que no sea Entrada/Salida es error del llamador salvo que
    se pida el comportamiento heredado (asumir entrada).
    """
    movimientos: List[MovimientoMonetario] = []
    for indice, transaccion in enumerate(transacciones):
        origen_id = str(transaccion.get("id") or f"sin-id-{indice}")
        movimiento_id = f"{origen_id}-libro"

        direccion = _direccion_libro(transaccion, permitir_tipo_desconocido)

        monto = a_decimal(transaccion.get("amount"), f"monto de la transacción {origen_id}")
        if monto is None:
            logger.warning(f"Transacción {origen_id} sin monto numérico, se descarta")
            continue
        if monto < 0:
            direccion = Direccion.SALIDA if direccion == Direccion.ENTRADA else Direccion.ENTRADA

        fecha = _primer_fecha([transaccion.get("date"), transaccion.get("createdAt")], zona_horaria)
        if fecha is None:
            logger.warning(f"Transacción {origen_id} sin fecha legible, se descarta")
            continue

        tipo_relacionado = normalizar_tipo_relacionado(transaccion.get("relatedType"))
        usuario = _texto(transaccion.get("userName")) or _texto(transaccion.get("user")) or "Sistema"

        movimientos.append(MovimientoMonetario(
            movimiento_id=movimiento_id,
            fecha=fecha,
            direccion=direccion,
            fuente=FuenteMovimiento.LIBRO_MANUAL,
            tipo_relacionado=tipo_relacionado,
            relacionado_id=_texto(transaccion.get("relatedId")),
            metodo_pago=normalizar_metodo(transaccion.get("paymentMethod") or METODO_EFECTIVO),
            monto=abs(monto),
            actor=usuario,
            descripcion=_texto(transaccion.get("concept")) or _texto(transaccion.get("description")) or "Movimiento de Caja",
            origen_id=origen_id,
            registrado_por=usuario,
            nota=_texto(transaccion.get("note") or transaccion.get("notes")),
        ))
    return movimientos

# ============================================================
# SALDOS INICIALES
# ============================================================

def normalizar_saldos_iniciales(
    registros: Iterable[Dict],
    zona_horaria: str = ZONA_HORARIA_DEFAULT,
) -> List[SaldoInicialCaja]:
    saldos = []
    for registro in registros:
        fecha = parsear_fecha(registro.get("date"), zona_horaria)
        if fecha is None:
            logger.warning(f"Saldo inicial con fecha ilegible ({registro.get('date')!r}), se ignora")
            continue

        monto = a_decimal(registro.get("amount"), "saldo inicial")
        if monto is None:
            logger.warning(f"Saldo inicial del {fecha:%Y-%m-%d} sin monto, se ignora")
            continue
        if monto < 0:
            raise MontoInvalidoError(f"Saldo inicial negativo el {fecha:%Y-%m-%d}: {monto}")

        saldos.append(SaldoInicialCaja(
            fecha=fecha,
            monto=monto,
            establecido_por=_texto(registro.get("userName")) or _texto(registro.get("setBy")) or "Sistema",
            establecido_por_id=_texto(registro.get("userId")),
        ))
    return saldos
