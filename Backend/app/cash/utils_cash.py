# ============================================================
# utils_cash.py - Utilidades para cálculos de caja
# ============================================================

import math
import os
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

import pytz
from dotenv import load_dotenv

load_dotenv()

ZONA_HORARIA_DEFAULT = os.getenv("CAJA_ZONA_HORARIA", "America/Mexico_City")
TOLERANCIA_ARQUEO = Decimal(os.getenv("CAJA_TOLERANCIA_ARQUEO", "10"))

CENTAVO = Decimal("0.01")
CERO = Decimal("0.00")

# ============================================================
# ERRORES
# ============================================================

class CajaError(ValueError):
    """Error del llamador: la consulta no se puede calcular sin engañar."""


class RangoFechasInvalidoError(CajaError):
    pass


class MontoInvalidoError(CajaError):
    pass


class TipoMovimientoInvalidoError(CajaError):
    pass

# ============================================================
# MONTOS
# ============================================================

def redondear_centavos(monto: Decimal) -> Decimal:
    return monto.quantize(CENTAVO, rounding=ROUND_HALF_UP)


def a_decimal(valor: Any, campo: str = "monto") -> Optional[Decimal]:
    """
    Convierte un monto crudo a Decimal redondeado a centavos.

    Devuelve None si el valor falta o no es numérico (problema de calidad
    de datos, lo decide el llamador). Lanza MontoInvalidoError si el valor
    es numérico pero no finito (NaN, infinito).
    """
    if valor is None or isinstance(valor, bool):
        return None

    if isinstance(valor, Decimal):
        numero = valor
    elif isinstance(valor, int):
        numero = Decimal(valor)
    elif isinstance(valor, float):
        if not math.isfinite(valor):
            raise MontoInvalidoError(f"El {campo} no es un número finito: {valor!r}")
        numero = Decimal(str(valor))
    elif isinstance(valor, str):
        texto = valor.strip().replace("$", "").replace(",", "")
        if not texto:
            return None
        try:
            numero = Decimal(texto)
        except InvalidOperation:
            return None
    else:
        return None

    if not numero.is_finite():
        raise MontoInvalidoError(f"El {campo} no es un número finito: {valor!r}")

    return redondear_centavos(numero)


def sumar(montos) -> Decimal:
    return redondear_centavos(sum(montos, CERO))

# ============================================================
# FECHAS
# ============================================================

FORMATOS_FECHA = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
]


def _a_hora_local(valor: datetime, zona_horaria: str) -> datetime:
    """Datetime con zona → hora local del negocio sin tzinfo."""
    if valor.tzinfo is None:
        return valor
    tz = pytz.timezone(zona_horaria)
    return valor.astimezone(tz).replace(tzinfo=None)


def parsear_fecha(valor: Any, zona_horaria: str = ZONA_HORARIA_DEFAULT) -> Optional[datetime]:
    """
    Interpreta una fecha tal como llega de la base documental.

    Acepta datetime, date, strings ISO-8601 (con 'Z' u offset), los formatos
    de FORMATOS_FECHA, timestamps estilo Firestore ({"seconds": ...}) y
    objetos con to_datetime(). Devuelve None si ninguna lectura funciona.
    """
    if valor is None or isinstance(valor, bool):
        return None

    if isinstance(valor, datetime):
        return _a_hora_local(valor, zona_horaria)

    if isinstance(valor, date):
        return datetime.combine(valor, time.min)

    if isinstance(valor, dict):
        segundos = valor.get("seconds", valor.get("_seconds"))
        if isinstance(segundos, (int, float)) and not isinstance(segundos, bool):
            return _a_hora_local(datetime.fromtimestamp(segundos, tz=pytz.utc), zona_horaria)
        return None

    if hasattr(valor, "to_datetime"):
        try:
            return parsear_fecha(valor.to_datetime(), zona_horaria)
        except (TypeError, ValueError):
            return None

    if not isinstance(valor, str):
        return None

    texto = valor.strip()
    if not texto:
        return None

    try:
        iso = texto[:-1] + "+00:00" if texto.endswith("Z") else texto
        return _a_hora_local(datetime.fromisoformat(iso), zona_horaria)
    except ValueError:
        pass

    for fmt in FORMATOS_FECHA:
        try:
            return datetime.strptime(texto, fmt)
        except ValueError:
            continue

    return None


def parsear_dia(valor: Any, campo: str = "fecha") -> date:
    """Fecha de consulta (YYYY-MM-DD o date). Error del llamador si no es válida."""
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    if isinstance(valor, str):
        try:
            return datetime.strptime(valor.strip(), "%Y-%m-%d").date()
        except ValueError:
            pass
    raise RangoFechasInvalidoError(f"'{campo}' debe tener formato YYYY-MM-DD")


def obtener_rango_fecha(fecha_inicio: Any, fecha_fin: Any) -> Tuple[datetime, datetime]:
    """
    Límites [inicio, fin) de un rango de días completos.
    El día 'fecha_fin' se incluye entero: fin = fecha_fin + 1 día a las 00:00.
    """
    inicio = parsear_dia(fecha_inicio, "fecha_inicio")
    fin = parsear_dia(fecha_fin, "fecha_fin")

    if inicio > fin:
        raise RangoFechasInvalidoError(
            f"Rango de fechas invertido: {inicio.isoformat()} es posterior a {fin.isoformat()}"
        )

    return (
        datetime.combine(inicio, time.min),
        datetime.combine(fin + timedelta(days=1), time.min),
    )


def fecha_hoy(zona_horaria: str = ZONA_HORARIA_DEFAULT) -> str:
    return datetime.now(pytz.timezone(zona_horaria)).strftime("%Y-%m-%d")

# ============================================================
# FORMATEADORES
# ============================================================

def formatear_monto(monto: Decimal) -> str:
    return f"${monto:,.2f}"


def formatear_diferencia(diferencia: Decimal) -> str:
    """
    Formatea la diferencia con signo
    Positivo = Sobrante, Negativo = Faltante
    """
    if diferencia > 0:
        return f"+{diferencia:.2f} (Sobrante)"
    elif diferencia < 0:
        return f"{diferencia:.2f} (Faltante)"
    else:
        return "0.00 (Exacto)"

# ============================================================
# ARQUEO
# ============================================================

def calcular_total_desglose(desglose: List[Dict]) -> Decimal:
    """Total de un desglose físico de billetes/monedas."""
    if not desglose:
        return CERO
    return sumar(a_decimal(item.get("subtotal"), "subtotal") or CERO for item in desglose)


def calcular_diferencia(esperado: Decimal, contado: Decimal) -> Decimal:
    """
    Diferencia entre efectivo contado y esperado.
    Positivo = Sobrante, Negativo = Faltante
    """
    return redondear_centavos(contado - esperado)


def validar_diferencia_aceptable(diferencia: Decimal, tolerancia: Decimal = TOLERANCIA_ARQUEO) -> tuple:
    """
    Valida si la diferencia está dentro de la tolerancia
    Returns: (es_aceptable, mensaje)
    """
    diferencia_abs = abs(diferencia)

    if diferencia_abs == 0:
        return (True, "Cierre exacto")
    tipo = "Sobrante" if diferencia > 0 else "Faltante"
    if diferencia_abs <= tolerancia:
        return (True, f"{tipo} dentro de tolerancia ({formatear_monto(diferencia_abs)})")
    return (False, f"{tipo} excede tolerancia ({formatear_monto(diferencia_abs)})")

# ============================================================
# GENERADORES DE IDs
# ============================================================

def generar_cierre_id(fecha: str, automatico: bool = False) -> str:
    """
    ID del cierre archivado de un día
    Formato: CC-YYYY-MM-DD o CC-AUTO-YYYY-MM-DD
    """
    return f"CC-AUTO-{fecha}" if automatico else f"CC-{fecha}"


def generar_saldo_inicial_id(fecha: str) -> str:
    """Un saldo inicial por día: el id es la fecha."""
    return f"SI-{fecha}"
