# ============================================================
# models_cash.py - Modelos Pydantic para conciliación y cierre de caja
# ============================================================

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================
# ENUMS
# ============================================================

class Direccion(str, Enum):
    ENTRADA = "in"
    SALIDA = "out"

class FuenteMovimiento(str, Enum):
    VENTA = "Sale"
    SERVICIO = "Service"
    LIBRO_MANUAL = "ManualLedger"
    COMPRA = "Purchase"
    FLOTILLA = "Fleet"

class TipoRelacionado(str, Enum):
    VENTA = "Sale"
    SERVICIO = "Service"
    COMPRA = "Purchase"
    FLOTILLA = "Fleet"
    MANUAL = "Manual"

class EstadoArqueo(str, Enum):
    EXACTO = "exacto"
    SOBRANTE = "sobrante"
    FALTANTE = "faltante"

class EstadoCierre(str, Enum):
    CERRADO = "cerrado"
    CERRADO_AUTOMATICO = "cerrado_automatico"

METODO_EFECTIVO = "Efectivo"

# ============================================================
# MODELO CANÓNICO
# ============================================================

class MovimientoMonetario(BaseModel):
    """
    Un peso que entró o salió, sin importar de qué proceso vino.
    El signo lo lleva 'direccion'; 'monto' nunca es negativo.
    """
    model_config = ConfigDict(frozen=True)

    movimiento_id: str
    fecha: Optional[datetime] = None
    direccion: Direccion
    fuente: FuenteMovimiento
    tipo_relacionado: Optional[TipoRelacionado] = None
    relacionado_id: Optional[str] = None
    metodo_pago: str = METODO_EFECTIVO
    monto: Decimal = Field(..., ge=0)
    actor: str = "Sistema"
    descripcion: str = ""
    origen_id: str
    registrado_por: Optional[str] = None
    nota: Optional[str] = None

    @property
    def es_efectivo(self) -> bool:
        return self.metodo_pago == METODO_EFECTIVO

class SaldoInicialCaja(BaseModel):
    fecha: datetime
    monto: Decimal = Field(..., ge=0)
    establecido_por: str = "Sistema"
    establecido_por_id: Optional[str] = None

# ============================================================
# RESULTADOS DE CÁLCULO
# ============================================================

class ResultadoFusion(BaseModel):
    movimientos: List[MovimientoMonetario] = Field(default_factory=list)
    espejos_excluidos: List[MovimientoMonetario] = Field(default_factory=list)

class ResumenAgregado(BaseModel):
    total_entradas: Decimal = Decimal("0.00")
    total_salidas: Decimal = Decimal("0.00")
    entradas_efectivo: Decimal = Decimal("0.00")
    salidas_efectivo: Decimal = Decimal("0.00")
    por_metodo_pago: Dict[str, Decimal] = Field(default_factory=dict)
    por_fuente: Dict[str, Decimal] = Field(default_factory=dict)
    cantidad_movimientos: int = 0

class CalculoSaldo(BaseModel):
    saldo_inicial: Decimal
    ventas_efectivo: Decimal
    entradas_manuales_efectivo: Decimal
    salidas_manuales_efectivo: Decimal
    saldo_esperado: Decimal

class ReporteConciliacion(BaseModel):
    fecha_inicio: date
    fecha_fin: date
    saldo_inicial: Decimal
    entradas_efectivo: Decimal
    salidas_efectivo: Decimal
    saldo_final_esperado: Decimal
    por_metodo_pago: Dict[str, Decimal] = Field(default_factory=dict)
    movimientos: List[MovimientoMonetario] = Field(default_factory=list)
    movimientos_manuales: List[MovimientoMonetario] = Field(default_factory=list)
    calculo: CalculoSaldo
    resumen: ResumenAgregado
    total_ventas: int = 0
    total_servicios: int = 0

class ResultadoArqueo(BaseModel):
    efectivo_esperado: Decimal
    efectivo_contado: Decimal
    diferencia: Decimal
    estado: EstadoArqueo
    aceptable: bool
    mensaje: str

class FilaCierreMensual(BaseModel):
    anio: int
    mes: int
    etiqueta: str
    ingresos_servicios: Decimal = Decimal("0.00")
    ingresos_pdv: Decimal = Decimal("0.00")
    ingresos_totales: Decimal = Decimal("0.00")
    ganancia_total: Decimal = Decimal("0.00")
    gastos_fijos: Decimal = Decimal("0.00")
    nomina: Decimal = Decimal("0.00")
    gastos_totales: Decimal = Decimal("0.00")
    utilidad_neta: Decimal = Decimal("0.00")

# ============================================================
# REQUEST MODELS
# ============================================================

def _validar_formato_fecha(v: str) -> str:
    try:
        datetime.strptime(v, "%Y-%m-%d")
        return v
    except ValueError:
        raise ValueError("Formato de fecha inválido. Use YYYY-MM-DD")

class SaldoInicialRequest(BaseModel):
    fecha: str = Field(..., description="Día del saldo inicial (YYYY-MM-DD)")
    monto: Decimal = Field(..., ge=0, description="Efectivo contado al abrir")
    usuario_id: Optional[str] = None
    usuario_nombre: Optional[str] = None

    @field_validator("fecha")
    @classmethod
    def validar_fecha(cls, v):
        return _validar_formato_fecha(v)

class DesgloseFisicoItem(BaseModel):
    denominacion: str = Field(..., description="Ej: 'billete_100', 'moneda_0.5'")
    cantidad: int = Field(..., ge=0)
    valor_unitario: Decimal = Field(..., gt=0)
    subtotal: Decimal = Field(..., ge=0)

class CierreCajaRequest(BaseModel):
    fecha: str = Field(..., description="Fecha del corte (YYYY-MM-DD)")
    efectivo_contado: Decimal = Field(..., ge=0, description="Efectivo físico contado")
    desglose_fisico: Optional[List[DesgloseFisicoItem]] = None
    observaciones: Optional[str] = Field(None, max_length=1000)
    usuario_nombre: Optional[str] = None

    @field_validator("fecha")
    @classmethod
    def validar_fecha(cls, v):
        return _validar_formato_fecha(v)

# ============================================================
# RESPONSE MODELS
# ============================================================

class CierreResponse(BaseModel):
    cierre_id: str
    fecha: str
    estado: EstadoCierre
    reporte: ReporteConciliacion
    arqueo: ResultadoArqueo
    observaciones: Optional[str] = None
    cerrado_por_nombre: Optional[str] = None
    creado_en: datetime
