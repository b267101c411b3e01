# ============================================================
# routes_cash.py - Corte, conciliación y cierre de caja
# Ubicación: app/cash/routes_cash.py
# ============================================================

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from typing import Optional, List
from datetime import datetime
import logging

from .accounting_logic import (
    construir_corte_caja,
    construir_reporte_conciliacion,
    verificar_arqueo,
)
from .excel_generator import generar_reporte_excel_caja, generar_nombre_archivo_excel
from .models_cash import (
    CierreCajaRequest,
    CierreResponse,
    EstadoCierre,
    FilaCierreMensual,
    ReporteConciliacion,
    ResultadoArqueo,
    SaldoInicialRequest,
)
from .monthly_rollup import calcular_cierre_mensual, ganancia_venta_con_inventario
from .snapshot import (
    buscar_cierre,
    buscar_cierre_dia,
    cargar_snapshot_caja,
    cargar_snapshot_cierre_mensual,
    construir_documento_cierre,
    convertir_mongo_a_json,
    guardar_cierre,
    guardar_saldo_inicial,
    listar_cierres,
)
from .utils_cash import (
    ZONA_HORARIA_DEFAULT,
    CajaError,
    fecha_hoy,
    formatear_diferencia,
    generar_cierre_id,
    generar_saldo_inicial_id,
    parsear_dia,
)

router = APIRouter(prefix="/cash", tags=["Cash Management"])
logger = logging.getLogger(__name__)


def _error_caja(exc: CajaError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=str(exc)
    )


def _error_interno(accion: str, exc: Exception) -> HTTPException:
    logger.exception(f"Error {accion}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error {accion}: {str(exc)}"
    )


def _cierre_response(doc: dict) -> CierreResponse:
    return CierreResponse(
        cierre_id=doc["cierre_id"],
        fecha=doc["fecha"],
        estado=doc["estado"],
        reporte=ReporteConciliacion.model_validate(doc["reporte"]),
        arqueo=ResultadoArqueo.model_validate(doc["arqueo"]),
        observaciones=doc.get("observaciones"),
        cerrado_por_nombre=doc.get("cerrado_por_nombre"),
        creado_en=doc["creado_en"],
    )

# ============================================================
# 1. SALDO INICIAL DEL DÍA
# ============================================================

@router.post("/saldo-inicial", status_code=status.HTTP_201_CREATED)
async def registrar_saldo_inicial(saldo: SaldoInicialRequest):
    """Registra (o reemplaza) el efectivo con el que abre el cajón en un día."""

    saldo_doc = {
        "saldo_id": generar_saldo_inicial_id(saldo.fecha),
        "date": saldo.fecha,
        "amount": float(saldo.monto),
        "userId": saldo.usuario_id,
        "userName": saldo.usuario_nombre or "Sistema",
        "creado_en": datetime.now(),
    }

    try:
        await guardar_saldo_inicial(saldo_doc)
    except Exception as exc:
        raise _error_interno("al registrar el saldo inicial", exc) from exc

    return {
        "ok": True,
        "mensaje": f"Saldo inicial registrado para el {saldo.fecha}",
        "saldo_id": saldo_doc["saldo_id"],
        "monto": saldo_doc["amount"],
    }

# ============================================================
# 2. CORTE DE CAJA (UN DÍA)
# ============================================================

@router.get("/corte", response_model=ReporteConciliacion)
async def obtener_corte(
    fecha: Optional[str] = Query(None, description="Fecha (YYYY-MM-DD), default: hoy"),
):
    """
    Corte de caja de un día.

    saldo_final_esperado = saldo_inicial + ventas en efectivo
                         + entradas manuales en efectivo
                         - salidas manuales en efectivo
    """
    fecha = fecha or fecha_hoy()
    try:
        snapshot = await cargar_snapshot_caja()
        return construir_corte_caja(fecha, zona_horaria=ZONA_HORARIA_DEFAULT, **snapshot)
    except CajaError as exc:
        raise _error_caja(exc) from exc
    except Exception as exc:
        raise _error_interno("calculando el corte de caja", exc) from exc

# ============================================================
# 3. CONCILIACIÓN DE UN RANGO
# ============================================================

@router.get("/conciliacion", response_model=ReporteConciliacion)
async def obtener_conciliacion(
    fecha_inicio: str = Query(..., description="Primer día (YYYY-MM-DD)"),
    fecha_fin: str = Query(..., description="Último día, incluido (YYYY-MM-DD)"),
):
    """Conciliación de un rango de días completos."""
    try:
        snapshot = await cargar_snapshot_caja()
        return construir_reporte_conciliacion(
            fecha_inicio, fecha_fin, zona_horaria=ZONA_HORARIA_DEFAULT, **snapshot
        )
    except CajaError as exc:
        raise _error_caja(exc) from exc
    except Exception as exc:
        raise _error_interno("calculando la conciliación", exc) from exc

# ============================================================
# 4. CERRAR CAJA (ARQUEO + ARCHIVO)
# ============================================================

@router.post("/cierre", response_model=CierreResponse, status_code=status.HTTP_201_CREATED)
async def cerrar_caja(cierre: CierreCajaRequest):
    """
    Cierra la caja del día: calcula el corte, compara contra el efectivo
    contado y archiva el resultado. Un cierre por día.
    """

    cierre_existente = await buscar_cierre_dia(cierre.fecha)
    if cierre_existente:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Ya existe un cierre de caja para el {cierre.fecha}"
        )

    desglose = (
        [item.model_dump(mode="json") for item in cierre.desglose_fisico]
        if cierre.desglose_fisico else None
    )

    try:
        snapshot = await cargar_snapshot_caja()
        reporte = construir_corte_caja(cierre.fecha, zona_horaria=ZONA_HORARIA_DEFAULT, **snapshot)
        arqueo = verificar_arqueo(reporte, cierre.efectivo_contado, desglose_fisico=desglose)
    except CajaError as exc:
        raise _error_caja(exc) from exc
    except Exception as exc:
        raise _error_interno("calculando el cierre de caja", exc) from exc

    cierre_doc = construir_documento_cierre(
        cierre_id=generar_cierre_id(cierre.fecha),
        fecha=cierre.fecha,
        estado=EstadoCierre.CERRADO,
        reporte=reporte,
        arqueo=arqueo,
        desglose_fisico=desglose,
        observaciones=cierre.observaciones,
        cerrado_por_nombre=cierre.usuario_nombre,
    )

    if not await guardar_cierre(cierre_doc):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al registrar el cierre de caja"
        )

    logger.info(f"Cierre {cierre_doc['cierre_id']}: {formatear_diferencia(arqueo.diferencia)}")

    return CierreResponse(
        cierre_id=cierre_doc["cierre_id"],
        fecha=cierre_doc["fecha"],
        estado=EstadoCierre.CERRADO,
        reporte=reporte,
        arqueo=arqueo,
        observaciones=cierre_doc.get("observaciones"),
        cerrado_por_nombre=cierre_doc.get("cerrado_por_nombre"),
        creado_en=cierre_doc["creado_en"],
    )

# ============================================================
# 5. LISTAR CIERRES
# ============================================================

@router.get("/cierres", response_model=List[CierreResponse])
async def listar_cierres_endpoint(
    fecha_inicio: str = Query(...),
    fecha_fin: str = Query(...),
    estado: Optional[EstadoCierre] = Query(None),
):
    """Lista los cierres archivados, más reciente primero."""
    try:
        inicio = parsear_dia(fecha_inicio, "fecha_inicio")
        fin = parsear_dia(fecha_fin, "fecha_fin")
        if inicio > fin:
            inicio, fin = fin, inicio
    except CajaError as exc:
        raise _error_caja(exc) from exc

    cierres_list = await listar_cierres(
        inicio.isoformat(), fin.isoformat(), estado.value if estado else None
    )
    return [_cierre_response(c) for c in cierres_list]

# ============================================================
# 6. VER DETALLE DE CIERRE
# ============================================================

@router.get("/cierres/{cierre_id}")
async def obtener_cierre(cierre_id: str):
    """Obtiene el documento completo de un cierre."""

    cierre = await buscar_cierre(cierre_id)

    if not cierre:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Cierre {cierre_id} no encontrado"
        )

    return convertir_mongo_a_json(cierre)

# ============================================================
# 7. CIERRE MENSUAL
# ============================================================

@router.get("/cierre-mensual", response_model=List[FilaCierreMensual])
async def obtener_cierre_mensual(
    anio: Optional[int] = Query(None, description="Año, default: el actual"),
):
    """Doce meses del año: ingresos, ganancia, gastos y utilidad neta."""
    anio = anio or int(fecha_hoy()[:4])
    try:
        snapshot = await cargar_snapshot_cierre_mensual()
        return calcular_cierre_mensual(
            anio,
            ventas=snapshot["ventas"],
            servicios=snapshot["servicios"],
            gastos_fijos=snapshot["gastos_fijos"],
            personal=snapshot["personal"],
            ganancia_venta=ganancia_venta_con_inventario(snapshot["inventario"]),
            zona_horaria=ZONA_HORARIA_DEFAULT,
        )
    except CajaError as exc:
        raise _error_caja(exc) from exc
    except Exception as exc:
        raise _error_interno("calculando el cierre mensual", exc) from exc

# ============================================================
# 8. REPORTE EXCEL
# ============================================================

@router.get("/reporte-excel")
async def descargar_reporte_excel(
    fecha: Optional[str] = Query(None, description="Un día (YYYY-MM-DD)"),
    fecha_inicio: Optional[str] = Query(None),
    fecha_fin: Optional[str] = Query(None),
):
    """Descarga el corte (un día) o la conciliación (rango) en Excel."""

    if fecha_inicio or fecha_fin:
        if not (fecha_inicio and fecha_fin):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Indique 'fecha_inicio' y 'fecha_fin', o solo 'fecha'"
            )
    else:
        fecha_inicio = fecha_fin = fecha or fecha_hoy()

    try:
        snapshot = await cargar_snapshot_caja()
        reporte = construir_reporte_conciliacion(
            fecha_inicio, fecha_fin, zona_horaria=ZONA_HORARIA_DEFAULT, **snapshot
        )
        arqueo = None
        if fecha_inicio == fecha_fin:
            cierre = await buscar_cierre_dia(reporte.fecha_inicio.isoformat())
            if cierre and cierre.get("arqueo"):
                arqueo = ResultadoArqueo.model_validate(cierre["arqueo"])
        excel_file = generar_reporte_excel_caja(reporte, arqueo=arqueo)
    except CajaError as exc:
        raise _error_caja(exc) from exc
    except Exception as exc:
        raise _error_interno("generando el reporte Excel", exc) from exc

    nombre_archivo = generar_nombre_archivo_excel(reporte)
    return StreamingResponse(
        excel_file,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={nombre_archivo}"}
    )
