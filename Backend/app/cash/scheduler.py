# ============================================================
# scheduler.py - Scheduler para cierre automático de caja
# Ubicación: app/cash/scheduler.py
# ============================================================

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from datetime import datetime
import os
import pytz
import logging

from .accounting_logic import construir_corte_caja, verificar_arqueo
from .models_cash import EstadoCierre
from .snapshot import (
    buscar_cierre_dia,
    cargar_snapshot_caja,
    construir_documento_cierre,
    guardar_cierre,
)
from .utils_cash import ZONA_HORARIA_DEFAULT, generar_cierre_id

logger = logging.getLogger(__name__)

CORTE_AUTOMATICO_ACTIVO = os.getenv("CAJA_CORTE_AUTOMATICO", "1") == "1"
JOB_ID = "cierre_auto_caja"

# ============================================================
# INSTANCIA DEL SCHEDULER
# ============================================================

scheduler = AsyncIOScheduler()

# ============================================================
# FUNCIÓN DE CIERRE AUTOMÁTICO
# ============================================================

async def ejecutar_cierre_automatico(zona_horaria: str = ZONA_HORARIA_DEFAULT) -> bool:
    """
    Archiva el corte del día si nadie cerró la caja.

    CRITERIO:
    - Se ejecuta a las 23:59 hora local del negocio
    - Solo si NO existe ya un cierre para ese día
    - Registra efectivo_contado = efectivo esperado (estimado)

    Devuelve True si se archivó un cierre.
    """

    try:
        tz = pytz.timezone(zona_horaria)
        ahora = datetime.now(tz)
        fecha = ahora.strftime("%Y-%m-%d")

        if await buscar_cierre_dia(fecha):
            logger.info(f"Cierre automático OMITIDO: ya existe cierre el {fecha}")
            return False

        snapshot = await cargar_snapshot_caja()
        reporte = construir_corte_caja(fecha, zona_horaria=zona_horaria, **snapshot)
        arqueo = verificar_arqueo(reporte, reporte.saldo_final_esperado)

        cierre_doc = construir_documento_cierre(
            cierre_id=generar_cierre_id(fecha, automatico=True),
            fecha=fecha,
            estado=EstadoCierre.CERRADO_AUTOMATICO,
            reporte=reporte,
            arqueo=arqueo,
            observaciones=f"Cierre automático ejecutado a las {ahora.strftime('%H:%M:%S')} ({zona_horaria})",
            cerrado_por_nombre="Sistema Automático",
            creado_en=ahora.replace(tzinfo=None),
        )
        cierre_doc["requiere_revision"] = True

        if await guardar_cierre(cierre_doc):
            logger.info(f"Cierre automático EXITOSO el {fecha} - Efectivo: {reporte.saldo_final_esperado}")
            return True

        logger.error(f"Cierre automático FALLIDO el {fecha}")
        return False

    except Exception as e:
        logger.error(f"ERROR en cierre automático: {str(e)}", exc_info=True)
        return False

# ============================================================
# INICIAR Y DETENER SCHEDULER
# ============================================================

def registrar_cierre_automatico(zona_horaria: str = ZONA_HORARIA_DEFAULT):
    """Job diario a las 23:59 en la zona horaria del negocio."""
    scheduler.add_job(
        ejecutar_cierre_automatico,
        trigger=CronTrigger(hour=23, minute=59, timezone=pytz.timezone(zona_horaria)),
        args=[zona_horaria],
        id=JOB_ID,
        name="Cierre automático de caja",
        replace_existing=True
    )
    logger.info(f"Job registrado: cierre automático a las 23:59 {zona_horaria}")


async def iniciar_scheduler():
    """
    Inicia el scheduler y registra el cierre automático.
    Llamar desde el lifespan de la app.
    """
    if not CORTE_AUTOMATICO_ACTIVO:
        logger.info("Cierre automático desactivado (CAJA_CORTE_AUTOMATICO)")
        return

    try:
        if not scheduler.running:
            registrar_cierre_automatico()
            scheduler.start()
            logger.info("Scheduler de cierres automáticos INICIADO")
        else:
            logger.warning("Scheduler ya estaba iniciado")

    except Exception as e:
        logger.error(f"Error iniciando scheduler: {str(e)}", exc_info=True)


def detener_scheduler():
    """
    Detiene el scheduler.
    Llamar al cerrar la aplicación.
    """
    try:
        if scheduler.running:
            scheduler.shutdown()
            logger.info("Scheduler de cierres automáticos DETENIDO")
    except Exception as e:
        logger.error(f"Error deteniendo scheduler: {str(e)}", exc_info=True)
