# ============================================================
# snapshot.py - Lectura de colecciones y archivo de cierres
#
# El cálculo de caja es puro: aquí solo se leen las colecciones
# completas desde MongoDB y se guardan los cierres ya calculados.
# ============================================================

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId

from app.database.mongo import (
    collection_cash_closures as cash_closures,
    collection_cash_transactions as cash_transactions,
    collection_fixed_expenses as fixed_expenses,
    collection_initial_balances as initial_balances,
    collection_inventory as inventory,
    collection_personnel as personnel,
    collection_sales as sales,
    collection_services as services,
)

from .models_cash import EstadoCierre, ReporteConciliacion, ResultadoArqueo

logger = logging.getLogger(__name__)

# ============================================================
# CONVERSIÓN DE DOCUMENTOS
# ============================================================

def convertir_mongo_a_json(doc):
    """
    Convierte un documento de MongoDB a formato JSON serializable.
    - ObjectId → string
    - datetime → ISO string
    """
    if doc is None:
        return None

    if isinstance(doc, list):
        return [convertir_mongo_a_json(item) for item in doc]

    if isinstance(doc, dict):
        result = {}
        for key, value in doc.items():
            if isinstance(value, ObjectId):
                result[key] = str(value)
            elif isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, (dict, list)):
                result[key] = convertir_mongo_a_json(value)
            else:
                result[key] = value
        return result

    return doc


def documento_a_registro(doc: Dict) -> Dict:
    """
    Documento crudo → registro para el cálculo.
    Las fechas se dejan como datetime; '_id' se expone como 'id' si falta.
    """
    registro = {key: value for key, value in doc.items() if key != "_id"}
    if registro.get("id") is None and doc.get("_id") is not None:
        registro["id"] = str(doc["_id"])
    return registro


async def _cargar(coleccion, filtro: Optional[Dict] = None) -> List[Dict]:
    docs = await coleccion.find(filtro or {}).to_list(None)
    return [documento_a_registro(doc) for doc in docs]

# ============================================================
# SNAPSHOTS
# ============================================================

async def cargar_snapshot_caja() -> Dict[str, List[Dict]]:
    """Colecciones que alimentan el corte y la conciliación."""
    snapshot = {
        "ventas": await _cargar(sales),
        "servicios": await _cargar(services),
        "transacciones": await _cargar(cash_transactions),
        "saldos_iniciales": await _cargar(initial_balances),
    }
    logger.debug(
        f"Snapshot de caja: {len(snapshot['ventas'])} ventas, "
        f"{len(snapshot['servicios'])} servicios, "
        f"{len(snapshot['transacciones'])} transacciones"
    )
    return snapshot


async def cargar_snapshot_cierre_mensual() -> Dict[str, List[Dict]]:
    return {
        "ventas": await _cargar(sales),
        "servicios": await _cargar(services),
        "gastos_fijos": await _cargar(fixed_expenses),
        "personal": await _cargar(personnel),
        "inventario": await _cargar(inventory),
    }

# ============================================================
# SALDO INICIAL
# ============================================================

async def guardar_saldo_inicial(doc: Dict) -> None:
    """Un saldo inicial por día: reemplaza el existente."""
    await initial_balances.update_one(
        {"saldo_id": doc["saldo_id"]},
        {"$set": doc},
        upsert=True,
    )

# ============================================================
# CIERRES ARCHIVADOS
# ============================================================

def construir_documento_cierre(
    cierre_id: str,
    fecha: str,
    estado: EstadoCierre,
    reporte: ReporteConciliacion,
    arqueo: ResultadoArqueo,
    desglose_fisico: Optional[List[Dict]] = None,
    observaciones: Optional[str] = None,
    cerrado_por_nombre: Optional[str] = None,
    creado_en: Optional[datetime] = None,
) -> Dict[str, Any]:
    return {
        "cierre_id": cierre_id,
        "tipo": "cierre",
        "fecha": fecha,
        "estado": estado.value,
        "efectivo_inicial": float(reporte.saldo_inicial),
        "efectivo_esperado": float(reporte.saldo_final_esperado),
        "efectivo_contado": float(arqueo.efectivo_contado),
        "diferencia": float(arqueo.diferencia),
        "diferencia_aceptable": arqueo.aceptable,
        "mensaje_validacion": arqueo.mensaje,
        "desglose_fisico": desglose_fisico,
        "reporte": reporte.model_dump(mode="json"),
        "arqueo": arqueo.model_dump(mode="json"),
        "observaciones": observaciones,
        "cerrado_por_nombre": cerrado_por_nombre,
        "creado_en": creado_en or datetime.now(),
    }


async def buscar_cierre_dia(fecha: str) -> Optional[Dict]:
    return await cash_closures.find_one({"fecha": fecha, "tipo": "cierre"})


async def buscar_cierre(cierre_id: str) -> Optional[Dict]:
    return await cash_closures.find_one({"cierre_id": cierre_id})


async def guardar_cierre(doc: Dict) -> bool:
    resultado = await cash_closures.insert_one(doc)
    return bool(resultado.inserted_id)


async def listar_cierres(fecha_inicio: str, fecha_fin: str, estado: Optional[str] = None) -> List[Dict]:
    filtro: Dict[str, Any] = {
        "tipo": "cierre",
        "fecha": {"$gte": fecha_inicio, "$lte": fecha_fin},
    }
    if estado:
        filtro["estado"] = estado
    return await cash_closures.find(filtro).sort("fecha", -1).to_list(None)
