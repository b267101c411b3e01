# ============================================================
# excel_generator.py - Corte de caja / conciliación en Excel
# ============================================================

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
from openpyxl.utils import get_column_letter
from io import BytesIO
from typing import Dict, List, Optional

from .accounting_logic import filas_exportacion
from .models_cash import ReporteConciliacion, ResultadoArqueo

NOMBRE_NEGOCIO_DEFAULT = "TALLER"

# ============================================================
# FUNCIÓN PRINCIPAL
# ============================================================

def generar_reporte_excel_caja(
    reporte: ReporteConciliacion,
    negocio_info: Optional[Dict] = None,
    arqueo: Optional[ResultadoArqueo] = None,
) -> BytesIO:
    """
    Genera Excel con 2 hojas:
    1. Corte de Caja (saldo inicial, fórmula del cajón, desglose por método)
    2. Movimientos (una fila por movimiento, más reciente primero)
    """

    wb = Workbook()
    negocio_info = negocio_info or {}

    ws_corte = wb.active
    ws_corte.title = "Corte de Caja"
    _crear_hoja_corte(ws_corte, reporte, negocio_info, arqueo)

    ws_movimientos = wb.create_sheet("Movimientos")
    _crear_hoja_movimientos(ws_movimientos, filas_exportacion(reporte))

    excel_file = BytesIO()
    wb.save(excel_file)
    excel_file.seek(0)

    return excel_file

# ============================================================
# HOJA 1: CORTE DE CAJA
# ============================================================

def _fila_monto(ws, fila: int, etiqueta: str, monto, font=None, fill=None) -> int:
    ws[f'A{fila}'] = etiqueta
    ws[f'D{fila}'] = float(monto)
    ws[f'D{fila}'].number_format = '#,##0.00'
    ws[f'D{fila}'].alignment = Alignment(horizontal='right', vertical='center')
    if font:
        ws[f'A{fila}'].font = font
        ws[f'D{fila}'].font = font
    if fill:
        ws[f'D{fila}'].fill = fill
    return fila + 1


def _crear_hoja_corte(ws, reporte: ReporteConciliacion, negocio_info: Dict, arqueo: Optional[ResultadoArqueo]):

    # Estilos
    titulo_font = Font(name='Arial', size=14, bold=True)
    subtitulo_font = Font(name='Arial', size=12, bold=True)
    header_font = Font(name='Arial', size=10, bold=True)
    total_font = Font(name='Arial', size=11, bold=True)

    centro = Alignment(horizontal='center', vertical='center')
    borde_grueso_abajo = Border(bottom=Side(style='medium'))

    relleno_gris = PatternFill(start_color="E0E0E0", end_color="E0E0E0", fill_type="solid")
    relleno_verde = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
    relleno_rojo = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")

    fila = 1

    # Título
    ws.merge_cells(f'A{fila}:D{fila}')
    ws[f'A{fila}'] = "CORTE DE CAJA"
    ws[f'A{fila}'].font = titulo_font
    ws[f'A{fila}'].alignment = centro
    fila += 1

    ws.merge_cells(f'A{fila}:D{fila}')
    ws[f'A{fila}'] = negocio_info.get("nombre", NOMBRE_NEGOCIO_DEFAULT)
    ws[f'A{fila}'].font = subtitulo_font
    ws[f'A{fila}'].alignment = centro
    fila += 2

    # Periodo
    ws[f'A{fila}'] = "Inicio:"
    ws[f'B{fila}'] = f"{reporte.fecha_inicio.isoformat()} 00:00"
    ws[f'A{fila}'].font = header_font
    fila += 1

    ws[f'A{fila}'] = "Fin:"
    ws[f'B{fila}'] = f"{reporte.fecha_fin.isoformat()} 23:59"
    ws[f'A{fila}'].font = header_font
    fila += 2

    ws.merge_cells(f'A{fila}:D{fila}')
    ws[f'A{fila}'].border = borde_grueso_abajo
    fila += 1

    # Fórmula del cajón
    calculo = reporte.calculo
    fila = _fila_monto(ws, fila, "SALDO INICIAL EN EFECTIVO", calculo.saldo_inicial, font=header_font)
    fila = _fila_monto(ws, fila, "(+) Ventas y servicios en efectivo", calculo.ventas_efectivo)
    fila = _fila_monto(ws, fila, "(+) Entradas manuales en efectivo", calculo.entradas_manuales_efectivo)
    fila = _fila_monto(ws, fila, "(-) Salidas manuales en efectivo", calculo.salidas_manuales_efectivo)
    fila = _fila_monto(ws, fila, "SALDO FINAL ESPERADO", calculo.saldo_esperado, font=total_font, fill=relleno_verde)
    fila += 1

    # Desglose por método de pago
    ws[f'A{fila}'] = "POR MÉTODO DE PAGO (NETO)"
    ws[f'A{fila}'].font = header_font
    ws[f'A{fila}'].fill = relleno_gris
    fila += 1
    for metodo, neto in sorted(reporte.por_metodo_pago.items()):
        fila = _fila_monto(ws, fila, metodo, neto)
    fila += 1

    ws[f'A{fila}'] = "Ventas con movimientos"
    ws[f'D{fila}'] = reporte.total_ventas
    fila += 1
    ws[f'A{fila}'] = "Servicios con movimientos"
    ws[f'D{fila}'] = reporte.total_servicios
    fila += 2

    # Arqueo
    if arqueo is not None:
        ws[f'A{fila}'] = "ARQUEO"
        ws[f'A{fila}'].font = header_font
        ws[f'A{fila}'].fill = relleno_gris
        fila += 1
        fila = _fila_monto(ws, fila, "Efectivo contado", arqueo.efectivo_contado)
        fila = _fila_monto(
            ws, fila, "Diferencia", arqueo.diferencia,
            font=total_font,
            fill=relleno_verde if arqueo.aceptable else relleno_rojo,
        )
        ws[f'A{fila}'] = arqueo.mensaje
        fila += 1

    anchos = [40, 22, 5, 18]
    for col, ancho in enumerate(anchos, start=1):
        ws.column_dimensions[get_column_letter(col)].width = ancho

# ============================================================
# HOJA 2: MOVIMIENTOS
# ============================================================

COLUMNAS_MOVIMIENTOS = [
    ("fecha", "Fecha"),
    ("tipo", "Tipo"),
    ("fuente", "Fuente"),
    ("concepto", "Concepto"),
    ("metodo_pago", "Método de pago"),
    ("monto", "Monto"),
    ("actor", "Actor"),
    ("registrado_por", "Registrado por"),
    ("nota", "Nota"),
]


def _crear_hoja_movimientos(ws, filas: List[Dict]):
    """Una fila por movimiento, mismas columnas que la exportación CSV"""

    header_font = Font(name='Arial', size=10, bold=True)
    centro = Alignment(horizontal='center', vertical='center')
    relleno_gris = PatternFill(start_color="E0E0E0", end_color="E0E0E0", fill_type="solid")

    for col, (_, titulo) in enumerate(COLUMNAS_MOVIMIENTOS, start=1):
        celda = ws.cell(row=1, column=col)
        celda.value = titulo
        celda.font = header_font
        celda.alignment = centro
        celda.fill = relleno_gris

    fila = 2
    for registro in filas:
        for col, (clave, _) in enumerate(COLUMNAS_MOVIMIENTOS, start=1):
            valor = registro[clave]
            celda = ws.cell(row=fila, column=col)
            if clave == "fecha":
                celda.value = valor.strftime("%d/%m/%Y %H:%M") if valor else ""
            elif clave == "monto":
                celda.value = float(valor)
                celda.number_format = '#,##0.00'
            else:
                celda.value = valor
        fila += 1

    anchos = [18, 10, 12, 40, 16, 14, 25, 20, 30]
    for col, ancho in enumerate(anchos, start=1):
        ws.column_dimensions[get_column_letter(col)].width = ancho

# ============================================================
# FUNCIÓN HELPER PARA NOMBRES DE ARCHIVO
# ============================================================

def generar_nombre_archivo_excel(reporte: ReporteConciliacion) -> str:
    """Genera nombre de archivo Excel descriptivo"""
    if reporte.fecha_inicio == reporte.fecha_fin:
        return f"Corte_Caja_{reporte.fecha_inicio.isoformat()}.xlsx"
    return f"Conciliacion_Caja_{reporte.fecha_inicio.isoformat()}_{reporte.fecha_fin.isoformat()}.xlsx"
