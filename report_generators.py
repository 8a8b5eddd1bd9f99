#!/usr/bin/env python3
"""
Excel report generator for production and estimation results.
"""

import io
import logging
from typing import Optional
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from data_models import EstimationResult, ProductionResult

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="CCCCCC", end_color="CCCCCC", fill_type="solid")
WARNING_FILL = PatternFill(start_color="FFE699", end_color="FFE699", fill_type="solid")


def write_header_row(ws, headers, row=1):
    """Write a bold, shaded header row and size the columns."""
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
        ws.column_dimensions[cell.column_letter].width = max(14, len(header) + 4)


def create_summary_tab(ws, result: ProductionResult, order_name: str):
    ws['A1'] = f"PanelNest Production Summary - {order_name}" if order_name else "PanelNest Production Summary"
    ws['A1'].font = Font(size=16, bold=True)
    ws.merge_cells('A1:D1')

    metrics = [
        ("Total Sheets Used", result.sheet_count),
        ("Parts Placed", len(result.placements)),
        ("Optimized Yield (%)", round(result.optimized_yield, 2)),
        ("Total Cutting Length (mm)", round(result.total_cutting_length, 1)),
        ("Estimated Cut Time (min)", round(result.estimated_cut_time_minutes, 1)),
        ("Sheet Cost", round(sum(s.unit_cost for s in result.sheets), 2)),
        ("Failed Material Groups", len(result.failures)),
        ("Budget Exceeded", "Yes" if result.budget_exceeded else "No"),
        ("Valid At", result.valid_at.strftime("%Y-%m-%d %H:%M:%S")),
        ("Input Fingerprint", result.fingerprint),
    ]
    row = 3
    for metric, value in metrics:
        ws[f'A{row}'] = metric
        ws[f'B{row}'] = value
        ws[f'A{row}'].font = Font(bold=True)
        row += 1

    if result.failures:
        row += 1
        ws[f'A{row}'] = "Failed Material Groups"
        ws[f'A{row}'].font = Font(bold=True)
        for failure in result.failures:
            row += 1
            ws[f'A{row}'] = str(failure.material_key)
            ws[f'B{row}'] = str(failure.error)
            ws[f'A{row}'].fill = WARNING_FILL

    ws.column_dimensions['A'].width = 30
    ws.column_dimensions['B'].width = 60


def create_cutlist_tab(ws, result: ProductionResult):
    headers = ['Unit ID', 'Part ID', 'Part Name', 'Sheet', 'Material', 'X (mm)', 'Y (mm)',
               'Length (mm)', 'Width (mm)', 'Rotated', 'Grain Aligned']
    write_header_row(ws, headers)
    row = 2
    for sheet in result.sheets:
        for p in sheet.placements:
            values = [p.unit_id, p.part_id, p.part_name, sheet.sheet_index + 1, str(sheet.material_key),
                      p.x, p.y, p.length, p.width,
                      'Yes' if p.rotated else 'No', 'Yes' if p.grain_aligned else 'No']
            for col, value in enumerate(values, 1):
                ws.cell(row=row, column=col, value=value)
            if not p.grain_aligned:
                ws.cell(row=row, column=11).fill = WARNING_FILL
            row += 1


def create_sheets_tab(ws, result: ProductionResult):
    headers = ['Sheet', 'Material', 'Size (mm)', 'Utilization %', 'Parts Count', 'Shelves',
               'Waste Area (m²)', 'Reusable Offcuts', 'Cost']
    write_header_row(ws, headers)
    for row, sheet in enumerate(result.sheets, 2):
        values = [
            sheet.sheet_index + 1,
            str(sheet.material_key),
            f"{sheet.sheet_length:.0f}x{sheet.sheet_width:.0f}",
            round(sheet.utilization_percent, 2),
            len(sheet.placements),
            len(sheet.shelves),
            round(sheet.waste_area / 1_000_000, 3),
            sum(1 for r in sheet.waste_regions if r.reusable),
            sheet.unit_cost,
        ]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value)


def create_cut_sequence_tab(ws, result: ProductionResult):
    headers = ['Sequence', 'Sheet', 'Type', 'Start X', 'Start Y', 'End X', 'End Y', 'Length (mm)', 'Parts']
    write_header_row(ws, headers)
    for row, op in enumerate(result.cut_sequence, 2):
        values = [op.sequence, op.sheet_index + 1, op.kind.value, op.start_x, op.start_y,
                  op.end_x, op.end_y, round(op.length, 1), " ".join(op.resulting_parts)]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value)


def create_estimation_tab(ws, estimation: EstimationResult):
    headers = ['Material', 'Sheet Size (mm)', 'Parts', 'Part Area (m²)', 'Sheets Required',
               'Utilization %', 'Waste %', 'Cost']
    write_header_row(ws, headers)
    row = 2
    for m in estimation.materials:
        values = [str(m.material_key), f"{m.sheet_length:.0f}x{m.sheet_width:.0f}", m.part_count,
                  round(m.total_part_area / 1_000_000, 3), m.sheets_required,
                  round(m.utilization_percent, 2), round(m.waste_percent, 2), m.estimated_cost]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value)
        row += 1

    row += 1
    for label, value in [("Total Sheets", estimation.total_sheets),
                         ("Waste Estimate (%)", round(estimation.waste_estimate, 2)),
                         ("Rough Cost", round(estimation.rough_cost, 2)),
                         ("Standard Parts Cost", estimation.standard_parts_cost),
                         ("Special Parts Cost", estimation.special_parts_cost),
                         ("Total Cost", round(estimation.total_cost, 2))]:
        ws.cell(row=row, column=1, value=label).font = Font(bold=True)
        ws.cell(row=row, column=2, value=value)
        row += 1

    for failure in estimation.failures:
        ws.cell(row=row, column=1, value=str(failure.material_key)).fill = WARNING_FILL
        ws.cell(row=row, column=2, value=str(failure.error))
        row += 1


def create_excel_report(result: ProductionResult, estimation: Optional[EstimationResult] = None,
                        order_name: str = "") -> bytes:
    """
    Build the Excel workbook for a production run.

    Args:
        result: Production result
        estimation: Optional estimation shown on its own tab
        order_name: Order name for the summary title

    Returns:
        Workbook content as bytes
    """
    try:
        wb = Workbook()
        wb.remove(wb.active)

        create_summary_tab(wb.create_sheet("Summary"), result, order_name)
        create_cutlist_tab(wb.create_sheet("Cutlist"), result)
        create_sheets_tab(wb.create_sheet("Sheets"), result)
        create_cut_sequence_tab(wb.create_sheet("Cut Sequence"), result)
        if estimation is not None:
            create_estimation_tab(wb.create_sheet("Estimation"), estimation)

        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)
        return buffer.getvalue()

    except Exception as e:
        logger.error(f"Excel generation failed: {e}")
        raise
