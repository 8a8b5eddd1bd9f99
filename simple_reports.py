"""
Simple report generation for PanelNest without pandas/matplotlib dependencies.
Creates text and CSV reports for production and estimation results.
"""

import csv
import io
from typing import Dict, Optional
from data_models import EstimationResult, ProductionResult


def generate_cutting_layout_text(result: ProductionResult, order_name: str = "") -> str:
    """
    Generate text-based cutting layout report.

    Args:
        result: Production result with sealed sheets
        order_name: Order name to include in report header

    Returns:
        Formatted text report
    """
    report_lines = []

    if order_name:
        report_lines.append(f"CUTTING LAYOUT REPORT - ORDER: {order_name}")
    else:
        report_lines.append("CUTTING LAYOUT REPORT")
    report_lines.append("=" * 60)
    report_lines.append("")

    report_lines.append("SUMMARY:")
    report_lines.append(f"Total Sheets: {result.sheet_count}")
    report_lines.append(f"Total Parts: {len(result.placements)}")
    report_lines.append(f"Optimized Yield: {result.optimized_yield:.1f}%")
    report_lines.append(f"Cuts: {len(result.cut_sequence)} ({result.total_cutting_length:.0f}mm, "
                        f"{result.estimated_cut_time_minutes:.1f} min)")
    if result.budget_exceeded:
        report_lines.append("WARNING: run budget exceeded, result is incomplete")
    report_lines.append("")

    for sheet in result.sheets:
        report_lines.append(f"SHEET {sheet.sheet_index + 1}")
        report_lines.append(f"Material: {sheet.material_key}")
        report_lines.append(f"Size: {sheet.sheet_length:g}mm x {sheet.sheet_width:g}mm")
        report_lines.append(f"Utilization: {sheet.utilization_percent:.1f}%")
        report_lines.append(f"Parts Count: {len(sheet.placements)}")
        report_lines.append("")

        if sheet.placements:
            report_lines.append("PARTS ON SHEET:")
            report_lines.append("Unit ID".ljust(20) + "Dimensions".ljust(15) + "Position".ljust(15) + "Notes")
            report_lines.append("-" * 70)

            for p in sheet.placements:
                notes = []
                if p.rotated:
                    notes.append("Rotated")
                if not p.grain_aligned:
                    notes.append("Grain crossed")
                report_lines.append(
                    p.unit_id[:19].ljust(20) +
                    f"{p.length:g}x{p.width:g}".ljust(15) +
                    f"({p.x:.0f},{p.y:.0f})".ljust(15) +
                    ", ".join(notes)
                )

        reusable = [r for r in sheet.waste_regions if r.reusable]
        if reusable:
            report_lines.append("")
            report_lines.append("REUSABLE OFFCUTS:")
            for r in reusable:
                report_lines.append(f"  {r.length:.0f}x{r.width:.0f} at ({r.x:.0f},{r.y:.0f})")

        report_lines.append("")
        report_lines.append("-" * 60)
        report_lines.append("")

    if result.failures:
        report_lines.append("FAILED MATERIAL GROUPS:")
        for failure in result.failures:
            report_lines.append(f"  {failure}")

    return "\n".join(report_lines)


def generate_optimized_cutlist_csv(result: ProductionResult, order_name: str = "") -> str:
    """
    Generate CSV report with one row per placement.

    Returns:
        CSV content as string
    """
    output = io.StringIO()

    if order_name:
        output.write(f"# PanelNest Production Report - Order: {order_name}\n")
    else:
        output.write("# PanelNest Production Report\n")
    output.write(f"# Total Sheets: {result.sheet_count}\n")
    output.write(f"# Optimized Yield: {result.optimized_yield:.1f}%\n")
    output.write(f"# Failed Groups: {len(result.failures)}\n")
    output.write("#\n")

    writer = csv.writer(output)
    writer.writerow([
        'Unit ID', 'Part ID', 'Part Name', 'Sheet', 'Material', 'X Position (mm)', 'Y Position (mm)',
        'Placed Length (mm)', 'Placed Width (mm)', 'Rotated', 'Grain Aligned'
    ])
    for sheet in result.sheets:
        for p in sheet.placements:
            writer.writerow([
                p.unit_id, p.part_id, p.part_name, sheet.sheet_index + 1, str(sheet.material_key),
                p.x, p.y, p.length, p.width,
                'Yes' if p.rotated else 'No',
                'Yes' if p.grain_aligned else 'No',
            ])

    if result.failures:
        output.write("\n# FAILED MATERIAL GROUPS\n")
        writer.writerow(['Material', 'Error Code', 'Reason'])
        for failure in result.failures:
            error = failure.error
            writer.writerow([str(failure.material_key), getattr(error, 'code', type(error).__name__),
                             getattr(error, 'message', str(error))])

    output.write("\n# SHEET SUMMARY\n")
    writer.writerow(['Sheet', 'Material', 'Length (mm)', 'Width (mm)', 'Parts Count',
                     'Utilization (%)', 'Waste Area (mm²)'])
    for sheet in result.sheets:
        writer.writerow([
            sheet.sheet_index + 1,
            str(sheet.material_key),
            sheet.sheet_length,
            sheet.sheet_width,
            len(sheet.placements),
            f"{sheet.utilization_percent:.1f}",
            f"{sheet.waste_area:.0f}",
        ])

    return output.getvalue()


def generate_material_summary_csv(result: ProductionResult) -> str:
    """
    Generate material-wise summary as CSV.

    Returns:
        CSV content as string
    """
    output = io.StringIO()
    writer = csv.writer(output)

    material_summary = {}
    for sheet in result.sheets:
        key = str(sheet.material_key)
        summary = material_summary.setdefault(key, {
            'sheet_count': 0, 'total_area': 0.0, 'utilized_area': 0.0, 'parts_placed': 0, 'cost': 0.0,
        })
        summary['sheet_count'] += 1
        summary['total_area'] += sheet.sheet_area / 1_000_000
        summary['utilized_area'] += sheet.used_area / 1_000_000
        summary['parts_placed'] += len(sheet.placements)
        summary['cost'] += sheet.unit_cost

    writer.writerow(['Material', 'Sheet Count', 'Total Area (m²)', 'Utilized Area (m²)',
                     'Waste Area (m²)', 'Utilization (%)', 'Parts Placed', 'Sheet Cost'])
    for material, summary in material_summary.items():
        writer.writerow([
            material,
            summary['sheet_count'],
            f"{summary['total_area']:.2f}",
            f"{summary['utilized_area']:.2f}",
            f"{summary['total_area'] - summary['utilized_area']:.2f}",
            f"{result.material_yields.get(material, 0.0):.1f}",
            summary['parts_placed'],
            f"{summary['cost']:.2f}",
        ])

    return output.getvalue()


def generate_cut_sequence_csv(result: ProductionResult) -> str:
    """
    Generate the saw cut sequence as CSV.

    Returns:
        CSV content as string
    """
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['Sequence', 'Sheet', 'Type', 'Start X', 'Start Y', 'End X', 'End Y',
                     'Length (mm)', 'Parts'])
    for op in result.cut_sequence:
        writer.writerow([
            op.sequence, op.sheet_index + 1, op.kind.value,
            op.start_x, op.start_y, op.end_x, op.end_y,
            f"{op.length:.1f}", " ".join(op.resulting_parts),
        ])
    return output.getvalue()


def generate_estimation_csv(estimation: EstimationResult) -> str:
    """
    Generate the estimation breakdown as CSV.

    Returns:
        CSV content as string
    """
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['Material', 'Sheet Size (mm)', 'Parts', 'Part Area (m²)', 'Sheets',
                     'Waste (%)', 'Cost'])
    for m in estimation.materials:
        writer.writerow([
            str(m.material_key),
            f"{m.sheet_length:g}x{m.sheet_width:g}",
            m.part_count,
            f"{m.total_part_area / 1_000_000:.2f}",
            m.sheets_required,
            f"{m.waste_percent:.1f}",
            f"{m.estimated_cost:.2f}",
        ])
    output.write("\n")
    writer.writerow(['Rough Cost', f"{estimation.rough_cost:.2f}"])
    writer.writerow(['Standard Parts', f"{estimation.standard_parts_cost:.2f}"])
    writer.writerow(['Special Parts', f"{estimation.special_parts_cost:.2f}"])
    writer.writerow(['Total Cost', f"{estimation.total_cost:.2f}"])
    return output.getvalue()


def create_comprehensive_report_package(result: ProductionResult,
                                        estimation: Optional[EstimationResult] = None,
                                        order_name: str = "") -> Dict[str, str]:
    """
    Create a package of all text and CSV reports.

    Returns:
        Dictionary with report file names as keys and content as values
    """
    reports = {}
    reports['cutting_layout.txt'] = generate_cutting_layout_text(result, order_name)
    reports['optimization_report.csv'] = generate_optimized_cutlist_csv(result, order_name)
    reports['material_summary.csv'] = generate_material_summary_csv(result)
    reports['cut_sequence.csv'] = generate_cut_sequence_csv(result)
    if estimation is not None:
        reports['estimation.csv'] = generate_estimation_csv(estimation)
    return reports
