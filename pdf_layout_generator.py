"""
PDF cutting layout generator for PanelNest.
Draws one page per sheet with placed parts, rotation and grain markers,
reusable offcuts and the saw cut lines.
"""

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import matplotlib.patches as patches
from matplotlib.backends.backend_pdf import PdfPages
from typing import List, Optional, Sequence
import logging
import io
from data_models import CutKind, CutOperation, NestingSheet, Placement

logger = logging.getLogger(__name__)


class PDFLayoutGenerator:
    """Generate visual PDF cutting layouts."""

    def __init__(self):
        self.colors = [
            '#B2DFDB', '#FFF9C4', '#F8BBD9', '#C8E6C9', '#E1BEE7',
            '#FFCCBC', '#DCEDC8', '#FFCDD2', '#D1C4E9', '#B3E5FC',
            '#F0F4C3', '#FFAB91', '#CE93D8', '#90CAF9', '#C5E1A5',
        ]
        self.offcut_color = '#EEEEEE'
        self.cut_colors = {CutKind.RIP: 'darkred', CutKind.CROSSCUT: 'navy', CutKind.TRIM: 'darkgreen'}

    def generate_cutting_layouts_pdf(self, sheets: Sequence[NestingSheet], order_name: str = "PanelNest",
                                     cut_sequence: Sequence[CutOperation] = (),
                                     output_path: Optional[str] = None) -> bytes:
        """Render every sheet to a page and return the PDF bytes."""
        pdf_buffer = io.BytesIO()

        try:
            with PdfPages(pdf_buffer) as pdf:
                for sheet in sheets:
                    cuts = [op for op in cut_sequence if op.sheet_index == sheet.sheet_index]
                    self._create_sheet_layout_page(pdf, sheet, order_name, cuts)

            pdf_bytes = pdf_buffer.getvalue()
            pdf_buffer.close()

            if output_path:
                with open(output_path, 'wb') as f:
                    f.write(pdf_bytes)
                logger.info(f"PDF cutting layout saved to {output_path}")

            return pdf_bytes

        except Exception as e:
            logger.error(f"Error generating PDF layout: {e}")
            raise

    def _create_sheet_layout_page(self, pdf: PdfPages, sheet: NestingSheet, order_name: str,
                                  cuts: List[CutOperation]):
        fig, ax = plt.subplots(1, 1, figsize=(11, 14))
        fig.patch.set_facecolor('white')
        plt.subplots_adjust(left=0.08, right=0.92, top=0.88, bottom=0.35)

        header_lines = [
            f"Order: {order_name}",
            f"Cutting Layout - Sheet {sheet.sheet_index + 1}",
            f"Material: {sheet.material_key}",
            f"Sheet Size: {sheet.sheet_length:.0f} mm x {sheet.sheet_width:.0f} mm (grain along length)",
            f"Utilization: {sheet.utilization_percent:.1f}%",
            "Symbols: ↻ = Rotated Part, ≠ = Grain crossed",
        ]
        for i, line in enumerate(header_lines):
            weight = 'bold' if i < 3 else 'normal'
            size = 10 if i < 3 else 9
            fig.text(0.5, 0.96 - i * 0.02, line, ha='center', va='top', fontsize=size, fontweight=weight)

        ax.set_xlim(0, sheet.sheet_length)
        ax.set_ylim(0, sheet.sheet_width)
        ax.set_aspect('equal')
        ax.add_patch(patches.Rectangle((0, 0), sheet.sheet_length, sheet.sheet_width,
                                       linewidth=2, edgecolor='black', facecolor='white'))

        for region in sheet.waste_regions:
            if region.reusable:
                ax.add_patch(patches.Rectangle((region.x, region.y), region.length, region.width,
                                               linewidth=0.5, edgecolor='grey', facecolor=self.offcut_color,
                                               hatch='//'))

        for i, placement in enumerate(sheet.placements):
            self._place_part_on_layout(ax, placement, i)

        for op in cuts:
            ax.plot([op.start_x, op.end_x], [op.start_y, op.end_y],
                    color=self.cut_colors[op.kind], linestyle='--', alpha=0.5, linewidth=0.8)

        self._add_parts_summary_table(fig, sheet)

        ax.set_xlabel('Length (mm)', fontsize=10)
        ax.set_ylabel('Width (mm)', fontsize=10)
        ax.set_facecolor('white')
        ax.grid(False)
        for spine in ax.spines.values():
            spine.set_edgecolor('black')
            spine.set_linewidth(1)

        pdf.savefig(fig, bbox_inches='tight', dpi=150, facecolor='white')
        plt.close(fig)

    def _place_part_on_layout(self, ax, placement: Placement, index: int):
        color = self.colors[index % len(self.colors)]
        ax.add_patch(patches.Rectangle(
            (placement.x, placement.y), placement.length, placement.width,
            linewidth=1, edgecolor='red' if not placement.grain_aligned else 'black', facecolor=color,
        ))

        symbols = ""
        if placement.rotated:
            symbols += " ↻"
        if not placement.grain_aligned:
            symbols += " ≠"

        # Shrink labels on small parts
        font_size = 7 if min(placement.length, placement.width) > 150 else 5
        ax.text(placement.x + placement.length / 2, placement.y + placement.width / 2,
                f"{placement.unit_id}{symbols}\n{placement.length:.0f}x{placement.width:.0f}",
                ha='center', va='center', fontsize=font_size)

    def _add_parts_summary_table(self, fig, sheet: NestingSheet):
        if not sheet.placements:
            return

        headers = ['UNIT ID', 'PART NAME', 'LENGTH', 'WIDTH', 'X', 'Y', 'ROTATED']
        table_data = [
            [p.unit_id[:20], p.part_name[:20], f"{p.length:.0f}", f"{p.width:.0f}",
             f"{p.x:.0f}", f"{p.y:.0f}", 'Yes' if p.rotated else 'No']
            for p in sheet.placements
        ]

        table_ax = fig.add_axes([0.03, 0.01, 0.94, 0.25])
        table_ax.axis('off')
        table = table_ax.table(cellText=table_data, colLabels=headers, cellLoc='center',
                               loc='center', bbox=[0, 0, 1, 1])
        table.auto_set_font_size(False)
        table.set_fontsize(7)

        for i in range(len(headers)):
            table[(0, i)].set_facecolor('#CCCCCC')
            table[(0, i)].set_text_props(weight='bold')
        for i in range(2, len(table_data) + 1, 2):
            for j in range(len(headers)):
                table[(i, j)].set_facecolor('#F5F5F5')


def generate_cutting_layout_pdf(sheets: Sequence[NestingSheet], order_name: str = "PanelNest",
                                cut_sequence: Sequence[CutOperation] = (),
                                output_path: Optional[str] = None) -> bytes:
    """Generate PDF cutting layouts for a list of sealed sheets."""
    generator = PDFLayoutGenerator()
    return generator.generate_cutting_layouts_pdf(sheets, order_name, cut_sequence, output_path)
