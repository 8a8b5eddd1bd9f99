"""Tests for CSV loaders and report generators."""

import io

import pytest
from openpyxl import load_workbook

from config import OptimizationConfig
from data_models import GrainDirection, MaterialKey
from estimation import run_estimation
from nesting_engine import run_production
from parsers_csv import load_material_palette, load_parts_data, validate_data_consistency
from pdf_layout_generator import generate_cutting_layout_pdf
from report_generators import create_excel_report
from simple_reports import create_comprehensive_report_package, generate_cut_sequence_csv

from conftest import make_part

CUTLIST_CSV = """ORDER ID / UNIQUE CODE,PANEL NAME,ITEM ID,ITEM QTY,QTY,CUT LENGTH,CUT WIDTH,FINISHED THICKNESS,MATERIAL TYPE,GRAINS
K-001,Base Side,BASE,2,2,720,560,18,HDHMR,1
K-002,Base Bottom,BASE,2,1,564,560,18,HDHMR,0
K-003,Back,BASE,2,1,700,560,6,MDF,width
K-004,Broken,BASE,2,1,abc,560,18,HDHMR,0
"""

OLD_CUTLIST_CSV = """Part ID,Length (mm),Width (mm),Thickness,Quantity,Material,Grain Sensitive
A1,600,400,18,3,HDHMR,1
"""

PALETTE_CSV = """Material,Thickness (mm),Standard Length (mm),Standard Width (mm),Price per Sheet,Price per SqM
HDHMR,18,2800,2070,5200,
MDF,6,2440,1220,,1000
"""


class TestParsers:

    def test_load_parts(self):
        parts, required = load_parts_data(io.StringIO(CUTLIST_CSV))
        assert [p.id for p in parts] == ["K-001", "K-002", "K-003"]
        assert required == {"BASE": 2}
        assert parts[0].grain_direction == GrainDirection.LENGTH
        assert parts[1].grain_direction == GrainDirection.NONE
        assert parts[2].grain_direction == GrainDirection.WIDTH
        assert parts[2].material_key == MaterialKey("MDF", 6.0)
        assert parts[0].name == "Base Side"

    def test_old_column_names(self):
        parts, required = load_parts_data(io.StringIO(OLD_CUTLIST_CSV))
        assert parts[0].id == "A1"
        assert parts[0].quantity == 3
        assert parts[0].length == 600
        assert required == {}

    def test_missing_columns(self):
        with pytest.raises(ValueError):
            load_parts_data(io.StringIO("ORDER ID / UNIQUE CODE,QTY\nA,1\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_parts_data(str(tmp_path / "missing.csv"))

    def test_load_palette_converts_area_price(self, tmp_path):
        path = tmp_path / "palette.csv"
        path.write_text(PALETTE_CSV)
        palette = load_material_palette(str(path))
        assert palette[MaterialKey("HDHMR", 18.0)].unit_cost == 5200
        assert palette[MaterialKey("MDF", 6.0)].unit_cost == pytest.approx(2440 * 1220 / 1_000_000 * 1000)

    def test_validate_data_consistency(self):
        parts, _ = load_parts_data(io.StringIO(CUTLIST_CSV))
        palette = load_material_palette(io.StringIO(PALETTE_CSV))
        results = validate_data_consistency(parts + [make_part("X", 100, 100, material="OAK")], palette)
        assert results["valid_parts"] == 3
        assert results["missing_materials"] == {"OAK|18"}


@pytest.fixture
def production(palette):
    config = OptimizationConfig(kerf=4.0, grain_matching=True)
    parts = [make_part("A", 720, 560, quantity=6),
             make_part("B", 2100, 900, material="MDF", thickness=6.0),
             make_part("X", 600, 400, material="OAK")]
    return run_production(parts, palette, config), run_estimation(parts, palette, config)


class TestReports:

    def test_report_package(self, production):
        result, estimation = production
        reports = create_comprehensive_report_package(result, estimation, "Kitchen")
        assert set(reports) == {"cutting_layout.txt", "optimization_report.csv", "material_summary.csv",
                                "cut_sequence.csv", "estimation.csv"}
        assert "CUTTING LAYOUT REPORT - ORDER: Kitchen" in reports["cutting_layout.txt"]
        assert "OAK|18" in reports["cutting_layout.txt"]
        assert "A-1" in reports["optimization_report.csv"]

    def test_cut_sequence_csv_has_one_row_per_cut(self, production):
        result, _ = production
        lines = generate_cut_sequence_csv(result).strip().splitlines()
        assert len(lines) == len(result.cut_sequence) + 1

    def test_excel_report(self, production):
        result, estimation = production
        workbook = load_workbook(io.BytesIO(create_excel_report(result, estimation, "Kitchen")))
        assert workbook.sheetnames == ["Summary", "Cutlist", "Sheets", "Cut Sequence", "Estimation"]
        assert workbook["Cutlist"].max_row == len(result.placements) + 1

    def test_pdf_layout(self, production):
        result, _ = production
        pdf = generate_cutting_layout_pdf(result.sheets, "Kitchen", result.cut_sequence)
        assert pdf.startswith(b"%PDF")
