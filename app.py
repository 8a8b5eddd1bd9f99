"""
PanelNest - Panel Nesting and Cut Optimization
Streamlit web application for sheet estimation, shelf nesting and saw cut sequencing.
"""

import streamlit as st
import io
import zipfile
import logging

from config import (DEFAULT_COST_BUFFER_PERCENT, DEFAULT_KERF, DEFAULT_MINIMUM_USABLE_OFFCUT,
                    DEFAULT_TARGET_YIELD_PERCENT, OptimizationConfig)
from errors import PanelNestError
from parsers_csv import load_parts_data, load_material_palette, validate_data_consistency
from project_state import (ESTIMATION, PRODUCTION, ProjectOptimizationState, ProjectRunGuard,
                           estimate_project, optimize_project)
from simple_reports import create_comprehensive_report_package
from report_generators import create_excel_report
from pdf_layout_generator import generate_cutting_layout_pdf
from utils import (setup_logging, validate_file_upload, format_currency, format_percentage,
                   display_production_metrics, display_sheet_summary, display_error_summary,
                   display_failures)

setup_logging()
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="PanelNest - Panel Nesting",
    page_icon="🪚",
    layout="wide",
    initial_sidebar_state="expanded"
)


def create_sample_data():
    """Create sample cutlist and palette CSV text."""
    sample_cutlist_data = """ORDER ID / UNIQUE CODE,PANEL NAME,ITEM ID,ITEM NAME,ITEM QTY,QTY,CUT LENGTH,CUT WIDTH,FINISHED THICKNESS,MATERIAL TYPE,GRAINS
K-001,Base Side,BASE-600,Base Cabinet 600,2,2,720,560,18,HDHMR,1
K-002,Base Bottom,BASE-600,Base Cabinet 600,2,1,564,560,18,HDHMR,0
K-003,Base Shelf,BASE-600,Base Cabinet 600,2,1,562,520,18,HDHMR,0
W-001,Wardrobe Door,WARD-1,Wardrobe,1,2,2100,450,18,HDHMR,1
W-002,Wardrobe Back,WARD-1,Wardrobe,1,1,2100,900,6,MDF,0"""

    sample_palette_data = """Material,Thickness (mm),Standard Length (mm),Standard Width (mm),Price per Sheet
HDHMR,18,2800,2070,5200
MDF,6,2440,1220,1100"""

    return sample_cutlist_data, sample_palette_data


def get_project_state() -> ProjectOptimizationState:
    if 'project_state' not in st.session_state:
        st.session_state.project_state = ProjectOptimizationState(project_id="streamlit-session")
    return st.session_state.project_state


@st.cache_resource
def get_run_guard() -> ProjectRunGuard:
    return ProjectRunGuard()


def build_config_from_sidebar() -> OptimizationConfig:
    """Collect optimization settings from the sidebar."""
    st.sidebar.subheader("Optimization Settings")
    kerf = st.sidebar.number_input("Blade kerf (mm)", min_value=0.0, max_value=20.0,
                                   value=DEFAULT_KERF, step=0.1)
    target_yield = st.sidebar.slider("Target yield (%)", min_value=30.0, max_value=100.0,
                                     value=DEFAULT_TARGET_YIELD_PERCENT, step=1.0)
    grain_matching = st.sidebar.checkbox("Match grain", value=True)
    allow_rotation = st.sidebar.checkbox("Allow rotation", value=True)
    cost_buffer = st.sidebar.number_input("Cost buffer (%)", min_value=0.0, max_value=100.0,
                                          value=DEFAULT_COST_BUFFER_PERCENT, step=1.0)
    offcut = st.sidebar.number_input("Minimum usable offcut (mm)", min_value=0.0,
                                     value=DEFAULT_MINIMUM_USABLE_OFFCUT[0], step=10.0)
    return OptimizationConfig.from_dict({
        'kerf': kerf,
        'target_yield_percent': target_yield,
        'grain_matching': grain_matching,
        'allow_rotation': allow_rotation,
        'cost_buffer_percent': cost_buffer,
        'minimum_usable_offcut': (offcut, offcut),
    })


def main():
    """Main application function."""
    st.title("🪚 PanelNest - Panel Nesting and Cut Optimization")
    st.markdown("**Sheet estimation, shelf nesting and saw cut sequencing**")

    page = st.sidebar.selectbox("Choose a page:", ["📊 Data Input", "⚙️ Optimization", "📋 Results"])
    try:
        config = build_config_from_sidebar()
    except PanelNestError as e:
        st.sidebar.error(str(e))
        return

    if page == "📊 Data Input":
        show_data_input_page()
    elif page == "⚙️ Optimization":
        show_optimization_page(config)
    elif page == "📋 Results":
        show_results_page()


def show_data_input_page():
    """Upload or load sample data."""
    st.header("📊 Data Input")
    sample_cutlist, sample_palette = create_sample_data()

    col1, col2 = st.columns(2)
    with col1:
        parts_file = st.file_uploader("Cutlist CSV", type=["csv"])
        st.download_button("Download Sample Cutlist", sample_cutlist, "sample_cutlist.csv", "text/csv")
    with col2:
        palette_file = st.file_uploader("Material palette CSV", type=["csv"])
        st.download_button("Download Sample Palette", sample_palette, "sample_palette.csv", "text/csv")

    if st.button("Use sample data"):
        parts_file = io.StringIO(sample_cutlist)
        palette_file = io.StringIO(sample_palette)
    elif not (validate_file_upload(parts_file, ['.csv']) and validate_file_upload(palette_file, ['.csv'])):
        return

    try:
        parts, required_quantities = load_parts_data(parts_file)
        palette = load_material_palette(palette_file)
    except (ValueError, OSError) as e:
        st.error(f"Error loading data: {e}")
        return

    st.session_state.parts = parts
    st.session_state.required_quantities = required_quantities
    st.session_state.palette = palette
    st.success(f"Loaded {len(parts)} parts and {len(palette)} sheet materials")
    display_error_summary(validate_data_consistency(parts, palette))


def show_optimization_page(config: OptimizationConfig):
    """Run estimation and production for the loaded data."""
    st.header("⚙️ Optimization")
    if 'parts' not in st.session_state:
        st.warning("Please load data first in the 'Data Input' section.")
        return

    parts = st.session_state.parts
    palette = st.session_state.palette
    required_quantities = st.session_state.required_quantities
    state = get_project_state()
    guard = get_run_guard()
    state.refresh(parts, palette, config, required_quantities)

    status = state.status()
    col1, col2 = st.columns(2)
    col1.metric("Estimation", status[ESTIMATION])
    col2.metric("Production", status[PRODUCTION])
    for reason in status['estimation_reasons'] + status['production_reasons']:
        st.caption(f"Changed: {reason}")

    st.session_state.order_name = st.text_input("Order Name", value=st.session_state.get('order_name', ''))
    standard_cost = st.number_input("Standard parts cost", min_value=0.0, value=0.0)
    special_cost = st.number_input("Special parts cost", min_value=0.0, value=0.0)

    if st.button("Run estimation"):
        try:
            estimation = estimate_project(state, guard, parts, palette, config, required_quantities,
                                          standard_cost, special_cost)
        except PanelNestError as e:
            st.error(str(e))
            return
        st.success(f"Estimated {estimation.total_sheets} sheets, total cost "
                   f"{format_currency(estimation.total_cost)}")
        display_failures(estimation.failures)

    if st.button("Run production optimization", disabled=not state.can_run_production):
        with st.spinner("Nesting parts..."):
            try:
                result = optimize_project(state, guard, parts, palette, config, required_quantities)
            except PanelNestError as e:
                st.error(str(e))
                return
        st.success(f"Placed {len(result.placements)} parts on {result.sheet_count} sheets "
                   f"({format_percentage(result.optimized_yield)} yield)")
        display_failures(result.failures)
        if result.optimized_yield < config.target_yield_percent:
            st.warning(f"Yield is below the {config.target_yield_percent:g}% target")


def show_results_page():
    """Show the latest production result and report downloads."""
    st.header("📋 Results")
    state = get_project_state()
    result = state.production
    if result is None:
        st.info("Run a production optimization first.")
        return
    if state.production_invalidation.is_stale:
        st.warning("Inputs changed since this result was produced: "
                   + "; ".join(state.production_invalidation.invalidation_reasons))

    display_production_metrics(result)
    display_sheet_summary(result)
    display_failures(result.failures)

    order_name = st.session_state.get('order_name', '') or "PanelNest"
    reports = create_comprehensive_report_package(result, state.estimation, order_name)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.download_button("Excel report", create_excel_report(result, state.estimation, order_name),
                           f"{order_name}_report.xlsx",
                           "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    with col2:
        if result.sheets:
            st.download_button("Cutting layout PDF",
                               generate_cutting_layout_pdf(result.sheets, order_name, result.cut_sequence),
                               f"{order_name}_layout.pdf", "application/pdf")
    with col3:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
            for name, content in reports.items():
                zf.writestr(name, content)
        st.download_button("CSV/text reports (zip)", buffer.getvalue(), f"{order_name}_reports.zip",
                           "application/zip")

    with st.expander("Cutting layout (text)"):
        st.text(reports['cutting_layout.txt'])


if __name__ == "__main__":
    main()
