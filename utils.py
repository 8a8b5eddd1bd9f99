"""
Utility functions for the PanelNest nesting tool.
"""

import logging
import os
from typing import Any, Dict
import streamlit as st

from data_models import ProductionResult


def setup_logging(log_level: str = "INFO") -> None:
    """
    Set up logging configuration for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=log_format,
        handlers=[
            logging.StreamHandler(),
        ]
    )

    logging.getLogger('matplotlib').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)


def validate_file_upload(uploaded_file, expected_extensions: list) -> bool:
    """
    Validate uploaded file type and size.

    Args:
        uploaded_file: Streamlit uploaded file object
        expected_extensions: List of allowed file extensions

    Returns:
        True if file is valid, False otherwise
    """
    if uploaded_file is None:
        return False

    file_extension = os.path.splitext(uploaded_file.name)[1].lower()
    if file_extension not in expected_extensions:
        st.error(f"Invalid file type. Expected: {', '.join(expected_extensions)}")
        return False

    max_size = 50 * 1024 * 1024
    if uploaded_file.size > max_size:
        st.error("File size too large. Maximum size is 50MB.")
        return False

    return True


def format_currency(amount: float) -> str:
    return f"₹{amount:,.2f}"


def format_area(area_mm2: float) -> str:
    """
    Format area for display with appropriate units.

    Args:
        area_mm2: Area in square millimeters

    Returns:
        Formatted area string
    """
    if area_mm2 >= 1_000_000:
        return f"{area_mm2 / 1_000_000:.2f} m²"
    elif area_mm2 >= 1_000:
        return f"{area_mm2 / 1_000:.1f} cm²"
    else:
        return f"{area_mm2:.0f} mm²"


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def format_minutes(minutes: float) -> str:
    """Format a duration in minutes as ``1h 05m`` or ``12.5 min``."""
    if minutes >= 60:
        hours, rest = divmod(minutes, 60)
        return f"{int(hours)}h {rest:02.0f}m"
    return f"{minutes:.1f} min"


def display_production_metrics(result: ProductionResult):
    """
    Display production run metrics in Streamlit columns.

    Args:
        result: Production result to summarise
    """
    col1, col2, col3, col4 = st.columns(4)

    with col1:
        st.metric("Sheets Used", result.sheet_count)

    with col2:
        st.metric("Parts Placed", len(result.placements))

    with col3:
        st.metric("Optimized Yield", format_percentage(result.optimized_yield))

    with col4:
        st.metric("Cut Time", format_minutes(result.estimated_cut_time_minutes))


def display_sheet_summary(result: ProductionResult):
    """
    Display sheet summary table in Streamlit.

    Args:
        result: Production result with sealed sheets
    """
    if not result.sheets:
        st.info("No sheets to display.")
        return

    sheet_data = []
    for sheet in result.sheets:
        sheet_data.append({
            'Sheet': sheet.sheet_index + 1,
            'Material': str(sheet.material_key),
            'Dimensions': f"{sheet.sheet_length:g}×{sheet.sheet_width:g}mm",
            'Parts': len(sheet.placements),
            'Utilization': format_percentage(sheet.utilization_percent),
            'Waste Area': format_area(sheet.waste_area),
            'Reusable Offcuts': sum(1 for r in sheet.waste_regions if r.reusable),
        })

    st.dataframe(sheet_data, use_container_width=True)


def display_error_summary(validation_results: Dict[str, Any]):
    """
    Display data validation error summary.

    Args:
        validation_results: Dictionary from parsers_csv.validate_data_consistency
    """
    if validation_results['invalid_parts'] > 0:
        st.warning(f"Found {validation_results['invalid_parts']} parts without sheet stock:")
        st.error(f"Missing materials: {', '.join(sorted(validation_results['missing_materials']))}")

    st.info(f"{validation_results['valid_parts']} of {validation_results['total_parts']} parts "
            f"have sheet stock.")


def display_failures(failures):
    """Show failed material groups next to the results."""
    for failure in failures:
        st.error(f"**{failure.material_key}**: {getattr(failure.error, 'message', failure.error)}")
