"""
Input parsers for PanelNest.
Reads cutlist and material palette CSV files into engine data models.
"""

import pandas as pd
import logging
from typing import Any, Dict, List, Mapping, Sequence, Tuple
from data_models import GrainDirection, MaterialKey, Part, SheetStock, build_palette

logger = logging.getLogger(__name__)

# Older cutlist exports use these headers
PARTS_COLUMN_MAPPING = {
    'Part ID': 'ORDER ID / UNIQUE CODE',
    'Length (mm)': 'CUT LENGTH',
    'Width (mm)': 'CUT WIDTH',
    'Length': 'CUT LENGTH',
    'Width': 'CUT WIDTH',
    'Thickness (mm)': 'FINISHED THICKNESS',
    'Thickness': 'FINISHED THICKNESS',
    'Quantity': 'QTY',
    'Material': 'MATERIAL TYPE',
    'Grain Sensitive': 'GRAINS',
    'Grain': 'GRAINS',
    'Grain Direction': 'GRAINS',
    'Name': 'PANEL NAME',
    'Item ID': 'ITEM ID',
    'Item Name': 'ITEM NAME',
    'Item Qty': 'ITEM QTY',
    'Priority': 'PRIORITY',
}

PALETTE_COLUMN_MAPPING = {
    'Core Name': 'Material',
    'Name': 'Material',
    'Thickness': 'Thickness (mm)',
    'Sheet Length (mm)': 'Standard Length (mm)',
    'Sheet Width (mm)': 'Standard Width (mm)',
    'Cost per Sheet': 'Price per Sheet',
}


def _safe_str(value) -> str:
    """Convert a cell to a stripped string, mapping NaN to ''."""
    if pd.isna(value):
        return ''
    return str(value).strip()


def _apply_mapping(df: pd.DataFrame, mapping: Mapping[str, str]) -> pd.DataFrame:
    for old_name, new_name in mapping.items():
        if old_name in df.columns and new_name not in df.columns:
            df = df.rename(columns={old_name: new_name})
    return df


def _source_name(source) -> str:
    return getattr(source, 'name', str(source))


def load_parts_data(source) -> Tuple[List[Part], Dict[str, int]]:
    """
    Load a cutlist CSV.

    Args:
        source: File path or file-like object (e.g. a Streamlit upload)

    Returns:
        Tuple of (parts, item_id -> required item quantity)

    Expected CSV columns:
        - ORDER ID / UNIQUE CODE: Unique part identifier
        - CUT LENGTH, CUT WIDTH: Part size in millimeters
        - FINISHED THICKNESS: Thickness in millimeters
        - QTY: Pieces per item
        - MATERIAL TYPE: Material name
        - GRAINS: 1 / length, width, 0 / none
        - PANEL NAME, ITEM ID, ITEM NAME, ITEM QTY, PRIORITY: optional
    """
    parts_list: List[Part] = []
    required_quantities: Dict[str, int] = {}

    try:
        df = pd.read_csv(source)
        logger.info(f"Parts CSV columns: {list(df.columns)}")
        df = _apply_mapping(df, PARTS_COLUMN_MAPPING)

        required_columns = ['ORDER ID / UNIQUE CODE', 'CUT LENGTH', 'CUT WIDTH', 'FINISHED THICKNESS',
                            'QTY', 'MATERIAL TYPE']
        missing_columns = [col for col in required_columns if col not in df.columns]
        if missing_columns:
            logger.error(f"Missing required columns in parts CSV: {missing_columns}")
            raise ValueError(f"Missing required columns in parts CSV: {missing_columns}")

        logger.info(f"Loading {len(df)} parts from {_source_name(source)}")

        for index, row in df.iterrows():
            try:
                part_id = _safe_str(row['ORDER ID / UNIQUE CODE'])
                if not part_id:
                    logger.warning(f"Skipping row {index}: missing part id")
                    continue
                priority = row.get('PRIORITY')
                item_id = _safe_str(row.get('ITEM ID', ''))

                part = Part(
                    id=part_id,
                    name=_safe_str(row.get('PANEL NAME', '')) or part_id,
                    length=float(row['CUT LENGTH']),
                    width=float(row['CUT WIDTH']),
                    thickness=float(row['FINISHED THICKNESS']),
                    quantity=int(row['QTY']),
                    material=_safe_str(row['MATERIAL TYPE']),
                    grain_direction=GrainDirection.parse(row.get('GRAINS')),
                    priority=None if priority is None or pd.isna(priority) else int(priority),
                    item_id=item_id,
                    item_name=_safe_str(row.get('ITEM NAME', '')),
                )
                if part.length <= 0 or part.width <= 0 or part.quantity <= 0:
                    # kept so the engine reports it against its material group
                    logger.warning(f"Part {part_id} has invalid size or quantity: "
                                   f"{part.length}x{part.width} x{part.quantity}")

                item_qty = row.get('ITEM QTY')
                if item_id and item_qty is not None and not pd.isna(item_qty):
                    required_quantities[item_id] = int(item_qty)

                parts_list.append(part)

            except (ValueError, TypeError) as e:
                logger.error(f"Error processing row {index} in parts CSV: {e}")
                continue

        logger.info(f"Successfully loaded {len(parts_list)} parts")
        return parts_list, required_quantities

    except FileNotFoundError:
        logger.error(f"Parts CSV file not found: {_source_name(source)}")
        raise
    except Exception as e:
        logger.error(f"Error loading parts data from {_source_name(source)}: {e}")
        raise


def load_material_palette(source) -> Dict[MaterialKey, SheetStock]:
    """
    Load sheet stock per material key.

    Expected CSV columns:
        - Material: Material name
        - Thickness (mm): Thickness in millimeters
        - Standard Length (mm): Sheet length (grain direction)
        - Standard Width (mm): Sheet width
        - Price per Sheet: Cost of one sheet; when absent, Price per SqM is
          converted using the sheet area
    """
    try:
        df = pd.read_csv(source)
        df = _apply_mapping(df, PALETTE_COLUMN_MAPPING)

        required_columns = ['Material', 'Thickness (mm)', 'Standard Length (mm)', 'Standard Width (mm)']
        missing_columns = [col for col in required_columns if col not in df.columns]
        if missing_columns:
            raise ValueError(f"Missing required columns in material palette CSV: {missing_columns}")

        logger.info(f"Loading {len(df)} sheet materials from {_source_name(source)}")
        stocks: List[SheetStock] = []

        for index, row in df.iterrows():
            try:
                name = _safe_str(row['Material'])
                thickness = float(row['Thickness (mm)'])
                sheet_length = float(row['Standard Length (mm)'])
                sheet_width = float(row['Standard Width (mm)'])

                if sheet_length <= 0 or sheet_width <= 0:
                    logger.warning(f"Invalid dimensions for material {name}: {sheet_length}x{sheet_width}")
                    continue

                if 'Price per Sheet' in df.columns and not pd.isna(row['Price per Sheet']):
                    unit_cost = float(row['Price per Sheet'])
                elif 'Price per SqM' in df.columns and not pd.isna(row['Price per SqM']):
                    unit_cost = float(row['Price per SqM']) * sheet_length * sheet_width / 1_000_000
                else:
                    unit_cost = 0.0

                if unit_cost < 0:
                    logger.warning(f"Invalid price for material {name}: {unit_cost}")
                    continue

                stocks.append(SheetStock(MaterialKey(name, thickness), sheet_length, sheet_width, unit_cost))

            except (ValueError, TypeError) as e:
                logger.error(f"Error processing material palette row {index}: {e}")
                continue

        palette = build_palette(stocks)
        logger.info(f"Successfully loaded {len(palette)} sheet materials")
        return palette

    except FileNotFoundError:
        logger.error(f"Material palette CSV file not found: {_source_name(source)}")
        raise
    except Exception as e:
        logger.error(f"Error loading material palette from {_source_name(source)}: {e}")
        raise


def validate_data_consistency(parts_list: Sequence[Part],
                              palette: Mapping[MaterialKey, SheetStock]) -> Dict[str, Any]:
    """
    Check which parts have sheet stock before a run.

    Returns:
        Dictionary with part counts and the unmapped material keys
    """
    validation_results = {
        'total_parts': len(parts_list),
        'unique_materials': set(),
        'missing_materials': set(),
        'valid_parts': 0,
        'invalid_parts': 0,
    }

    for part in parts_list:
        key = str(part.material_key)
        validation_results['unique_materials'].add(key)
        if part.material_key not in palette:
            validation_results['missing_materials'].add(key)
            validation_results['invalid_parts'] += 1
            continue
        validation_results['valid_parts'] += 1

    if validation_results['missing_materials']:
        logger.warning(f"Missing sheet stock: {validation_results['missing_materials']}")

    logger.info(f"Validation complete: {validation_results['valid_parts']} valid parts, "
                f"{validation_results['invalid_parts']} invalid parts")
    return validation_results
