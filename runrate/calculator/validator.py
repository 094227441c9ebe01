# ==============================================================================
# runrate/calculator/validator.py
# ------------------------------------------------------------------------------
# Handles the validation of an uploaded achievement report's structure and
# data types, and turns it into report rows.
# ==============================================================================

import os
from datetime import datetime
import pandas as pd
from .schema import REQUIRED_COLUMNS, DISPLAY_DATE_FORMAT


def _read_report(filepath):
    if os.path.splitext(filepath)[1].lower() == '.csv':
        return pd.read_csv(filepath, dtype=str, keep_default_na=False)
    return pd.read_excel(filepath, sheet_name=0)


def _display_date(value):
    """Renders a DATE cell as DD/MM/YYYY. Unrecognised text is passed through unchanged."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.strftime(DISPLAY_DATE_FORMAT)
    text = str(value).strip()
    for fmt in (DISPLAY_DATE_FORMAT, '%Y-%m-%d', '%Y-%m-%d %H:%M:%S'):
        try:
            return datetime.strptime(text, fmt).strftime(DISPLAY_DATE_FORMAT)
        except ValueError:
            continue
    return text


def validate_achievement_file(filepath, catalog):
    """
    Validates the structure and basic data types of an uploaded report.

    Args:
        filepath (str): The path to the uploaded .xlsx or .csv file.
        catalog (MetricCatalog): Decides which columns must be numeric.

    Returns:
        tuple: A tuple containing:
            - list: Report rows (dicts) if validation is successful, else None.
            - list: A list of human-readable error messages if validation fails.
    """
    errors = []

    try:
        df = _read_report(filepath)
    except Exception as e:
        errors.append(f"The report is invalid or could not be read. Technical error: {e}")
        return None, errors

    df.columns = [' '.join(str(col).upper().split()) for col in df.columns]

    # 1. Check for required columns
    missing_columns = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing_columns:
        errors.append(f"Required columns not found: {', '.join(missing_columns)}")
        return None, errors

    metric_columns = [col for col in df.columns if col in catalog]
    if not metric_columns:
        errors.append("The report does not contain any known metric columns.")
        return None, errors

    # 2. Check numeric columns for non-numeric values
    for col in metric_columns:
        raw = df[col].astype(str).str.replace(',', '').str.strip()
        # Coerce to numeric, making non-numbers NaN
        numeric_series = pd.to_numeric(raw, errors='coerce')
        blank = raw.isin(['', 'nan', 'None', 'NaN'])
        invalid_rows = df[numeric_series.isna() & ~blank]

        for index in invalid_rows.index:
            value = invalid_rows.loc[index, col]
            errors.append(
                f"Row {index + 2}: value '{value}' in column '{col}' must be a number."
            )
        df[col] = numeric_series.fillna(0.0)

    if errors:
        return None, errors

    df['DATE'] = df['DATE'].map(_display_date)
    records = []
    for row in df.to_dict(orient='records'):
        record = {
            'DATE': row['DATE'],
            'STAFF NAME': '' if pd.isna(row['STAFF NAME']) else str(row['STAFF NAME']).strip(),
            'BRANCH NAME': '' if pd.isna(row['BRANCH NAME']) else str(row['BRANCH NAME']).strip(),
        }
        record.update({col: float(row[col]) for col in metric_columns})
        records.append(record)

    return records, []
