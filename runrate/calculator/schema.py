# ==============================================================================
# runrate/calculator/schema.py
# ------------------------------------------------------------------------------
# Defines the expected structure of an uploaded achievement report.
# This schema is the single source of truth for the validator; the numeric
# columns are whichever catalog metrics the report carries.
# ==============================================================================

REQUIRED_COLUMNS = ['DATE', 'STAFF NAME', 'BRANCH NAME']

# Report exports often carry these alongside the metrics; they are not metrics.
DESCRIPTIVE_COLUMNS = ['S.NO', 'DISTRICT', 'REGION', 'ZONE', 'DESIGNATION', 'EMPLOYEE CODE']

DISPLAY_DATE_FORMAT = '%d/%m/%Y'
